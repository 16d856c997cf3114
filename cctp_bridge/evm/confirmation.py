"""Transaction broadcasting and confirmation.

- Broadcast a signed transaction and wait for its receipt

- Classify failures into retryable (:py:class:`~cctp_bridge.errors.TransientTransactionError`)
  and final ones
"""

import logging

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound, Web3RPCError

from cctp_bridge.constants import DEFAULT_RECEIPT_TIMEOUT
from cctp_bridge.errors import TransactionReverted, TransientTransactionError
from cctp_bridge.evm.hotwallet import HotWallet, SignedBridgeTransaction

logger = logging.getLogger(__name__)


#: Node error messages that mean "try again with a fresh nonce or fee"
TRANSIENT_ERROR_MESSAGES = (
    "nonce too low",
    "nonce too high",
    "replacement transaction underpriced",
    "transaction underpriced",
    "already known",
    "max fee per gas less than block base fee",
    "fee cap less than block base fee",
    "header not found",
    "timeout",
)


def is_out_of_gas(eth_rpc_error_message: str) -> bool:
    return "insufficient funds" in eth_rpc_error_message


def is_transient_error(e: Exception) -> bool:
    """Is an error from broadcasting or confirming a transaction worth retrying.

    Contract reverts during gas estimation are validation failures and never transient.
    """
    if isinstance(e, ContractLogicError):
        return False

    if isinstance(e, (TimeExhausted, TransactionNotFound, requests.ConnectionError, requests.Timeout)):
        return True

    message = str(e).lower()
    if is_out_of_gas(message):
        return False

    if isinstance(e, (Web3RPCError, ValueError)):
        return any(m in message for m in TRANSIENT_ERROR_MESSAGES)

    return False


def broadcast_and_wait(
    web3: Web3,
    wallet: HotWallet,
    signed_tx: SignedBridgeTransaction,
    timeout: float = DEFAULT_RECEIPT_TIMEOUT,
) -> str:
    """Broadcast a transaction and wait until it is included in a block.

    :return:
        0x prefixed transaction hash

    :raises TransientTransactionError:
        Broadcast failed or receipt did not arrive in time, the wallet nonce has been resynced

    :raises TransactionReverted:
        Transaction was included but failed
    """
    tx_hash = signed_tx.hash
    try:
        web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        receipt = web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    except Exception as e:
        logger.warning("Transaction %s nonce %d failed: %s", Web3.to_hex(tx_hash), signed_tx.nonce, e)
        transient = is_transient_error(e)
        # The allocated nonce may have never reached the mempool
        try:
            wallet.sync_nonce(web3, force=True)
        except Exception:
            logger.warning("Could not resync nonce of %s after failed broadcast", wallet.address, exc_info=True)
        if transient:
            raise TransientTransactionError(f"Transaction {Web3.to_hex(tx_hash)} failed: {e}") from e
        raise

    hex_hash = Web3.to_hex(tx_hash)
    if receipt["status"] != 1:
        raise TransactionReverted(f"Transaction {hex_hash} reverted in block {receipt['blockNumber']}", tx_hash=hex_hash)

    logger.info("Transaction %s confirmed in block %d, gas used %d", hex_hash, receipt["blockNumber"], receipt["gasUsed"])
    return hex_hash
