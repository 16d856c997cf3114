"""Solana transaction signing and submission.

The Solana counterpart of :py:class:`cctp_bridge.evm.hotwallet.HotWallet`.
Solana has no nonces, transactions carry a recent blockhash instead.
"""

import logging
from typing import Sequence

import httpx
from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from cctp_bridge.errors import TransactionReverted, TransientTransactionError

logger = logging.getLogger(__name__)


#: RPC error messages worth retrying with a fresh blockhash
TRANSIENT_ERROR_MESSAGES = (
    "blockhash not found",
    "node is behind",
    "block height exceeded",
    "too many requests",
)


def is_transient_error(e: Exception) -> bool:
    """Is a Solana RPC failure worth retrying."""
    if isinstance(e, (httpx.TransportError, UnconfirmedTxError)):
        return True
    message = str(e).lower()
    return any(m in message for m in TRANSIENT_ERROR_MESSAGES)


class SolanaWallet:
    """Sign and send transactions with a keypair."""

    def __init__(self, client: Client, keypair: Keypair):
        self.client = client
        self.keypair = keypair

    def __repr__(self):
        return f"<Solana wallet {self.pubkey}>"

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    def send_instructions(self, instructions: Sequence[Instruction], extra_signers: Sequence[Keypair] = ()) -> str:
        """Sign with the wallet as the fee payer, send and wait for confirmation.

        :param extra_signers:
            Other keypairs the instructions need, e.g. a fresh event data account

        :return:
            Transaction signature, base58

        :raises TransientTransactionError:
            Stale blockhash, lagging node or confirmation did not arrive

        :raises TransactionReverted:
            Transaction failed in preflight simulation or on-chain
        """
        try:
            blockhash = self.client.get_latest_blockhash(Confirmed).value.blockhash
            message = Message.new_with_blockhash(list(instructions), self.pubkey, blockhash)
            tx = Transaction([self.keypair, *extra_signers], message, blockhash)
            signature = self.client.send_transaction(tx, opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed)).value
            logger.info("Sent Solana transaction %s, waiting for confirmation", signature)
            resp = self.client.confirm_transaction(signature, Confirmed)
        except (RPCException, httpx.HTTPError, UnconfirmedTxError) as e:
            if is_transient_error(e):
                raise TransientTransactionError(f"Solana transaction failed: {e}") from e
            raise TransactionReverted(f"Solana transaction failed: {e}") from e

        status = resp.value[0] if resp.value else None
        if status is not None and status.err is not None:
            raise TransactionReverted(f"Solana transaction {signature} failed: {status.err}", tx_hash=str(signature))

        logger.info("Solana transaction %s confirmed", signature)
        return str(signature)
