"""Local signer for EVM bridge transactions.

Approve and burn are sent back to back from the same address,
so nonces are counted locally instead of asking the node each time.
"""

import logging
import threading
from typing import NamedTuple

from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import ContractFunction

logger = logging.getLogger(__name__)


class SignedBridgeTransaction(NamedTuple):
    """A signed transaction and what went into it."""

    raw_transaction: HexBytes

    hash: HexBytes

    nonce: int

    address: HexAddress

    #: Unsigned transaction dict, kept for diagnosing broadcast failures
    tx: dict

    def __repr__(self):
        return f"<SignedBridgeTransaction {self.hash.hex()} from:{self.address} nonce:{self.nonce}>"


class HotWallet:
    """Sign transactions with a private key held in memory.

    Example:

    .. code-block:: python

        wallet = HotWallet(identity.account)
        wallet.sync_nonce(web3)
        signed = wallet.sign_call(usdc.functions.approve(token_messenger.address, 1_000_000), {"gas": 100_000})
        web3.eth.send_raw_transaction(signed.raw_transaction)

    One wallet per (chain, address). Nonce allocation is locked,
    parallel transfers from the same chain share the wallet.
    """

    def __init__(self, account: LocalAccount):
        self.account = account
        self.current_nonce: int | None = None
        self._nonce_lock = threading.Lock()

    def __repr__(self):
        return f"<HotWallet {self.address} nonce:{self.current_nonce}>"

    @property
    def address(self) -> HexAddress:
        return self.account.address

    def sync_nonce(self, web3: Web3, force=False):
        """Read the next nonce from the node, pending transactions included.

        A lagging node may report a nonce we have already used.
        Such a value is ignored unless ``force`` is set, which we do
        after a failed broadcast left an allocated nonce unused.
        """
        onchain_nonce = web3.eth.get_transaction_count(self.address, "pending")
        with self._nonce_lock:
            if not force and self.current_nonce is not None and onchain_nonce < self.current_nonce:
                logger.warning("Node reports nonce %d for %s, behind our %d, ignoring", onchain_nonce, self.address, self.current_nonce)
                return
            self.current_nonce = onchain_nonce
        logger.info("Nonce of %s is %d", self.address, onchain_nonce)

    def allocate_nonce(self) -> int:
        with self._nonce_lock:
            assert self.current_nonce is not None, f"{self} nonce not synced"
            nonce = self.current_nonce
            self.current_nonce += 1
        return nonce

    def sign_call(self, func: ContractFunction, tx_params: dict) -> SignedBridgeTransaction:
        """Build and sign a contract call with the next nonce.

        :param func:
            Contract function with its arguments bound

        :param tx_params:
            Gas limit, fees and chain id. Nothing is filled in by web3.py.
        """
        assert isinstance(func, ContractFunction)
        assert "chainId" in tx_params, "chainId must be given, we do not look it up"

        tx = func.build_transaction({**tx_params, "from": self.address})
        tx["nonce"] = self.allocate_nonce()
        signed = self.account.sign_transaction(tx)
        return SignedBridgeTransaction(
            raw_transaction=HexBytes(signed.raw_transaction),
            hash=HexBytes(signed.hash),
            nonce=tx["nonce"],
            address=self.address,
            tx=tx,
        )
