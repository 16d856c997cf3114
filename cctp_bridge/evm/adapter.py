"""EVM chain adapter.

Drives the CCTP V2 contracts on EVM chains:

- ``USDC.approve(TokenMessengerV2, amount)``
- ``TokenMessengerV2.depositForBurn(...)``
- ``MessageTransmitterV2.receiveMessage(message, attestation)``

Every transaction has its gas estimated with ``eth_estimateGas`` and padded by 20%,
EIP-1559 fees are used where the chain supports them.
"""

import logging
import threading
from functools import cached_property

from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractFunction
from web3.exceptions import ContractLogicError

from cctp_bridge.adapter import BurnRequest, ChainAdapter
from cctp_bridge.chain import ChainDescriptor
from cctp_bridge.constants import DEFAULT_RECEIPT_TIMEOUT, GAS_PADDING_PERCENT
from cctp_bridge.errors import TransactionReverted, TransientTransactionError
from cctp_bridge.evm.abi import get_deployed_contract
from cctp_bridge.evm.confirmation import broadcast_and_wait, is_transient_error
from cctp_bridge.evm.gas import apply_fees, pad_gas_limit, suggest_fees
from cctp_bridge.evm.hotwallet import HotWallet
from cctp_bridge.identity import EVMIdentity
from cctp_bridge.message import decode_cctp_message, encode_mint_recipient

logger = logging.getLogger(__name__)


class EVMChainAdapter(ChainAdapter):
    """CCTP V2 on one EVM chain."""

    def __init__(
        self,
        descriptor: ChainDescriptor,
        web3: Web3,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        gas_padding_percent: int = GAS_PADDING_PERCENT,
    ):
        super().__init__(descriptor)
        self.web3 = web3
        self.receipt_timeout = receipt_timeout
        self.gas_padding_percent = gas_padding_percent
        self._wallets: dict[str, HotWallet] = {}
        self._wallet_lock = threading.Lock()

    @cached_property
    def usdc(self) -> Contract:
        return get_deployed_contract(self.web3, "ERC20.json", self.descriptor.token_address)

    @cached_property
    def token_messenger(self) -> Contract:
        return get_deployed_contract(self.web3, "TokenMessengerV2.json", self.descriptor.messenger_address)

    @cached_property
    def message_transmitter(self) -> Contract:
        return get_deployed_contract(self.web3, "MessageTransmitterV2.json", self.descriptor.transmitter_address)

    def get_wallet(self, identity: EVMIdentity) -> HotWallet:
        """Get the nonce managing wallet for an identity on this chain.

        The wallet is created and nonce synced on the first use.
        """
        assert isinstance(identity, EVMIdentity), f"EVM chain {self.descriptor.name} cannot sign with {identity}"
        with self._wallet_lock:
            wallet = self._wallets.get(identity.address)
            if wallet is None:
                wallet = HotWallet(identity.account)
                wallet.sync_nonce(self.web3)
                self._wallets[identity.address] = wallet
        return wallet

    def transact(self, identity: EVMIdentity, func: ContractFunction, description: str) -> str:
        """Estimate, sign, broadcast and confirm a contract call.

        :raises TransactionReverted:
            Gas estimation says the call reverts. Not retried.

        :raises TransientTransactionError:
            See :py:func:`cctp_bridge.evm.confirmation.broadcast_and_wait`
        """
        wallet = self.get_wallet(identity)

        try:
            estimated_gas = func.estimate_gas({"from": wallet.address})
        except ContractLogicError as e:
            raise TransactionReverted(f"{description} would revert on {self.descriptor.name}: {e}") from e
        except Exception as e:
            if is_transient_error(e):
                raise TransientTransactionError(f"{description} gas estimation failed on {self.descriptor.name}: {e}") from e
            raise

        gas_limit = pad_gas_limit(estimated_gas, self.gas_padding_percent)
        fees = suggest_fees(self.web3)

        tx_params = apply_fees({"gas": gas_limit, "chainId": self.descriptor.chain_id}, fees)

        logger.info(
            "%s on %s: estimated gas %d, padded gas limit %d, fees %s",
            description,
            self.descriptor.name,
            estimated_gas,
            gas_limit,
            fees,
        )

        signed_tx = wallet.sign_call(func, tx_params)
        return broadcast_and_wait(self.web3, wallet, signed_tx, timeout=self.receipt_timeout)

    def approve(self, identity: EVMIdentity, amount: int) -> str:
        func = self.usdc.functions.approve(self.token_messenger.address, amount)
        return self.transact(identity, func, "USDC approve")

    def burn(self, identity: EVMIdentity, request: BurnRequest) -> str:
        func = self.token_messenger.functions.depositForBurn(
            request.amount,
            request.destination_domain,
            request.mint_recipient,
            self.usdc.address,
            request.destination_caller,
            request.max_fee,
            request.min_finality_threshold,
        )
        return self.transact(identity, func, "depositForBurn")

    def mint(self, identity: EVMIdentity, message: bytes, attestation: bytes, recipient_owner: str | None = None) -> str:
        logger.info(
            "Preparing CCTP receiveMessage: message_len=%d, attestation_len=%d",
            len(message),
            len(attestation),
        )
        func = self.message_transmitter.functions.receiveMessage(message, attestation)
        return self.transact(identity, func, "receiveMessage")

    def is_message_received(self, message: bytes) -> bool:
        nonce = decode_cctp_message(message).nonce
        return self.message_transmitter.functions.usedNonces(nonce).call() != 0

    def derive_recipient(self, owner: str) -> bytes:
        return encode_mint_recipient(owner)

    def token_balance(self, owner: str) -> int:
        return self.usdc.functions.balanceOf(Web3.to_checksum_address(owner)).call()

    def native_balance(self, owner: str) -> int:
        return self.web3.eth.get_balance(Web3.to_checksum_address(owner))

