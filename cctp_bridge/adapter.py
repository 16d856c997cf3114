"""Chain adapter interface.

The transfer state machine talks to both chain families through
:py:class:`ChainAdapter` and never branches on the family itself.

- :py:class:`cctp_bridge.evm.adapter.EVMChainAdapter`
- :py:class:`cctp_bridge.solana.adapter.SolanaChainAdapter`

Adapters are created by :py:class:`cctp_bridge.provider.AccountFactory`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from cctp_bridge.chain import ChainDescriptor
from cctp_bridge.constants import MIN_NATIVE_GAS_BALANCE, NATIVE_EVM_DECIMALS, USDC_DECIMALS
from cctp_bridge.identity import SigningIdentity

#: ``bytes32(0)``, anyone can relay the message on the destination chain
ZERO_BYTES32 = b"\x00" * 32


@dataclass(slots=True, frozen=True)
class BurnRequest:
    """Arguments of a ``depositForBurn`` call, family neutral."""

    #: Raw USDC amount, 6 decimals
    amount: int

    #: CCTP domain of the destination chain
    destination_domain: int

    #: 32-byte recipient, see :py:meth:`ChainAdapter.derive_recipient`
    mint_recipient: bytes

    #: Fee cap in raw USDC units
    max_fee: int

    #: 1000 fast or 2000 standard
    min_finality_threshold: int

    #: Who may call ``receiveMessage``, zero for anyone
    destination_caller: bytes = ZERO_BYTES32

    def __post_init__(self):
        assert len(self.mint_recipient) == 32, f"mint_recipient must be 32 bytes, got {len(self.mint_recipient)}"
        assert len(self.destination_caller) == 32, f"destination_caller must be 32 bytes, got {len(self.destination_caller)}"
        assert self.amount > 0, f"Burn amount must be positive: {self.amount}"


class ChainAdapter(ABC):
    """Capabilities the transfer needs from one chain.

    Every transaction method blocks until the chain reports the transaction
    included, and returns the transaction reference as text:
    a 0x prefixed hash on EVM, a base58 signature on Solana.

    Transaction methods raise

    - :py:class:`~cctp_bridge.errors.TransientTransactionError` for failures worth retrying

    - :py:class:`~cctp_bridge.errors.TransactionReverted` or any other exception for final failures
    """

    def __init__(self, descriptor: ChainDescriptor):
        self.descriptor = descriptor

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.descriptor.name}>"

    @property
    def chain_id(self) -> int:
        return self.descriptor.chain_id

    @abstractmethod
    def get_wallet(self, identity: SigningIdentity):
        """Get the write handle that signs and submits transactions for an identity."""

    @abstractmethod
    def approve(self, identity: SigningIdentity, amount: int) -> str | None:
        """Allow the token messenger to pull ``amount`` of USDC.

        :return:
            Transaction reference, or ``None`` if the chain family needs no allowance
        """

    @abstractmethod
    def burn(self, identity: SigningIdentity, request: BurnRequest) -> str:
        """Burn USDC with ``depositForBurn``."""

    @abstractmethod
    def mint(self, identity: SigningIdentity, message: bytes, attestation: bytes, recipient_owner: str | None = None) -> str:
        """Mint USDC with ``receiveMessage`` using an attested message.

        :param recipient_owner:
            Wallet behind the mint recipient of the message.
            Solana uses it to create the recipient's token account if it does not exist yet.
        """

    @abstractmethod
    def is_message_received(self, message: bytes) -> bool:
        """Has the message nonce already been consumed on this chain.

        A mint whose confirmation was lost may still have landed.
        """

    @abstractmethod
    def derive_recipient(self, owner: str) -> bytes:
        """32-byte mint recipient for a wallet address on this chain.

        EVM pads the address, Solana uses the owner's associated token account.
        """

    @abstractmethod
    def token_balance(self, owner: str) -> int:
        """Raw USDC token balance, 6 decimals."""

    @abstractmethod
    def native_balance(self, owner: str) -> int:
        """Raw gas token balance, wei or lamports."""

    def balance_of(self, owner: str) -> Decimal:
        """USDC balance as a decimal.

        Chains where USDC is the gas token report the native balance with 18 decimals.
        """
        if self.descriptor.usdc_is_native_gas:
            return Decimal(self.native_balance(owner)) / Decimal(10**NATIVE_EVM_DECIMALS)
        return Decimal(self.token_balance(owner)) / Decimal(10**USDC_DECIMALS)

    def native_balance_decimal(self, owner: str) -> Decimal:
        """Gas token balance as a decimal."""
        return Decimal(self.native_balance(owner)) / Decimal(10**self.descriptor.native_decimals)

    @property
    def minimum_gas_balance(self) -> Decimal:
        """Gas token balance we want to see before submitting a mint."""
        return MIN_NATIVE_GAS_BALANCE

    def has_gas_for_mint(self, owner: str) -> tuple[bool, Decimal]:
        """Check the native balance covers a mint transaction.

        :return:
            Tuple (enough, current balance)
        """
        balance = self.native_balance_decimal(owner)
        return balance >= self.minimum_gas_balance, balance
