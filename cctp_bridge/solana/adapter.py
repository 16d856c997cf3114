"""Solana chain adapter.

Drives the CCTP V2 programs on Solana:

- No allowance step, the owner signs the burn directly
- ``deposit_for_burn`` burns from the owner's USDC associated token account
- ``receive_message`` mints into the token account named in the message

USDC on Solana lives in token accounts, so the mint recipient of a transfer
to Solana is the recipient wallet's associated token account, not the wallet.
"""

import logging
import struct
import threading
from functools import cached_property

from solana.rpc.api import Client
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from cctp_bridge.adapter import BurnRequest, ChainAdapter
from cctp_bridge.chain import ChainDescriptor
from cctp_bridge.errors import CCTPBridgeError
from cctp_bridge.identity import SolanaIdentity
from cctp_bridge.message import decode_cctp_message
from cctp_bridge.solana.instructions import (
    build_create_ata_idempotent_instruction,
    build_deposit_for_burn_instruction,
    build_receive_message_instruction,
)
from cctp_bridge.solana.pda import CCTPPrograms
from cctp_bridge.solana.wallet import SolanaWallet

logger = logging.getLogger(__name__)

#: SPL token account layout: mint 32, owner 32, amount u64
TOKEN_ACCOUNT_AMOUNT_OFFSET = 64

#: TokenMessenger account layout: discriminator 8, denylister 32, owner 32,
#: pending_owner 32, message_body_version u32, authority_bump u8, fee_recipient 32
TOKEN_MESSENGER_FEE_RECIPIENT_OFFSET = 109


def read_token_account_amount(data: bytes) -> int:
    """Raw amount of an SPL token account."""
    (amount,) = struct.unpack_from("<Q", data, TOKEN_ACCOUNT_AMOUNT_OFFSET)
    return amount


class SolanaChainAdapter(ChainAdapter):
    """CCTP V2 on Solana."""

    def __init__(self, descriptor: ChainDescriptor, client: Client):
        super().__init__(descriptor)
        self.client = client
        self.programs = CCTPPrograms.from_strings(descriptor.messenger_address, descriptor.transmitter_address)
        self._wallets: dict[str, SolanaWallet] = {}
        self._wallet_lock = threading.Lock()

    @cached_property
    def mint_address(self) -> Pubkey:
        """USDC mint."""
        return Pubkey.from_string(self.descriptor.token_address)

    def get_wallet(self, identity: SolanaIdentity) -> SolanaWallet:
        assert isinstance(identity, SolanaIdentity), f"Solana chain {self.descriptor.name} cannot sign with {identity}"
        with self._wallet_lock:
            wallet = self._wallets.get(identity.address)
            if wallet is None:
                wallet = SolanaWallet(self.client, identity.keypair)
                self._wallets[identity.address] = wallet
        return wallet

    def get_token_account(self, owner: Pubkey | str) -> Pubkey:
        """Associated USDC token account of a wallet."""
        if isinstance(owner, str):
            owner = Pubkey.from_string(owner)
        return get_associated_token_address(owner, self.mint_address)

    def approve(self, identity: SolanaIdentity, amount: int) -> None:
        # The owner signs deposit_for_burn, SPL needs no separate allowance
        return None

    def burn(self, identity: SolanaIdentity, request: BurnRequest) -> str:
        wallet = self.get_wallet(identity)

        # The program writes the outgoing message to a new account,
        # it must sign to prove we own it
        event_data = Keypair()

        ix = build_deposit_for_burn_instruction(
            self.programs,
            owner=wallet.pubkey,
            burn_token_account=self.get_token_account(wallet.pubkey),
            mint=self.mint_address,
            message_sent_event_data=event_data.pubkey(),
            request=request,
        )

        logger.info(
            "Preparing Solana deposit_for_burn: amount=%d, destination_domain=%d, event data account=%s",
            request.amount,
            request.destination_domain,
            event_data.pubkey(),
        )
        return wallet.send_instructions([ix], extra_signers=[event_data])

    def fetch_fee_recipient(self) -> Pubkey:
        """Read the fee recipient wallet from the TokenMessenger account."""
        token_messenger = self.programs.token_messenger()
        account = self.client.get_account_info(token_messenger).value
        if account is None:
            raise CCTPBridgeError(f"TokenMessenger account {token_messenger} not found on {self.descriptor.name}")
        data = bytes(account.data)
        start = TOKEN_MESSENGER_FEE_RECIPIENT_OFFSET
        return Pubkey.from_bytes(data[start : start + 32])

    def mint(self, identity: SolanaIdentity, message: bytes, attestation: bytes, recipient_owner: str | None = None) -> str:
        wallet = self.get_wallet(identity)
        decoded = decode_cctp_message(message)

        recipient_token_account = Pubkey.from_bytes(decoded.mint_recipient)
        fee_recipient_token_account = get_associated_token_address(self.fetch_fee_recipient(), self.mint_address)

        owner = Pubkey.from_string(recipient_owner) if recipient_owner else wallet.pubkey

        instructions = []

        if recipient_token_account == self.get_token_account(owner):
            # First USDC ever received by the recipient, we pay the rent
            instructions.append(build_create_ata_idempotent_instruction(wallet.pubkey, recipient_token_account, owner, self.mint_address))
        else:
            logger.info("Mint recipient %s is not an associated token account of %s, it must exist already", recipient_token_account, owner)

        instructions.append(
            build_receive_message_instruction(
                self.programs,
                payer=wallet.pubkey,
                mint=self.mint_address,
                source_domain=decoded.source_domain,
                remote_token=decoded.burn_token,
                nonce=decoded.nonce,
                recipient_token_account=recipient_token_account,
                fee_recipient_token_account=fee_recipient_token_account,
                message=message,
                attestation=attestation,
            )
        )

        logger.info(
            "Preparing Solana receive_message: source_domain=%d, recipient=%s, message_len=%d, attestation_len=%d",
            decoded.source_domain,
            recipient_token_account,
            len(message),
            len(attestation),
        )
        return wallet.send_instructions(instructions)

    def is_message_received(self, message: bytes) -> bool:
        # receive_message creates the used nonce account
        used_nonce = self.programs.used_nonce(decode_cctp_message(message).nonce)
        return self.client.get_account_info(used_nonce).value is not None

    def derive_recipient(self, owner: str) -> bytes:
        return bytes(self.get_token_account(owner))

    def token_balance(self, owner: str) -> int:
        token_account = self.get_token_account(owner)
        account = self.client.get_account_info(token_account).value
        if account is None:
            # Never received USDC
            return 0
        if account.owner != TOKEN_PROGRAM_ID:
            logger.warning("Account %s is not owned by the token program, owner is %s", token_account, account.owner)
            return 0
        return read_token_account_amount(bytes(account.data))

    def native_balance(self, owner: str) -> int:
        return self.client.get_balance(Pubkey.from_string(owner)).value
