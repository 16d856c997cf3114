"""Anchor instruction encoding for the CCTP V2 Solana programs.

We build the two instructions we need by hand instead of loading the programs' IDL:

- ``TokenMessengerMinterV2.deposit_for_burn``
- ``MessageTransmitterV2.receive_message``

Anchor instruction data is an 8-byte discriminator, ``sha256("global:<name>")[:8]``,
followed by the Borsh encoded arguments. Borsh integers are little endian
and ``Vec<u8>`` is prefixed with its u32 length.
"""

import hashlib
import struct

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from cctp_bridge.adapter import BurnRequest
from cctp_bridge.solana.pda import CCTPPrograms

#: Associated token program instruction index of ``CreateIdempotent``
CREATE_IDEMPOTENT_INSTRUCTION = 1


def anchor_discriminator(name: str) -> bytes:
    """First 8 bytes of ``sha256("global:<name>")``."""
    return hashlib.sha256(f"global:{name}".encode("utf-8")).digest()[:8]


def encode_deposit_for_burn_data(request: BurnRequest) -> bytes:
    """Instruction data of ``deposit_for_burn``.

    ``DepositForBurnParams``: amount u64, destination_domain u32, mint_recipient Pubkey,
    destination_caller Pubkey, max_fee u64, min_finality_threshold u32.
    """
    return (
        anchor_discriminator("deposit_for_burn")
        + struct.pack("<Q", request.amount)
        + struct.pack("<I", request.destination_domain)
        + request.mint_recipient
        + request.destination_caller
        + struct.pack("<Q", request.max_fee)
        + struct.pack("<I", request.min_finality_threshold)
    )


def encode_receive_message_data(message: bytes, attestation: bytes) -> bytes:
    """Instruction data of ``receive_message``.

    ``ReceiveMessageParams``: message Vec<u8>, attestation Vec<u8>.
    """
    return (
        anchor_discriminator("receive_message")
        + struct.pack("<I", len(message))
        + message
        + struct.pack("<I", len(attestation))
        + attestation
    )


def build_deposit_for_burn_instruction(
    programs: CCTPPrograms,
    owner: Pubkey,
    burn_token_account: Pubkey,
    mint: Pubkey,
    message_sent_event_data: Pubkey,
    request: BurnRequest,
) -> Instruction:
    """Burn USDC from the owner's token account.

    :param burn_token_account:
        Owner's USDC associated token account

    :param message_sent_event_data:
        A fresh keypair's pubkey, the program stores the outgoing message there.
        The keypair must sign the transaction.
    """
    accounts = [
        AccountMeta(owner, is_signer=True, is_writable=False),
        # event_rent_payer
        AccountMeta(owner, is_signer=True, is_writable=True),
        AccountMeta(programs.sender_authority(), is_signer=False, is_writable=False),
        AccountMeta(burn_token_account, is_signer=False, is_writable=True),
        AccountMeta(programs.denylist_account(owner), is_signer=False, is_writable=False),
        AccountMeta(programs.message_transmitter_state(), is_signer=False, is_writable=True),
        AccountMeta(programs.token_messenger(), is_signer=False, is_writable=False),
        AccountMeta(programs.remote_token_messenger(request.destination_domain), is_signer=False, is_writable=False),
        AccountMeta(programs.token_minter(), is_signer=False, is_writable=False),
        AccountMeta(programs.local_token(mint), is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(message_sent_event_data, is_signer=True, is_writable=True),
        AccountMeta(programs.message_transmitter, is_signer=False, is_writable=False),
        AccountMeta(programs.token_messenger_minter, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(programs.token_messenger_event_authority(), is_signer=False, is_writable=False),
        AccountMeta(programs.token_messenger_minter, is_signer=False, is_writable=False),
    ]
    return Instruction(programs.token_messenger_minter, encode_deposit_for_burn_data(request), accounts)


def build_receive_message_instruction(
    programs: CCTPPrograms,
    payer: Pubkey,
    mint: Pubkey,
    source_domain: int,
    remote_token: bytes,
    nonce: bytes,
    recipient_token_account: Pubkey,
    fee_recipient_token_account: Pubkey,
    message: bytes,
    attestation: bytes,
) -> Instruction:
    """Mint USDC by relaying an attested message.

    The accounts after the message transmitter's own are passed through
    to the token messenger minter's ``handle_receive_finalized_message``.

    :param remote_token:
        32-byte burn token of the source chain, from the message body

    :param nonce:
        32-byte nonce, from the message header
    """
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        # caller
        AccountMeta(payer, is_signer=True, is_writable=False),
        AccountMeta(programs.message_transmitter_authority(), is_signer=False, is_writable=False),
        AccountMeta(programs.message_transmitter_state(), is_signer=False, is_writable=False),
        AccountMeta(programs.used_nonce(nonce), is_signer=False, is_writable=True),
        # receiver
        AccountMeta(programs.token_messenger_minter, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(programs.message_transmitter_event_authority(), is_signer=False, is_writable=False),
        AccountMeta(programs.message_transmitter, is_signer=False, is_writable=False),
        # Remaining accounts for the receiver
        AccountMeta(programs.token_messenger(), is_signer=False, is_writable=False),
        AccountMeta(programs.remote_token_messenger(source_domain), is_signer=False, is_writable=False),
        AccountMeta(programs.token_minter(), is_signer=False, is_writable=True),
        AccountMeta(programs.local_token(mint), is_signer=False, is_writable=True),
        AccountMeta(programs.token_pair(source_domain, remote_token), is_signer=False, is_writable=False),
        AccountMeta(fee_recipient_token_account, is_signer=False, is_writable=True),
        AccountMeta(recipient_token_account, is_signer=False, is_writable=True),
        AccountMeta(programs.custody(mint), is_signer=False, is_writable=True),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(programs.token_messenger_event_authority(), is_signer=False, is_writable=False),
        AccountMeta(programs.token_messenger_minter, is_signer=False, is_writable=False),
    ]
    return Instruction(programs.message_transmitter, encode_receive_message_data(message, attestation), accounts)


def build_create_ata_idempotent_instruction(payer: Pubkey, ata: Pubkey, owner: Pubkey, mint: Pubkey) -> Instruction:
    """Create an associated token account unless it already exists."""
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(ata, is_signer=False, is_writable=True),
        AccountMeta(owner, is_signer=False, is_writable=False),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(ASSOCIATED_TOKEN_PROGRAM_ID, bytes([CREATE_IDEMPOTENT_INSTRUCTION]), accounts)
