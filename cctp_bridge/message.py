"""CCTP V2 message format.

- Encode recipients to the ``bytes32`` form used by ``depositForBurn``
- Decode attested messages, so the destination side can find the nonce,
  source domain and burn token it needs for minting

Message header (148 bytes):

- ``uint32 version``
- ``uint32 sourceDomain``
- ``uint32 destinationDomain``
- ``bytes32 nonce``
- ``bytes32 sender``, TokenMessenger on source
- ``bytes32 recipient``, TokenMessenger on destination
- ``bytes32 destinationCaller``, zero for anyone
- ``uint32 minFinalityThreshold``
- ``uint32 finalityThresholdExecuted``

Burn message body (228 bytes + hook data):

- ``uint32 version``
- ``bytes32 burnToken``
- ``bytes32 mintRecipient``
- ``uint256 amount``
- ``bytes32 messageSender``
- ``uint256 maxFee``
- ``uint256 feeExecuted``
- ``uint256 expirationBlock``
- ``bytes hookData``

All integers are big endian.

See `Circle's CCTP specification <https://github.com/circlefin/evm-cctp-contracts>`__.
"""

from dataclasses import dataclass

from eth_typing import HexAddress
from solders.pubkey import Pubkey
from web3 import Web3

from cctp_bridge.chain import ChainFamily

#: Size of the message header
HEADER_LENGTH = 148

#: Size of the burn message body without hook data
BURN_BODY_LENGTH = 228

#: Header + burn body
MIN_MESSAGE_LENGTH = HEADER_LENGTH + BURN_BODY_LENGTH


@dataclass(slots=True, frozen=True)
class CCTPMessage:
    """Decoded CCTP V2 burn message."""

    version: int
    source_domain: int
    destination_domain: int

    #: 32 bytes, assigned by the attestation service
    nonce: bytes

    sender: bytes
    recipient: bytes
    destination_caller: bytes
    min_finality_threshold: int
    finality_threshold_executed: int

    body_version: int

    #: USDC on the source chain, as bytes32
    burn_token: bytes

    mint_recipient: bytes
    amount: int
    message_sender: bytes
    max_fee: int
    fee_executed: int
    expiration_block: int
    hook_data: bytes


def _uint(data: bytes, start: int, end: int) -> int:
    return int.from_bytes(data[start:end], byteorder="big")


def decode_cctp_message(message: bytes) -> CCTPMessage:
    """Decode an attested CCTP V2 burn message.

    :param message:
        The ``message`` bytes returned by the Iris API

    :raises ValueError:
        Message is too short to be a burn message
    """
    if len(message) < MIN_MESSAGE_LENGTH:
        raise ValueError(f"CCTP burn message must be at least {MIN_MESSAGE_LENGTH} bytes, got {len(message)}")

    return CCTPMessage(
        version=_uint(message, 0, 4),
        source_domain=_uint(message, 4, 8),
        destination_domain=_uint(message, 8, 12),
        nonce=bytes(message[12:44]),
        sender=bytes(message[44:76]),
        recipient=bytes(message[76:108]),
        destination_caller=bytes(message[108:140]),
        min_finality_threshold=_uint(message, 140, 144),
        finality_threshold_executed=_uint(message, 144, 148),
        body_version=_uint(message, 148, 152),
        burn_token=bytes(message[152:184]),
        mint_recipient=bytes(message[184:216]),
        amount=_uint(message, 216, 248),
        message_sender=bytes(message[248:280]),
        max_fee=_uint(message, 280, 312),
        fee_executed=_uint(message, 312, 344),
        expiration_block=_uint(message, 344, 376),
        hook_data=bytes(message[376:]),
    )


def encode_mint_recipient(address: HexAddress | str) -> bytes:
    """Convert an Ethereum address to bytes32 format for the ``mintRecipient`` parameter.

    CCTP uses bytes32 for recipient addresses to support non-EVM chains.
    For EVM chains, the address is left-padded with zeros to 32 bytes.

    :param address:
        Ethereum address (0x-prefixed hex string)

    :return:
        32-byte representation of the address
    """
    address = Web3.to_checksum_address(address)
    # Remove 0x prefix, left-pad to 64 hex chars (32 bytes)
    return bytes.fromhex(address[2:].lower().zfill(64))


def decode_mint_recipient(value: bytes) -> HexAddress:
    """Convert a bytes32 recipient back to a checksummed Ethereum address.

    :raises ValueError:
        The upper 12 bytes are not zero, so this is not an EVM address
    """
    if len(value) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(value)}")
    if any(value[:12]):
        raise ValueError(f"Not a padded EVM address: 0x{value.hex()}")
    return Web3.to_checksum_address(value[12:])


def encode_solana_recipient(pubkey: Pubkey | str) -> bytes:
    """Solana pubkeys are already 32 bytes."""
    if isinstance(pubkey, str):
        pubkey = Pubkey.from_string(pubkey)
    return bytes(pubkey)


def encode_recipient(family: ChainFamily, address: str) -> bytes:
    """Encode a recipient of either chain family to bytes32.

    For Solana, ``address`` must already be the token account that receives the mint,
    not the wallet. See :py:meth:`cctp_bridge.adapter.ChainAdapter.derive_recipient`.
    """
    match family:
        case ChainFamily.evm:
            return encode_mint_recipient(address)
        case ChainFamily.solana:
            return encode_solana_recipient(address)
        case _:
            raise NotImplementedError(f"Unknown chain family {family}")
