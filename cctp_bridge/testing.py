"""CCTP V2 test helpers.

Craft messages and Iris API replies so the transfer flow can be exercised
without a live attestation service.

Example::

    from cctp_bridge.testing import craft_cctp_message, make_iris_response

    message = craft_cctp_message(
        source_domain=6,  # Base
        destination_domain=5,  # Solana
        nonce=1,
        mint_recipient=bytes(token_account),
        amount=100 * 10**6,  # 100 USDC
        burn_token=USDC_BASE_SEPOLIA,
    )
    reply = make_iris_response(message, attestation=b"\\x01" * 65)
"""

import struct

from eth_typing import HexAddress

from cctp_bridge.constants import FINALITY_THRESHOLD_STANDARD, TOKEN_MESSENGER_V2_TESTNET
from cctp_bridge.message import MIN_MESSAGE_LENGTH, encode_mint_recipient

#: CCTP message version for V2 protocol
CCTP_MESSAGE_VERSION = 1

#: Burn message body version
BURN_MESSAGE_VERSION = 1


def _to_bytes32(value: HexAddress | str | bytes) -> bytes:
    if isinstance(value, bytes):
        assert len(value) == 32, f"Expected bytes32, got {len(value)} bytes"
        return value
    return encode_mint_recipient(value)


def craft_cctp_message(
    source_domain: int,
    destination_domain: int,
    nonce: int,
    mint_recipient: HexAddress | str | bytes,
    amount: int,
    burn_token: HexAddress | str | bytes,
    min_finality_threshold: int = FINALITY_THRESHOLD_STANDARD,
    max_fee: int = 0,
    hook_data: bytes = b"",
) -> bytes:
    """Craft a CCTP V2 burn message.

    See :py:mod:`cctp_bridge.message` for the layout.

    :param mint_recipient:
        EVM address, or raw bytes32 for non-EVM recipients such as a Solana token account

    :param burn_token:
        USDC on the **source** chain, EVM address or raw bytes32

    :return:
        Packed message bytes, 376 bytes plus hook data
    """
    # TokenMessenger is the sender/recipient in the message header
    token_messenger_bytes32 = encode_mint_recipient(TOKEN_MESSENGER_V2_TESTNET)

    body = struct.pack(">I", BURN_MESSAGE_VERSION)
    body += _to_bytes32(burn_token)
    body += _to_bytes32(mint_recipient)
    body += amount.to_bytes(32, byteorder="big")
    body += token_messenger_bytes32  # messageSender
    body += max_fee.to_bytes(32, byteorder="big")
    body += b"\x00" * 32  # feeExecuted, set by attester
    body += b"\x00" * 32  # expirationBlock, set by attester
    body += hook_data

    header = struct.pack(">I", CCTP_MESSAGE_VERSION)
    header += struct.pack(">I", source_domain)
    header += struct.pack(">I", destination_domain)
    header += nonce.to_bytes(32, byteorder="big")
    header += token_messenger_bytes32  # sender
    header += token_messenger_bytes32  # recipient
    header += b"\x00" * 32  # destinationCaller
    header += struct.pack(">I", min_finality_threshold)
    header += struct.pack(">I", min_finality_threshold)  # finalityThresholdExecuted

    message = header + body
    assert len(message) == MIN_MESSAGE_LENGTH + len(hook_data), f"Bad message length {len(message)}"
    return message


def make_iris_response(
    message: bytes,
    attestation: bytes,
    status: str = "complete",
    event_nonce: str = "1",
) -> dict:
    """Build an Iris ``/v2/messages`` JSON reply."""
    return {
        "messages": [
            {
                "status": status,
                "message": "0x" + message.hex(),
                "attestation": "0x" + attestation.hex() if status == "complete" else "PENDING",
                "eventNonce": event_nonce,
            }
        ]
    }
