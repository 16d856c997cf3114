"""Signing identities.

A signing identity wraps the private key of one chain family:

- :py:class:`EVMIdentity` wraps :py:class:`eth_account.signers.local.LocalAccount`
- :py:class:`SolanaIdentity` wraps :py:class:`solders.keypair.Keypair`

Identities are always passed explicitly to the code that signs.
There is no process-wide connected wallet.

Malformed secrets raise :py:class:`~cctp_bridge.errors.MalformedCredential`,
never a silently wrong key.
"""

import json
import logging
from abc import ABC, abstractmethod

import base58
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from cctp_bridge.chain import ChainFamily
from cctp_bridge.errors import MalformedCredential

logger = logging.getLogger(__name__)


class SigningIdentity(ABC):
    """Credential of one chain family."""

    #: Which chains this identity can sign for
    family: ChainFamily

    @property
    @abstractmethod
    def address(self) -> str:
        """Public address in the chain family's native text form."""

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.address}>"


class EVMIdentity(SigningIdentity):
    """EVM externally owned account."""

    family = ChainFamily.evm

    def __init__(self, account: LocalAccount):
        self.account = account

    @property
    def address(self) -> HexAddress:
        return self.account.address


class SolanaIdentity(SigningIdentity):
    """Solana ed25519 keypair."""

    family = ChainFamily.solana

    def __init__(self, keypair: Keypair):
        self.keypair = keypair

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()


def _is_hex(value: str) -> bool:
    try:
        bytes.fromhex(value)
        return True
    except ValueError:
        return False


def parse_evm_private_key(secret: str) -> EVMIdentity:
    """Decode an EVM private key.

    :param secret:
        32 bytes as hex, with or without ``0x`` prefix

    :raises MalformedCredential:
        Wrong length or not hex
    """
    key = secret.strip()
    if key.startswith(("0x", "0X")):
        key = key[2:]

    if len(key) != 64 or not _is_hex(key):
        # Do not echo the secret back
        raise MalformedCredential(f"EVM private key must be 32 bytes as hex, got {len(key)} characters")

    try:
        account = Account.from_key("0x" + key)
    except ValueError as e:
        # Out of curve order, zero key
        raise MalformedCredential(f"EVM private key is not a valid secp256k1 key: {e}") from e

    return EVMIdentity(account)


def _decode_solana_secret(key: str) -> bytes:
    if key.startswith("["):
        # Solana CLI keypair file format
        try:
            data = json.loads(key)
            return bytes(data)
        except (ValueError, TypeError) as e:
            raise MalformedCredential(f"Solana private key looks like a JSON byte array, but cannot be decoded: {e}") from e

    if len(key) == 64 and _is_hex(key):
        return bytes.fromhex(key)

    try:
        return base58.b58decode(key)
    except ValueError as e:
        raise MalformedCredential("Solana private key is neither base58, hex nor a JSON byte array") from e


def parse_solana_private_key(secret: str) -> SolanaIdentity:
    """Decode a Solana private key.

    Accepted forms:

    - base58 64-byte secret key (what Phantom exports)
    - base58 32-byte seed
    - hex 32-byte seed
    - JSON array of 64 integers (``solana-keygen`` keypair file content)

    :raises MalformedCredential:
        The secret cannot be decoded to a keypair
    """
    key = secret.strip()
    raw = _decode_solana_secret(key)

    try:
        if len(raw) == 64:
            keypair = Keypair.from_bytes(raw)
        elif len(raw) == 32:
            keypair = Keypair.from_seed(raw)
        else:
            raise MalformedCredential(f"Solana private key must decode to 32 or 64 bytes, got {len(raw)} bytes")
    except ValueError as e:
        # solders checks the public half of a 64-byte key matches the seed
        raise MalformedCredential(f"Solana private key is not a valid ed25519 keypair: {e}") from e

    return SolanaIdentity(keypair)
