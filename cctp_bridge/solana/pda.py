"""Program derived addresses of the CCTP V2 Solana programs.

Two programs are involved:

- ``MessageTransmitterV2`` keeps the message nonces and the attester set
- ``TokenMessengerMinterV2`` burns and mints USDC

Domain ids are used as seeds in their decimal text form,
e.g. the remote token messenger of Base Sepolia is
``["remote_token_messenger", b"6"]``.
"""

from dataclasses import dataclass

from solders.pubkey import Pubkey


def find_pda(seeds: list[bytes], program_id: Pubkey) -> Pubkey:
    """Find a program derived address, drop the bump."""
    address, _bump = Pubkey.find_program_address(seeds, program_id)
    return address


def _domain_seed(domain: int) -> bytes:
    return str(domain).encode("utf-8")


@dataclass(slots=True, frozen=True)
class CCTPPrograms:
    """Program ids of one CCTP V2 Solana deployment.

    Example:

    .. code-block:: python

        programs = CCTPPrograms.from_strings(descriptor.messenger_address, descriptor.transmitter_address)
        custody = programs.custody(usdc_mint)
    """

    token_messenger_minter: Pubkey
    message_transmitter: Pubkey

    @classmethod
    def from_strings(cls, token_messenger_minter: str, message_transmitter: str) -> "CCTPPrograms":
        return cls(
            token_messenger_minter=Pubkey.from_string(token_messenger_minter),
            message_transmitter=Pubkey.from_string(message_transmitter),
        )

    # Message transmitter accounts

    def message_transmitter_state(self) -> Pubkey:
        return find_pda([b"message_transmitter"], self.message_transmitter)

    def message_transmitter_authority(self) -> Pubkey:
        """Authority the message transmitter uses to call the receiver program."""
        return find_pda([b"message_transmitter_authority", bytes(self.token_messenger_minter)], self.message_transmitter)

    def message_transmitter_event_authority(self) -> Pubkey:
        return find_pda([b"__event_authority"], self.message_transmitter)

    def used_nonce(self, nonce: bytes) -> Pubkey:
        """Account that marks a message nonce consumed.

        :param nonce:
            32-byte nonce from the message header
        """
        assert len(nonce) == 32, f"CCTP V2 nonce is 32 bytes, got {len(nonce)}"
        return find_pda([b"used_nonce", nonce], self.message_transmitter)

    # Token messenger minter accounts

    def token_messenger(self) -> Pubkey:
        return find_pda([b"token_messenger"], self.token_messenger_minter)

    def token_minter(self) -> Pubkey:
        return find_pda([b"token_minter"], self.token_messenger_minter)

    def sender_authority(self) -> Pubkey:
        return find_pda([b"sender_authority"], self.token_messenger_minter)

    def token_messenger_event_authority(self) -> Pubkey:
        return find_pda([b"__event_authority"], self.token_messenger_minter)

    def local_token(self, mint: Pubkey) -> Pubkey:
        return find_pda([b"local_token", bytes(mint)], self.token_messenger_minter)

    def custody(self, mint: Pubkey) -> Pubkey:
        return find_pda([b"custody", bytes(mint)], self.token_messenger_minter)

    def remote_token_messenger(self, remote_domain: int) -> Pubkey:
        return find_pda([b"remote_token_messenger", _domain_seed(remote_domain)], self.token_messenger_minter)

    def token_pair(self, remote_domain: int, remote_token: bytes) -> Pubkey:
        """Mapping of a remote chain's USDC to the local mint.

        :param remote_token:
            32-byte burn token from the message body
        """
        assert len(remote_token) == 32, f"Remote token must be 32 bytes, got {len(remote_token)}"
        return find_pda([b"token_pair", _domain_seed(remote_domain), remote_token], self.token_messenger_minter)

    def denylist_account(self, owner: Pubkey) -> Pubkey:
        return find_pda([b"denylist_account", bytes(owner)], self.token_messenger_minter)
