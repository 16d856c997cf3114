"""Exceptions raised by the CCTP bridge.

Every error derives from :py:class:`CCTPBridgeError`.

- Phase failures (:py:class:`ApprovalFailed`, :py:class:`BurnFailed`, :py:class:`MintFailed`, ...)
  end a :py:class:`~cctp_bridge.transfer.TransferSession` in the error state

- :py:class:`AttestationPending` and :py:class:`TransientTransactionError` are control flow
  signals that are retried and never surface in a session on their own

- :py:class:`SecondaryHookFailed` is only ever logged
"""


class CCTPBridgeError(Exception):
    """Base class for all bridge errors."""


class UnknownChain(CCTPBridgeError, KeyError):
    """Chain id is not in the chain registry."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        super().__init__(f"Chain {chain_id} is not supported by the CCTP bridge")

    def __str__(self):
        # KeyError would repr() the message
        return self.args[0]


class CredentialError(CCTPBridgeError):
    """Signing secret problem."""


class MissingCredential(CredentialError):
    """The environment does not carry a secret for the chain family we need."""


class MalformedCredential(CredentialError):
    """A secret is present but cannot be decoded to a key of the chain family."""


class InvalidTransferIntent(CCTPBridgeError, ValueError):
    """Transfer input is rejected before any network call."""


class InvalidPhaseTransition(CCTPBridgeError):
    """State machine was asked to skip or revert a phase."""


class TransactionReverted(CCTPBridgeError):
    """A transaction was included on-chain but failed."""

    def __init__(self, message: str, tx_hash: str | None = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class TransientTransactionError(CCTPBridgeError):
    """Transaction broadcast or execution failed in a way that is worth retrying.

    E.g. underpriced gas, nonce races, receipt wait timed out.
    Validation failures (contract reverts during gas estimation) are not transient.
    """


class TransferFailed(CCTPBridgeError):
    """A transfer phase failed and the session is terminal."""


class ApprovalFailed(TransferFailed):
    """Allowance transaction on the source chain failed."""


class BurnFailed(TransferFailed):
    """``depositForBurn`` on the source chain failed."""


class InsufficientGasBalance(TransferFailed):
    """Destination identity cannot pay for the mint transaction."""


class MintFailed(TransferFailed):
    """``receiveMessage`` on the destination chain failed, possibly after retries."""


class TransferCancelled(TransferFailed):
    """Caller cancelled the session between phases."""


class AttestationPending(CCTPBridgeError):
    """Iris API has not produced a complete attestation yet."""


class AttestationTransportError(CCTPBridgeError):
    """Iris API returned a non-retryable HTTP error or could not be reached."""


class AttestationTimeout(AttestationTransportError):
    """Poll policy maximum wait was exceeded."""


class SecondaryHookFailed(CCTPBridgeError):
    """Post-transfer hook failed. Never fails the transfer."""
