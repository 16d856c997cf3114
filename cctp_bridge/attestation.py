"""Circle CCTP V2 attestation service client.

Poll Circle's Iris API for burn attestations needed to complete
cross-chain USDC transfers.

After calling ``depositForBurn()`` on the source chain, you must wait for
Circle's attestation service to sign the burn event.

- The API returns 404 until it has indexed the burn transaction. This is not an error.
- Any other HTTP error, or not being able to reach the API, aborts polling.
  We do not want an attestation service outage to look like normal latency.

We use the V2 endpoint for both chain families::

    GET {base}/v2/messages/{source_domain}?transactionHash={tx}

Example::

    from cctp_bridge.attestation import AttestationPoller, AttestationPollPolicy

    poller = AttestationPoller(IRIS_API_SANDBOX_URL, AttestationPollPolicy(poll_interval=5.0))
    record = poller.poll(source_domain=6, tx_ref="0x...")

    # Use record.message and record.attestation
    # with ChainAdapter.mint() on the destination chain
"""

import enum
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable

import requests

from cctp_bridge.constants import (
    DEFAULT_ATTESTATION_POLL_INTERVAL,
    DEFAULT_ATTESTATION_REQUEST_TIMEOUT,
    IRIS_API_SANDBOX_URL,
)
from cctp_bridge.errors import AttestationPending, AttestationTimeout, AttestationTransportError, TransferCancelled

logger = logging.getLogger(__name__)

#: HTTP 404 status code indicating resource not found
HTTP_NOT_FOUND = 404

_EVM_TX_HASH = re.compile(r"^[0-9a-fA-F]{64}$")


class AttestationStatus(enum.Enum):
    pending = "pending"
    complete = "complete"


@dataclass(slots=True, frozen=True)
class AttestationRecord:
    """Attestation data for a CCTP burn event.

    Contains the signed message and attestation needed to call
    ``receiveMessage()`` on the destination chain.
    Only complete records are handed to minting.
    """

    status: AttestationStatus

    #: The CCTP message bytes to relay to the destination chain, bit exact
    message: bytes

    #: The signed attestation bytes from Circle's Iris service
    attestation: bytes

    #: Nonce as reported by Iris, informational
    event_nonce: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.status == AttestationStatus.complete and bool(self.message) and bool(self.attestation)


def is_not_ready_response(response: requests.Response) -> bool:
    """Default classifier: 404 means the burn is not indexed yet."""
    return response.status_code == HTTP_NOT_FOUND


@dataclass(slots=True)
class AttestationPollPolicy:
    """How to poll the attestation service."""

    #: Seconds between attempts
    poll_interval: float = DEFAULT_ATTESTATION_POLL_INTERVAL

    #: Give up after this many seconds, ``None`` polls forever
    max_wait: float | None = None

    #: Seconds for a single HTTP request
    request_timeout: float = DEFAULT_ATTESTATION_REQUEST_TIMEOUT

    #: Responses for which this returns ``True`` mean "try again later"
    is_not_ready: Callable[[requests.Response], bool] = is_not_ready_response

    #: Injected for tests
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    #: Injected for tests
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)


def normalise_tx_ref(tx_ref: str) -> str:
    """Iris needs 0x prefixed EVM hashes.

    Solana signatures are base58 and passed as is.
    """
    if _EVM_TX_HASH.match(tx_ref):
        return f"0x{tx_ref}"
    return tx_ref


def _decode_hex(value: str) -> bytes:
    return bytes.fromhex(value.removeprefix("0x"))


def parse_attestation_response(data: dict) -> AttestationRecord:
    """Turn an Iris ``/v2/messages`` JSON reply into a record.

    Only the first message is looked at. We burn once per transaction.

    :raises AttestationPending:
        Messages missing, or the first one is not complete yet
    """
    messages = data.get("messages") or []
    if not messages:
        raise AttestationPending("No messages in the attestation response yet")

    msg = messages[0]
    status = msg.get("status", "")
    attestation_hex = msg.get("attestation")
    message_hex = msg.get("message")

    if status != "complete" or not attestation_hex or attestation_hex == "PENDING" or not message_hex or message_hex == "0x":
        raise AttestationPending(f"Attestation status: {status}")

    return AttestationRecord(
        status=AttestationStatus.complete,
        message=_decode_hex(message_hex),
        attestation=_decode_hex(attestation_hex),
        event_nonce=msg.get("eventNonce"),
    )


class AttestationPoller:
    """Poll Iris until the burn is attested.

    :param session:
        ``requests.Session`` or anything with a compatible ``get()``
    """

    def __init__(
        self,
        api_base_url: str = IRIS_API_SANDBOX_URL,
        policy: AttestationPollPolicy | None = None,
        session: requests.Session | None = None,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.policy = policy or AttestationPollPolicy()
        self.session = session or requests.Session()

    def __repr__(self):
        return f"<AttestationPoller {self.api_base_url} {self.policy}>"

    def get_url(self, source_domain: int, tx_ref: str) -> str:
        return f"{self.api_base_url}/v2/messages/{source_domain}?transactionHash={normalise_tx_ref(tx_ref)}"

    def fetch_once(self, source_domain: int, tx_ref: str) -> AttestationRecord:
        """Make one request.

        :raises AttestationPending:
            Not indexed or not complete yet

        :raises AttestationTransportError:
            Any other failure
        """
        url = self.get_url(source_domain, tx_ref)

        try:
            response = self.session.get(url, timeout=self.policy.request_timeout)
        except requests.RequestException as e:
            raise AttestationTransportError(f"Could not reach attestation service at {url}: {e}") from e

        # Iris API returns 404 when the transaction is not yet indexed;
        # treat it as "pending" and retry.
        if self.policy.is_not_ready(response):
            raise AttestationPending(f"Attestation not yet indexed ({response.status_code})")

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise AttestationTransportError(f"Attestation service returned HTTP {response.status_code} for {url}: {response.text[:200]}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise AttestationTransportError(f"Attestation service returned non-JSON reply for {url}") from e

        return parse_attestation_response(data)

    def poll(
        self,
        source_domain: int,
        tx_ref: str,
        should_stop: Callable[[], bool] | None = None,
        on_attempt: Callable[[int, float, str], None] | None = None,
    ) -> AttestationRecord:
        """Poll until the attestation is complete.

        :param source_domain:
            CCTP domain of the burn chain

        :param tx_ref:
            Burn transaction hash or Solana signature

        :param should_stop:
            Checked before every sleep. Return ``True`` to cancel.

        :param on_attempt:
            Called after every not-ready attempt with (attempt, elapsed seconds, reason)

        :raises AttestationTransportError:
            Non-404 HTTP error or network failure

        :raises AttestationTimeout:
            Policy ``max_wait`` exceeded

        :raises TransferCancelled:
            ``should_stop`` returned ``True``
        """
        policy = self.policy
        started = policy.clock()
        attempt = 0

        while True:
            attempt += 1
            elapsed = policy.clock() - started

            logger.info(
                "Polling CCTP attestation: domain=%s, tx=%s, attempt=%d, elapsed=%.1fs",
                source_domain,
                tx_ref,
                attempt,
                elapsed,
            )

            try:
                record = self.fetch_once(source_domain, tx_ref)
                logger.info("Attestation complete after %d attempts", attempt)
                return record
            except AttestationPending as e:
                reason = str(e)
                logger.info("%s, retrying in %.1fs", reason, policy.poll_interval)

            if on_attempt is not None:
                on_attempt(attempt, elapsed, reason)

            if policy.max_wait is not None and policy.clock() - started >= policy.max_wait:
                raise AttestationTimeout(f"CCTP attestation not ready after {policy.max_wait}s for tx {tx_ref} on domain {source_domain}")

            if should_stop is not None and should_stop():
                raise TransferCancelled(f"Attestation polling cancelled after {attempt} attempts")

            policy.sleep(policy.poll_interval)


def fetch_attestation(
    source_domain: int,
    transaction_hash: str,
    timeout: float | None = 300.0,
    poll_interval: float = DEFAULT_ATTESTATION_POLL_INTERVAL,
    api_base_url: str = IRIS_API_SANDBOX_URL,
) -> AttestationRecord:
    """Poll the Iris API until attestation is ready or timeout.

    Shorthand for :py:meth:`AttestationPoller.poll`.

    :param timeout:
        Maximum seconds to wait for attestation. ``None`` waits forever.
    """
    poller = AttestationPoller(api_base_url, AttestationPollPolicy(poll_interval=poll_interval, max_wait=timeout))
    return poller.poll(source_domain, transaction_hash)


def is_attestation_complete(
    source_domain: int,
    transaction_hash: str,
    api_base_url: str = IRIS_API_SANDBOX_URL,
) -> bool:
    """One-shot check if attestation is ready.

    :return:
        ``True`` if attestation is complete and available.
    """
    poller = AttestationPoller(api_base_url)
    try:
        return poller.fetch_once(source_domain, transaction_hash).is_complete
    except AttestationPending:
        return False
    except AttestationTransportError:
        logger.warning(
            "Failed to check attestation status for tx %s",
            transaction_hash,
            exc_info=True,
        )
        return False
