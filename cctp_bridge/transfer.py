"""Cross-chain USDC transfer state machine.

One transfer moves USDC from a source chain to a destination chain with CCTP V2:

1. **Approving**: allow the token messenger to pull USDC (no-op on Solana)
2. **Burning**: ``depositForBurn`` on the source chain
3. **Waiting attestation**: poll Circle's Iris API until the burn is attested
4. **Minting**: ``receiveMessage`` on the destination chain
5. **Completed**, optionally followed by the carbon points hook on the rewards chain

Phases run strictly in this order. Any failure moves the session to the absorbing
``error`` state. Terminal sessions are never reused, create a new one to retry.

Both chain families are driven through :py:class:`~cctp_bridge.adapter.ChainAdapter`,
this module never looks at the family.

Example:

.. code-block:: python

    factory = AccountFactory(BridgeConfig.from_env())
    executor = CCTPTransferExecutor(factory)

    intent = TransferIntent(
        source_chain_id=84532,  # Base Sepolia
        destination_chain_id=103,  # Solana Devnet
        amount="1.5",
        speed_mode=SpeedMode.fast,
    )

    session = executor.execute_transfer(intent)
    print("\\n".join(session.log))
    session.raise_for_error()
"""

import datetime
import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Callable

import requests

from cctp_bridge.adapter import BurnRequest, ChainAdapter
from cctp_bridge.attestation import AttestationPoller, AttestationPollPolicy, AttestationRecord
from cctp_bridge.carbon import is_rewards_chain, mint_loyalty_credit
from cctp_bridge.chain import describe, get_chain_name
from cctp_bridge.constants import (
    DEFAULT_MINT_MAX_RETRIES,
    DEFAULT_MINT_RETRY_BACKOFF,
    FINALITY_THRESHOLD_FAST,
    FINALITY_THRESHOLD_STANDARD,
    USDC_DECIMALS,
)
from cctp_bridge.errors import (
    ApprovalFailed,
    AttestationTransportError,
    BurnFailed,
    CredentialError,
    InsufficientGasBalance,
    InvalidPhaseTransition,
    InvalidTransferIntent,
    MintFailed,
    TransactionReverted,
    TransferCancelled,
    TransferFailed,
    TransientTransactionError,
)
from cctp_bridge.identity import SigningIdentity
from cctp_bridge.provider import AccountFactory

logger = logging.getLogger(__name__)


class TransferPhase(enum.Enum):
    """Phase of a single CCTP transfer."""

    idle = "idle"
    approving = "approving"
    burning = "burning"
    waiting_attestation = "waiting_attestation"
    minting = "minting"
    completed = "completed"

    #: Absorbing failure state, reachable from every non-terminal phase
    error = "error"


#: Forward order of the happy path
PHASE_ORDER = (
    TransferPhase.idle,
    TransferPhase.approving,
    TransferPhase.burning,
    TransferPhase.waiting_attestation,
    TransferPhase.minting,
    TransferPhase.completed,
)

TERMINAL_PHASES = {TransferPhase.completed, TransferPhase.error}


class SpeedMode(enum.Enum):
    """How final the burn must be before Iris attests it."""

    #: Confirmed blocks, may incur a fee
    fast = "fast"

    #: Finalized blocks
    standard = "standard"

    @property
    def finality_threshold(self) -> int:
        if self == SpeedMode.fast:
            return FINALITY_THRESHOLD_FAST
        return FINALITY_THRESHOLD_STANDARD


def parse_usdc_amount(amount: str) -> int:
    """Convert a decimal USDC string to raw 6 decimal units.

    :raises InvalidTransferIntent:
        Not a positive number with at most 6 decimals
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise InvalidTransferIntent(f"Amount is not a number: {amount!r}") from e

    if not value.is_finite() or value <= 0:
        raise InvalidTransferIntent(f"Amount must be positive: {amount!r}")

    raw = value * (10**USDC_DECIMALS)
    if raw != raw.to_integral_value():
        raise InvalidTransferIntent(f"USDC has {USDC_DECIMALS} decimals, got {amount!r}")

    return int(raw)


@dataclass(slots=True, frozen=True)
class TransferIntent:
    """What the user wants to transfer.

    :raises InvalidTransferIntent:
        On construction, if ``amount`` is not a positive USDC amount
    """

    source_chain_id: int

    destination_chain_id: int

    #: Positive decimal string, e.g. ``"10.5"``
    amount: str

    speed_mode: SpeedMode = SpeedMode.standard

    #: Where to mint. Defaults to our own address on the destination chain.
    #:
    #: For Solana this is the wallet, the USDC token account is derived from it.
    recipient_address: str | None = None

    #: Fee cap in raw units. Defaults to amount minus one unit.
    max_fee: int | None = None

    #: ``amount`` in 6 decimal units, parsed once
    _raw_amount: int = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # Frozen, so bypass our own __setattr__
        object.__setattr__(self, "_raw_amount", parse_usdc_amount(self.amount))

    def validate(self):
        """Check the intent without touching the network.

        :raises UnknownChain:
            Either chain is not in the registry

        :raises InvalidTransferIntent:
            Same source and destination, or a bad fee
        """
        describe(self.source_chain_id)
        describe(self.destination_chain_id)

        if self.source_chain_id == self.destination_chain_id:
            raise InvalidTransferIntent(f"Source and destination must differ, both are {get_chain_name(self.source_chain_id)}")

        if self.max_fee is not None and not (0 <= self.max_fee < self.raw_amount):
            raise InvalidTransferIntent(f"max_fee must be between 0 and the amount, got {self.max_fee}")

    @property
    def raw_amount(self) -> int:
        return self._raw_amount

    def get_max_fee(self) -> int:
        """Fee cap handed to ``depositForBurn``.

        Default is the amount minus one smallest unit: pay whatever the fast
        transfer fee is, as long as at least one unit arrives.
        """
        if self.max_fee is not None:
            return self.max_fee
        return max(self.raw_amount - 1, 0)


@dataclass(slots=True)
class MintRetryPolicy:
    """Retries of the mint transaction after transient failures.

    Retry ``n`` waits ``n * backoff`` seconds.
    """

    max_retries: int = DEFAULT_MINT_MAX_RETRIES

    backoff: float = DEFAULT_MINT_RETRY_BACKOFF

    #: Injected for tests
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def get_delay(self, retry: int) -> float:
        return self.backoff * retry


#: Called with every new log line
LogCallback = Callable[["TransferSession", str], None]

#: Called with every phase transition
PhaseCallback = Callable[["TransferSession", TransferPhase], None]


class TransferSession:
    """Runtime record of one transfer.

    - The log is append-only, entries are ``[HH:MM:SS] message`` in UTC
    - The phase only moves forward, see :py:meth:`transition`
    - Mutated only by :py:class:`CCTPTransferExecutor`, safe to read from other threads
    """

    def __init__(
        self,
        intent: TransferIntent,
        on_log: LogCallback | None = None,
        on_phase: PhaseCallback | None = None,
    ):
        self.intent = intent
        self.phase = TransferPhase.idle

        #: Every phase we have been in, in order
        self.phases: list[TransferPhase] = [TransferPhase.idle]

        self.log: list[str] = []
        self.last_error: str | None = None
        self.error: Exception | None = None
        self.burn_tx_ref: str | None = None
        self.attestation: AttestationRecord | None = None
        self.mint_tx_ref: str | None = None

        #: ``None`` when the carbon hook did not run
        self.carbon_minted: bool | None = None

        self.on_log = on_log
        self.on_phase = on_phase
        self._cancelled = threading.Event()
        self._lock = threading.Lock()

    def __repr__(self):
        return f"<TransferSession {get_chain_name(self.intent.source_chain_id)} -> {get_chain_name(self.intent.destination_chain_id)} {self.intent.amount} USDC phase:{self.phase.value}>"

    def add_log(self, message: str):
        """Append a timestamped entry and mirror it to the Python logger."""
        timestamp = datetime.datetime.now(datetime.timezone.utc).strftime("%H:%M:%S")
        with self._lock:
            self.log.append(f"[{timestamp}] {message}")
        logger.info("%s", message)
        if self.on_log is not None:
            self.on_log(self, message)

    def transition(self, phase: TransferPhase):
        """Move to the next phase.

        :raises InvalidPhaseTransition:
            Skipping, going backwards or leaving a terminal phase
        """
        current = self.phase
        if current in TERMINAL_PHASES:
            raise InvalidPhaseTransition(f"Session is already {current.value}, cannot move to {phase.value}")

        if phase != TransferPhase.error:
            expected = PHASE_ORDER[PHASE_ORDER.index(current) + 1]
            if phase != expected:
                raise InvalidPhaseTransition(f"Cannot move from {current.value} to {phase.value}, next phase is {expected.value}")

        with self._lock:
            self.phase = phase
            self.phases.append(phase)

        self.add_log(f"Phase: {phase.value}")

        if self.on_phase is not None:
            self.on_phase(self, phase)

    def fail(self, e: Exception):
        """Move to the error state, keeping the underlying message verbatim.

        A session that already ended keeps its outcome, the late error is only logged.
        """
        if self.is_terminal():
            logger.error("%s is already %s, not recording error: %s", self, self.phase.value, e)
            return
        self.error = e
        self.last_error = str(e)
        self.add_log(f"Error: {e}")
        self.transition(TransferPhase.error)

    def cancel(self):
        """Ask the transfer to stop.

        Checked between phases and between attestation polls.
        A submitted transaction is never interrupted.
        """
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def is_completed(self) -> bool:
        return self.phase == TransferPhase.completed

    def raise_for_error(self):
        """Re-raise the error that ended the session, if any."""
        if self.error is not None:
            raise self.error

    def reset(self) -> "TransferSession":
        """Get a fresh session for the same intent, e.g. to retry after an error."""
        return TransferSession(self.intent, on_log=self.on_log, on_phase=self.on_phase)


class CCTPTransferExecutor:
    """Run transfers.

    One executor can run many sessions, also on parallel threads.
    Sessions share no mutable state apart from the factory's caches.

    :param factory:
        Identities and chain adapters

    :param mint_retry_policy:
        Mint retries on transient failures

    :param attestation_policy:
        How to poll Iris. Defaults to the configured poll interval and timeout.

    :param http_session:
        HTTP session used for Iris, injected in tests

    :param carbon_hook:
        Run the carbon points hook after transfers to the rewards chain
    """

    def __init__(
        self,
        factory: AccountFactory,
        mint_retry_policy: MintRetryPolicy | None = None,
        attestation_policy: AttestationPollPolicy | None = None,
        http_session: requests.Session | None = None,
        carbon_hook: bool = True,
    ):
        self.factory = factory
        self.mint_retry_policy = mint_retry_policy or MintRetryPolicy()
        self.attestation_policy = attestation_policy or AttestationPollPolicy(
            poll_interval=factory.config.attestation_poll_interval,
            max_wait=factory.config.attestation_timeout,
        )
        self.http_session = http_session
        self.carbon_hook = carbon_hook

    def create_poller(self, source_chain_id: int) -> AttestationPoller:
        return AttestationPoller(
            self.factory.config.get_iris_api_url(source_chain_id),
            self.attestation_policy,
            session=self.http_session,
        )

    def create_session(
        self,
        intent: TransferIntent,
        on_log: LogCallback | None = None,
        on_phase: PhaseCallback | None = None,
    ) -> TransferSession:
        """Validate an intent and create an idle session for it.

        :raises InvalidTransferIntent:
            See :py:meth:`TransferIntent.validate`

        :raises UnknownChain:
            See :py:meth:`TransferIntent.validate`
        """
        intent.validate()
        return TransferSession(intent, on_log=on_log, on_phase=on_phase)

    def execute_transfer(
        self,
        intent: TransferIntent,
        session: TransferSession | None = None,
        on_log: LogCallback | None = None,
        on_phase: PhaseCallback | None = None,
    ) -> TransferSession:
        """Run a transfer to the end.

        Phase failures do not raise. The session ends in the error state,
        use :py:meth:`TransferSession.raise_for_error` to get the exception.

        :param session:
            Pre-created idle session, e.g. to be able to cancel it from another thread

        :raises InvalidTransferIntent:
            Bad intent, raised before any network call

        :raises UnknownChain:
            Chain not in the registry, raised before any network call

        :raises InvalidPhaseTransition:
            ``session`` has already been run
        """
        if session is None:
            session = self.create_session(intent, on_log=on_log, on_phase=on_phase)
        else:
            assert session.intent == intent, f"Session belongs to another intent: {session.intent}"
            intent.validate()
            if session.phase != TransferPhase.idle:
                raise InvalidPhaseTransition(f"Session is {session.phase.value}, create a new session to transfer again")

        source_name = get_chain_name(intent.source_chain_id)
        destination_name = get_chain_name(intent.destination_chain_id)
        session.add_log(f"Starting transfer of {intent.amount} USDC from {source_name} to {destination_name} ({intent.speed_mode.value})")

        try:
            self._run(session)
        except (TransferFailed, CredentialError, AttestationTransportError, InvalidTransferIntent) as e:
            logger.error("Transfer %s failed: %s", session, e)
            session.fail(e)
        except Exception as e:
            # Unexpected, keep the traceback in the logs
            logger.exception("Transfer %s crashed", session)
            session.fail(e)

        return session

    def _check_cancelled(self, session: TransferSession):
        if session.is_cancelled():
            raise TransferCancelled("Transfer cancelled")

    def _run(self, session: TransferSession):
        intent = session.intent

        source = self.factory.adapter_for(intent.source_chain_id)
        destination = self.factory.adapter_for(intent.destination_chain_id)

        # Fail on missing or bad secrets before any network call
        source_identity = self.factory.identity_for(intent.source_chain_id)
        destination_identity = self.factory.identity_for(intent.destination_chain_id)

        recipient = intent.recipient_address or destination_identity.address
        try:
            mint_recipient = destination.derive_recipient(recipient)
        except ValueError as e:
            raise InvalidTransferIntent(f"Bad recipient {recipient} for {destination.descriptor.name}: {e}") from e

        raw_amount = intent.raw_amount

        self._approve(session, source, source_identity, raw_amount)

        request = BurnRequest(
            amount=raw_amount,
            destination_domain=destination.descriptor.protocol_domain,
            mint_recipient=mint_recipient,
            max_fee=intent.get_max_fee(),
            min_finality_threshold=intent.speed_mode.finality_threshold,
        )
        self._burn(session, source, source_identity, request, recipient)

        self._wait_attestation(session, source)

        self._mint(session, destination, destination_identity, recipient)

        session.transition(TransferPhase.completed)
        session.add_log(f"Transfer complete, {intent.amount} USDC minted on {destination.descriptor.name}")

        if self.carbon_hook and is_rewards_chain(intent.destination_chain_id):
            session.carbon_minted = mint_loyalty_credit(
                intent.destination_chain_id,
                destination_identity,
                raw_amount,
                adapter=destination,
                log=session.add_log,
                offset_manager=self.factory.config.carbon_offset_manager,
            )

    def _approve(self, session: TransferSession, source: ChainAdapter, identity: SigningIdentity, raw_amount: int):
        self._check_cancelled(session)
        session.transition(TransferPhase.approving)
        session.add_log("Approving USDC...")
        try:
            tx_ref = source.approve(identity, raw_amount)
        except Exception as e:
            raise ApprovalFailed(f"Approval failed: {e}") from e

        if tx_ref is None:
            session.add_log(f"No explicit approval needed on {source.descriptor.name}")
        else:
            session.add_log(f"Approval Tx: {tx_ref}")

    def _burn(self, session: TransferSession, source: ChainAdapter, identity: SigningIdentity, request: BurnRequest, recipient: str):
        self._check_cancelled(session)
        session.transition(TransferPhase.burning)
        session.add_log(f"Burning USDC, recipient {recipient}, destination domain {request.destination_domain}, max fee {request.max_fee}, finality {request.min_finality_threshold}...")
        try:
            tx_ref = source.burn(identity, request)
        except Exception as e:
            raise BurnFailed(f"Burn failed: {e}") from e
        session.burn_tx_ref = tx_ref
        session.add_log(f"Burn Tx: {tx_ref}")

    def _wait_attestation(self, session: TransferSession, source: ChainAdapter):
        self._check_cancelled(session)
        session.transition(TransferPhase.waiting_attestation)
        session.add_log("Retrieving attestation...")

        def _on_attempt(attempt: int, elapsed: float, reason: str):
            session.add_log(f"Waiting for attestation, attempt {attempt}, {elapsed:.0f}s elapsed: {reason}")

        poller = self.create_poller(source.chain_id)
        record = poller.poll(
            source.descriptor.protocol_domain,
            session.burn_tx_ref,
            should_stop=session.is_cancelled,
            on_attempt=_on_attempt,
        )

        if not record.is_complete:
            raise AttestationTransportError(f"Attestation service returned an incomplete record for {session.burn_tx_ref}")

        session.attestation = record
        session.add_log("Attestation retrieved")

    def _is_message_received(self, session: TransferSession, destination: ChainAdapter) -> bool:
        """Check whether an earlier mint attempt landed after all.

        An unreachable node counts as not received.
        """
        try:
            received = destination.is_message_received(session.attestation.message)
        except Exception as e:
            logger.warning("Could not check received state of %s on %s: %s", session, destination.descriptor.name, e, exc_info=True)
            return False
        if received:
            session.add_log(f"Message already received on {destination.descriptor.name}, an earlier mint attempt landed")
        return received

    def _mint(self, session: TransferSession, destination: ChainAdapter, identity: SigningIdentity, recipient: str):
        self._check_cancelled(session)
        session.transition(TransferPhase.minting)

        enough, balance = destination.has_gas_for_mint(identity.address)
        if not enough:
            raise InsufficientGasBalance(f"Insufficient native token for gas fees on {destination.descriptor.name}: balance {balance}, need at least {destination.minimum_gas_balance}")

        session.add_log("Minting USDC...")

        policy = self.mint_retry_policy
        record = session.attestation
        retry = 0
        while True:
            try:
                tx_ref = destination.mint(identity, record.message, record.attestation, recipient_owner=recipient)
                break
            except TransientTransactionError as e:
                # The failed attempt may have been broadcast and mined
                if self._is_message_received(session, destination):
                    return
                if retry >= policy.max_retries:
                    raise MintFailed(f"Mint failed after {retry} retries: {e}") from e
                retry += 1
                delay = policy.get_delay(retry)
                session.add_log(f"Mint attempt failed: {e}. Retry {retry}/{policy.max_retries} in {delay:.1f}s")
                policy.sleep(delay)
            except TransactionReverted as e:
                if self._is_message_received(session, destination):
                    return
                raise MintFailed(f"Mint failed: {e}") from e
            except Exception as e:
                raise MintFailed(f"Mint failed: {e}") from e

        session.mint_tx_ref = tx_ref
        session.add_log(f"Mint Tx: {tx_ref}")
