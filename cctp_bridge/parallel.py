"""Run several transfers at once.

Each transfer runs on its own worker thread with its own session.
Sessions share the executor's :py:class:`~cctp_bridge.provider.AccountFactory`,
whose wallets serialise nonce allocation, so two transfers from the same EVM chain
do not race for a nonce.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable

from tqdm_loggable.auto import tqdm

from cctp_bridge.transfer import PHASE_ORDER, CCTPTransferExecutor, TransferIntent, TransferPhase, TransferSession

logger = logging.getLogger(__name__)

#: Progress bar steps per transfer, one per phase after idle
STEPS_PER_TRANSFER = len(PHASE_ORDER) - 1


def execute_transfers_parallel(
    executor: CCTPTransferExecutor,
    intents: Iterable[TransferIntent],
    max_workers: int | None = None,
    progress: bool = True,
) -> list[TransferSession]:
    """Execute transfers on a thread pool.

    All intents are validated before anything is submitted.

    :param max_workers:
        Thread count, defaults to one thread per transfer

    :param progress:
        Show a progress bar advancing on every phase transition

    :return:
        Terminal sessions in the order of ``intents``

    :raises InvalidTransferIntent:
        Any of the intents is invalid, nothing was executed

    :raises UnknownChain:
        Any of the intents refers to an unknown chain, nothing was executed
    """
    intents = list(intents)

    for intent in intents:
        intent.validate()

    if not intents:
        return []

    if max_workers is None:
        max_workers = len(intents)

    progress_bar = tqdm(total=len(intents) * STEPS_PER_TRANSFER, desc="CCTP transfers", unit="phase") if progress else None

    def _on_phase(session: TransferSession, phase: TransferPhase):
        if progress_bar is None:
            return
        if phase == TransferPhase.error:
            # Skip the steps this transfer will never take
            done = len([p for p in session.phases if p in PHASE_ORDER]) - 1
            progress_bar.update(STEPS_PER_TRANSFER - done)
        else:
            progress_bar.update(1)

    sessions = [executor.create_session(intent, on_phase=_on_phase) for intent in intents]

    logger.info("Executing %d transfers using %d threads", len(sessions), max_workers)

    try:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            future_to_session = {pool.submit(executor.execute_transfer, session.intent, session): session for session in sessions}

            for future in as_completed(future_to_session):
                session = future_to_session[future]
                # execute_transfer() records phase failures in the session,
                # anything raised here is a programming error
                future.result()
                logger.info("Transfer finished: %s", session)
    finally:
        if progress_bar is not None:
            progress_bar.close()

    completed = sum(1 for s in sessions if s.is_completed())
    logger.info("%d / %d transfers completed", completed, len(sessions))
    return sessions
