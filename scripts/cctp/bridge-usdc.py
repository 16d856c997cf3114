"""Bridge USDC between two chains with CCTP V2.

Example:

.. code-block:: shell

    export EVM_PRIVATE_KEY=...
    export SOLANA_PRIVATE_KEY=...
    python scripts/cctp/bridge-usdc.py --source "Base Sepolia" --destination "Solana Devnet" --amount 1.5 --fast

Chains can be given by name or chain id. The session log is printed at the end.
"""

import argparse
import sys
import threading

from cctp_bridge.chain import CHAIN_REGISTRY, get_chain_id_by_name
from cctp_bridge.config import BridgeConfig
from cctp_bridge.provider import AccountFactory
from cctp_bridge.transfer import CCTPTransferExecutor, SpeedMode, TransferIntent
from cctp_bridge.utils import setup_console_logging


def parse_chain(value: str) -> int:
    if value.isdigit():
        return int(value)
    chain_id = get_chain_id_by_name(value)
    if chain_id is None:
        names = ", ".join(d.name for d in CHAIN_REGISTRY.values())
        raise argparse.ArgumentTypeError(f"Unknown chain {value}, use one of: {names}")
    return chain_id


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bridge USDC with Circle CCTP V2")
    parser.add_argument("--source", type=parse_chain, required=True, help="Source chain name or id")
    parser.add_argument("--destination", type=parse_chain, required=True, help="Destination chain name or id")
    parser.add_argument("--amount", required=True, help="USDC amount, e.g. 1.5")
    parser.add_argument("--recipient", default=None, help="Recipient on the destination chain, defaults to our own address")
    parser.add_argument("--fast", action="store_true", help="Use fast finality, may incur a fee")
    parser.add_argument("--max-fee", type=int, default=None, help="Fee cap in raw USDC units")
    parser.add_argument("--no-carbon", action="store_true", help="Do not mint carbon points on the rewards chain")
    return parser.parse_args()


def main():
    setup_console_logging(default_log_level="info")
    args = parse_args()

    config = BridgeConfig.from_env()
    factory = AccountFactory(config)
    executor = CCTPTransferExecutor(factory, carbon_hook=not args.no_carbon)

    intent = TransferIntent(
        source_chain_id=args.source,
        destination_chain_id=args.destination,
        amount=args.amount,
        speed_mode=SpeedMode.fast if args.fast else SpeedMode.standard,
        recipient_address=args.recipient,
        max_fee=args.max_fee,
    )

    session = executor.create_session(intent)

    # Run on a worker so Ctrl-C can cancel between phases
    worker = threading.Thread(target=executor.execute_transfer, args=(intent, session), daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(timeout=0.5)
    except KeyboardInterrupt:
        print("Cancelling, waiting for the current phase to finish...", file=sys.stderr)
        session.cancel()
        worker.join()

    print("-" * 80)
    print("\n".join(session.log))
    print("-" * 80)
    print(f"Final phase: {session.phase.value}")
    if session.burn_tx_ref:
        print(f"Burn tx: {session.burn_tx_ref}")
    if session.mint_tx_ref:
        print(f"Mint tx: {session.mint_tx_ref}")

    if not session.is_completed():
        print(f"Transfer failed: {session.last_error}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
