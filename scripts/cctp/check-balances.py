"""Print USDC and gas balances of the configured identities.

Chains of a family without a configured secret are skipped.

Example:

.. code-block:: shell

    export EVM_PRIVATE_KEY=...
    python scripts/cctp/check-balances.py --testnet
"""

import argparse
import logging

from cctp_bridge.balances import BalanceOracle
from cctp_bridge.chain import CHAIN_REGISTRY
from cctp_bridge.config import BridgeConfig
from cctp_bridge.errors import CredentialError
from cctp_bridge.provider import AccountFactory
from cctp_bridge.utils import setup_console_logging

logger = logging.getLogger(__name__)


def main():
    setup_console_logging(default_log_level="warning")

    parser = argparse.ArgumentParser(description="Show USDC balances across CCTP chains")
    parser.add_argument("--testnet", action="store_true", help="Only testnets")
    args = parser.parse_args()

    factory = AccountFactory(BridgeConfig.from_env())
    oracle = BalanceOracle(factory)

    for chain_id, descriptor in CHAIN_REGISTRY.items():
        if args.testnet and not descriptor.testnet:
            continue

        try:
            identity = factory.identity_for(chain_id)
        except CredentialError as e:
            print(f"{descriptor.name:<28} skipped: {e}")
            continue

        try:
            usdc = oracle.balance_of(chain_id, identity.address)
            native = oracle.native_balance_of(chain_id, identity.address)
        except Exception as e:
            # One broken RPC should not hide the other chains
            logger.warning("Could not read balances on %s", descriptor.name, exc_info=True)
            print(f"{descriptor.name:<28} error: {e}")
            continue

        print(f"{descriptor.name:<28} {identity.address:<46} USDC: {usdc:<16} native: {native}")


if __name__ == "__main__":
    main()
