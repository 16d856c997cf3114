"""cctp_bridge package root.

Cross-chain USDC transfers over Circle's CCTP V2 between EVM chains and Solana.

- :py:mod:`cctp_bridge.transfer` is the entry point: build a
  :py:class:`~cctp_bridge.transfer.TransferIntent` and run it with
  :py:class:`~cctp_bridge.transfer.CCTPTransferExecutor`

- :py:mod:`cctp_bridge.chain` lists the supported chains

"""

import sys


#: Minimum required Python version to run this package
MIN_PYTHON_VERSION = (3, 10)


def _check_python_version():
    """Try early abort if the Python version is too old."""

    # Use Python tuple comparison for version numbers
    # https://stackoverflow.com/a/1093331/315168
    if sys.version_info < MIN_PYTHON_VERSION:
        raise RuntimeError(f"web3-cctp-bridge needs Python {MIN_PYTHON_VERSION[0]}.{MIN_PYTHON_VERSION[1]} or later")


_check_python_version()
