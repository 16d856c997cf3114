"""Gas limit padding and fee suggestion for bridge transactions.

CCTP V2 testnets are EIP-1559 chains with a few legacy exceptions,
so fees are read from the latest block and fall back to ``eth_gasPrice``.
"""

import enum
import logging
from dataclasses import dataclass

from web3 import Web3

from cctp_bridge.constants import GAS_PADDING_PERCENT

logger = logging.getLogger(__name__)


class FeeMode(enum.Enum):
    """How the transaction pays for gas."""

    #: ``maxFeePerGas`` and ``maxPriorityFeePerGas``
    eip1559 = "eip1559"

    #: ``gasPrice``, chains without ``baseFeePerGas`` in their blocks
    legacy = "legacy"


@dataclass(slots=True, frozen=True)
class FeeSuggestion:
    """Fee parameters for one transaction."""

    mode: FeeMode

    #: Legacy chains only
    gas_price: int | None = None

    #: EIP-1559 chains only
    base_fee: int | None = None

    max_priority_fee_per_gas: int | None = None

    #: Twice the base fee plus the tip, survives a few full blocks
    max_fee_per_gas: int | None = None

    def __repr__(self):
        if self.mode == FeeMode.legacy:
            return f"<legacy gas price {self.gas_price}>"
        return f"<eip1559 base:{self.base_fee} tip:{self.max_priority_fee_per_gas} max:{self.max_fee_per_gas}>"

    def as_tx_params(self) -> dict:
        if self.mode == FeeMode.legacy:
            return {"gasPrice": self.gas_price}
        return {"maxFeePerGas": self.max_fee_per_gas, "maxPriorityFeePerGas": self.max_priority_fee_per_gas}


def suggest_fees(web3: Web3) -> FeeSuggestion:
    """Read fees for a transaction going into the next blocks."""
    base_fee = web3.eth.get_block("latest").get("baseFeePerGas")

    if base_fee is None:
        return FeeSuggestion(mode=FeeMode.legacy, gas_price=web3.eth.gas_price)

    tip = web3.eth.max_priority_fee
    return FeeSuggestion(
        mode=FeeMode.eip1559,
        base_fee=base_fee,
        max_priority_fee_per_gas=tip,
        max_fee_per_gas=2 * base_fee + tip,
    )


def apply_fees(tx: dict, suggestion: FeeSuggestion) -> dict:
    """Set the fee fields of a transaction dict in place.

    :return:
        The same dict
    """
    assert isinstance(tx, dict), f"Expected tx to be dict, got {type(tx)}"
    if suggestion.mode == FeeMode.eip1559:
        # A transaction cannot carry both fee styles
        tx.pop("gasPrice", None)
    tx.update(suggestion.as_tx_params())
    return tx


def pad_gas_limit(estimated_gas: int, padding_percent: int = GAS_PADDING_PERCENT) -> int:
    """Add a safety margin on the top of ``eth_estimateGas``.

    Gas estimation runs against the latest block, the transaction is
    executed against a later one.

    :param padding_percent:
        120 means +20%
    """
    assert padding_percent >= 100, f"Padding would reduce the gas limit: {padding_percent}"
    return estimated_gas * padding_percent // 100
