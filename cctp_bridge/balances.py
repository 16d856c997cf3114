"""USDC and gas balances across chain families.

- EVM chains read ``USDC.balanceOf()`` and format with 6 decimals
- Arc Testnet uses USDC as gas: its native balance is formatted with 18 decimals
- Solana reads the owner's associated token account.
  A token account that does not exist is a zero balance, not an error.

Balances are returned as decimal strings, the form the UI shows them in.
"""

import logging
from decimal import Decimal

from cctp_bridge.provider import AccountFactory

logger = logging.getLogger(__name__)


def format_units(value: Decimal) -> str:
    """Format a token amount without exponent or trailing zeros.

    .. code-block:: python

        assert format_units(Decimal("1.500000")) == "1.5"
        assert format_units(Decimal("0E-18")) == "0"
    """
    if value == 0:
        return "0"
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class BalanceOracle:
    """Chain family aware balance lookups.

    Used for display and for the pre-mint gas check.
    """

    def __init__(self, factory: AccountFactory):
        self.factory = factory

    def balance_of(self, chain_id: int, owner: str) -> str:
        """USDC balance of any address.

        :raises UnknownChain:
            Chain not in the registry
        """
        adapter = self.factory.adapter_for(chain_id)
        return format_units(adapter.balance_of(owner))

    def balance_of_identity(self, chain_id: int) -> str:
        """USDC balance of our own signing identity on a chain."""
        identity = self.factory.identity_for(chain_id)
        return self.balance_of(chain_id, identity.address)

    def native_balance_of(self, chain_id: int, owner: str) -> str:
        """Gas token balance, ETH, SOL or the chain's native token."""
        adapter = self.factory.adapter_for(chain_id)
        return format_units(adapter.native_balance_decimal(owner))

    def has_gas_for_mint(self, chain_id: int, owner: str) -> bool:
        """Does ``owner`` hold the minimum gas balance to mint on a chain."""
        adapter = self.factory.adapter_for(chain_id)
        enough, balance = adapter.has_gas_for_mint(owner)
        if not enough:
            logger.info("%s has %s native balance on chain %d, need %s", owner, balance, chain_id, adapter.minimum_gas_balance)
        return enough
