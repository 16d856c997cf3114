"""Carbon points reward after a transfer.

When USDC lands on the rewards chain (Arc Testnet), the received amount
is spent on carbon offsets, minting CarbonPoints to the recipient:

1. ``USDC.approve(OffsetManager, amount)``
2. ``OffsetManager.buyOffsets(amount)``

The USDC transfer is already final when this runs. Failures are logged and
never fail the transfer.
"""

import logging
from typing import Callable

from eth_typing import HexAddress

from cctp_bridge.constants import CARBON_OFFSET_MANAGER, REWARDS_CHAIN_ID
from cctp_bridge.errors import SecondaryHookFailed
from cctp_bridge.evm.abi import get_deployed_contract
from cctp_bridge.evm.adapter import EVMChainAdapter
from cctp_bridge.identity import SigningIdentity

logger = logging.getLogger(__name__)


def is_rewards_chain(chain_id: int) -> bool:
    return chain_id == REWARDS_CHAIN_ID


def _buy_offsets(
    adapter: EVMChainAdapter,
    identity: SigningIdentity,
    usdc_amount: int,
    offset_manager: HexAddress,
) -> str:
    try:
        offset_manager_contract = get_deployed_contract(adapter.web3, "OffsetManager.json", offset_manager)
        adapter.transact(identity, adapter.usdc.functions.approve(offset_manager_contract.address, usdc_amount), "Carbon offset USDC approve")
        return adapter.transact(identity, offset_manager_contract.functions.buyOffsets(usdc_amount), "buyOffsets")
    except Exception as e:
        raise SecondaryHookFailed(f"Carbon points mint failed: {e}") from e


def mint_loyalty_credit(
    destination_chain_id: int,
    identity: SigningIdentity,
    usdc_amount: int,
    adapter: EVMChainAdapter,
    log: Callable[[str], None] | None = None,
    offset_manager: HexAddress = CARBON_OFFSET_MANAGER,
) -> bool:
    """Spend the transferred USDC on carbon offsets.

    Does nothing unless ``destination_chain_id`` is the rewards chain.

    :param usdc_amount:
        Raw USDC amount, 6 decimals

    :param adapter:
        Adapter of the rewards chain

    :param log:
        Session log to report progress to

    :return:
        ``True`` if carbon points were minted
    """
    if not is_rewards_chain(destination_chain_id):
        return False

    def _log(msg: str):
        if log is not None:
            log(msg)
        else:
            logger.info(msg)

    _log("Minting carbon points...")
    try:
        tx_hash = _buy_offsets(adapter, identity, usdc_amount, offset_manager)
    except SecondaryHookFailed as e:
        logger.warning("Carbon points hook failed, the USDC transfer is unaffected", exc_info=True)
        _log(f"Carbon points mint failed (transfer unaffected): {e}")
        return False

    _log(f"Carbon points minted: {tx_hash}")
    return True
