"""Carbon points hook on the rewards chain."""

from unittest.mock import Mock, patch

from cctp_bridge.carbon import is_rewards_chain, mint_loyalty_credit
from cctp_bridge.constants import CARBON_OFFSET_MANAGER
from cctp_bridge.evm.adapter import EVMChainAdapter
from tests.fakes import ARC_TESTNET, BASE_SEPOLIA

OFFSET_MANAGER = "0x5d3E23605b0D5D1E9069AcE697Fa6ccEf8625F1E"


def make_adapter(transact_side_effect) -> Mock:
    adapter = Mock(spec=EVMChainAdapter)
    adapter.web3 = Mock()
    adapter.usdc = Mock()
    adapter.transact.side_effect = transact_side_effect
    return adapter


def test_is_rewards_chain():
    assert is_rewards_chain(ARC_TESTNET)
    assert not is_rewards_chain(BASE_SEPOLIA)


def test_not_rewards_chain_does_nothing():
    adapter = make_adapter(["0x1"])
    assert mint_loyalty_credit(BASE_SEPOLIA, Mock(), 1_000_000, adapter) is False
    adapter.transact.assert_not_called()


def test_approve_then_buy_offsets():
    adapter = make_adapter(["0xapprove", "0xbuy"])
    offset_manager = Mock(address=OFFSET_MANAGER)
    log = []

    with patch("cctp_bridge.carbon.get_deployed_contract", return_value=offset_manager) as get_contract:
        minted = mint_loyalty_credit(ARC_TESTNET, Mock(), 2_000_000, adapter, log=log.append)

    assert minted is True
    assert get_contract.call_args[0][1:] == ("OffsetManager.json", CARBON_OFFSET_MANAGER)
    adapter.usdc.functions.approve.assert_called_once_with(OFFSET_MANAGER, 2_000_000)
    offset_manager.functions.buyOffsets.assert_called_once_with(2_000_000)
    assert adapter.transact.call_count == 2
    assert log == ["Minting carbon points...", "Carbon points minted: 0xbuy"]


def test_failure_is_logged_not_raised():
    adapter = make_adapter(RuntimeError("execution reverted: OffsetManager: sold out"))
    log = []

    with patch("cctp_bridge.carbon.get_deployed_contract", return_value=Mock(address=OFFSET_MANAGER)):
        minted = mint_loyalty_credit(ARC_TESTNET, Mock(), 2_000_000, adapter, log=log.append)

    assert minted is False
    assert log[-1].startswith("Carbon points mint failed (transfer unaffected)")
    assert "sold out" in log[-1]
