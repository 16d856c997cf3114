"""EVM adapter, hot wallet, gas and confirmation, against a mocked node."""

from unittest.mock import Mock

import pytest
import requests
from eth_account import Account
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.exceptions import ContractLogicError, TimeExhausted, Web3RPCError

from cctp_bridge.adapter import BurnRequest
from cctp_bridge.chain import describe
from cctp_bridge.errors import TransactionReverted, TransientTransactionError
from cctp_bridge.evm.abi import get_deployed_contract
from cctp_bridge.evm.adapter import EVMChainAdapter
from cctp_bridge.evm.confirmation import is_transient_error
from cctp_bridge.evm.gas import FeeMode, apply_fees, pad_gas_limit, suggest_fees
from cctp_bridge.evm.hotwallet import HotWallet
from cctp_bridge.identity import parse_evm_private_key
from cctp_bridge.message import decode_cctp_message, encode_mint_recipient
from cctp_bridge.provider import create_web3
from tests.fakes import BASE_SEPOLIA, BASE_SEPOLIA_USDC, TEST_EVM_PRIVATE_KEY

OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


@pytest.fixture()
def web3() -> Mock:
    """Node that accepts everything."""
    web3 = Mock()
    web3.eth.get_transaction_count.return_value = 7
    web3.eth.get_block.return_value = {"baseFeePerGas": 1_000_000_000}
    web3.eth.max_priority_fee = 1_000_000
    web3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 100, "gasUsed": 45_000}
    return web3


@pytest.fixture()
def identity():
    return parse_evm_private_key(TEST_EVM_PRIVATE_KEY)


@pytest.fixture()
def adapter(web3) -> EVMChainAdapter:
    return EVMChainAdapter(describe(BASE_SEPOLIA), web3)


def make_func(estimated_gas=50_000) -> Mock:
    func = Mock(spec=ContractFunction)
    func.estimate_gas.return_value = estimated_gas
    func.build_transaction.side_effect = lambda params: {**params, "to": Web3.to_checksum_address(BASE_SEPOLIA_USDC), "data": "0x095ea7b3", "value": 0}
    return func


def test_pad_gas_limit():
    assert pad_gas_limit(100_000) == 120_000
    assert pad_gas_limit(100_000, 150) == 150_000
    with pytest.raises(AssertionError):
        pad_gas_limit(100_000, 90)


def test_suggest_fees_eip1559(web3):
    suggestion = suggest_fees(web3)
    assert suggestion.mode == FeeMode.eip1559
    assert suggestion.max_fee_per_gas == 2_001_000_000
    tx = apply_fees({"gasPrice": 1}, suggestion)
    assert "gasPrice" not in tx
    assert tx["maxPriorityFeePerGas"] == 1_000_000


def test_suggest_fees_legacy(web3):
    web3.eth.get_block.return_value = {}
    web3.eth.gas_price = 5_000_000_000
    suggestion = suggest_fees(web3)
    assert suggestion.mode == FeeMode.legacy
    assert apply_fees({}, suggestion) == {"gasPrice": 5_000_000_000}


def test_nonce_management(web3):
    wallet = HotWallet(Account.from_key(TEST_EVM_PRIVATE_KEY))
    wallet.sync_nonce(web3)
    assert wallet.allocate_nonce() == 7
    assert wallet.allocate_nonce() == 8

    # Lagging node does not rewind us
    web3.eth.get_transaction_count.return_value = 3
    wallet.sync_nonce(web3)
    assert wallet.current_nonce == 9

    # Unless we know the allocated nonces were never broadcast
    wallet.sync_nonce(web3, force=True)
    assert wallet.current_nonce == 3


@pytest.mark.parametrize(
    "error, transient",
    [
        (TimeExhausted("receipt not found"), True),
        (requests.ConnectionError("reset"), True),
        (Web3RPCError("replacement transaction underpriced"), True),
        (ValueError({"code": -32000, "message": "nonce too low"}), True),
        (ValueError({"code": -32000, "message": "insufficient funds for gas * price + value"}), False),
        (ContractLogicError("execution reverted: timeout"), False),
        (RuntimeError("nonce too low"), False),
    ],
)
def test_is_transient_error(error, transient):
    assert is_transient_error(error) == transient


def test_transact_signs_and_confirms(adapter, web3, identity):
    func = make_func()

    tx_hash = adapter.transact(identity, func, "USDC approve")

    assert tx_hash.startswith("0x") and len(tx_hash) == 66
    params = func.build_transaction.call_args[0][0]
    assert params["gas"] == 60_000
    assert params["chainId"] == BASE_SEPOLIA
    assert params["maxFeePerGas"] == 2_001_000_000
    assert params["from"] == OWNER
    web3.eth.send_raw_transaction.assert_called_once()
    assert Web3.to_hex(web3.eth.wait_for_transaction_receipt.call_args[0][0]) == tx_hash

    # Next transaction gets the next nonce without asking the node
    adapter.transact(identity, make_func(), "depositForBurn")
    assert web3.eth.get_transaction_count.call_count == 1
    assert adapter.get_wallet(identity).current_nonce == 9


def test_transact_revert_in_estimation(adapter, web3, identity):
    func = make_func()
    func.estimate_gas.side_effect = ContractLogicError("execution reverted: ERC20: transfer amount exceeds balance")

    with pytest.raises(TransactionReverted, match="exceeds balance"):
        adapter.transact(identity, func, "depositForBurn")

    web3.eth.send_raw_transaction.assert_not_called()


def test_transact_estimation_connection_error_is_transient(adapter, identity):
    func = make_func()
    func.estimate_gas.side_effect = requests.ConnectionError("Connection reset by peer")

    with pytest.raises(TransientTransactionError):
        adapter.transact(identity, func, "receiveMessage")


def test_receipt_timeout_resyncs_nonce(adapter, web3, identity):
    web3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not in chain after 180 seconds")

    with pytest.raises(TransientTransactionError):
        adapter.transact(identity, make_func(), "receiveMessage")

    # Initial sync and the forced resync
    assert web3.eth.get_transaction_count.call_count == 2
    assert adapter.get_wallet(identity).current_nonce == 7


def test_reverted_receipt(adapter, web3, identity):
    web3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 100, "gasUsed": 45_000}

    with pytest.raises(TransactionReverted) as exc_info:
        adapter.transact(identity, make_func(), "receiveMessage")

    assert exc_info.value.tx_hash.startswith("0x")


def test_burn_calls_deposit_for_burn(adapter, identity):
    adapter.usdc = Mock(address=BASE_SEPOLIA_USDC)
    adapter.token_messenger = Mock()
    adapter.transact = Mock(return_value="0xburn")
    request = BurnRequest(
        amount=1_000_000,
        destination_domain=3,
        mint_recipient=encode_mint_recipient(OWNER),
        max_fee=999_999,
        min_finality_threshold=1000,
    )

    assert adapter.burn(identity, request) == "0xburn"

    adapter.token_messenger.functions.depositForBurn.assert_called_once_with(
        1_000_000,
        3,
        encode_mint_recipient(OWNER),
        BASE_SEPOLIA_USDC,
        b"\x00" * 32,
        999_999,
        1000,
    )


def test_approve_targets_token_messenger(adapter, identity):
    adapter.usdc = Mock()
    adapter.token_messenger = Mock(address="0x8FE6B999Dc680CcFDD5Bf7EB0974218be2542DAA")
    adapter.transact = Mock(return_value="0xapprove")

    assert adapter.approve(identity, 5_000_000) == "0xapprove"
    adapter.usdc.functions.approve.assert_called_once_with("0x8FE6B999Dc680CcFDD5Bf7EB0974218be2542DAA", 5_000_000)


def test_abi_encodes_deposit_for_burn():
    """Bundled ABI matches the CCTP V2 depositForBurn selector."""
    web3 = create_web3("http://localhost:1", BASE_SEPOLIA)
    messenger = get_deployed_contract(web3, "TokenMessengerV2.json", describe(BASE_SEPOLIA).messenger_address)
    data = messenger.encode_abi(
        "depositForBurn",
        args=[1_000_000, 3, encode_mint_recipient(OWNER), Web3.to_checksum_address(BASE_SEPOLIA_USDC), b"\x00" * 32, 999_999, 1000],
    )
    selector = Web3.keccak(text="depositForBurn(uint256,uint32,bytes32,address,bytes32,uint256,uint32)")[:4]
    assert data[:10] == Web3.to_hex(selector)
    assert len(data) == 2 + 8 + 7 * 64


def test_derive_recipient(adapter):
    assert adapter.derive_recipient(OWNER.lower()) == encode_mint_recipient(OWNER)


def test_balances(adapter, web3):
    adapter.usdc = Mock()
    adapter.usdc.functions.balanceOf.return_value.call.return_value = 1_234_567
    web3.eth.get_balance.return_value = 10**17
    assert adapter.token_balance(OWNER) == 1_234_567
    assert adapter.native_balance(OWNER) == 10**17
    assert adapter.has_gas_for_mint(OWNER)[0]


def test_broadcast_connection_loss_stays_transient(adapter, web3, identity):
    """Node unreachable for both the broadcast and the nonce resync."""
    wallet = adapter.get_wallet(identity)
    web3.eth.send_raw_transaction.side_effect = requests.ConnectionError("Connection reset by peer")
    web3.eth.get_transaction_count.side_effect = requests.ConnectionError("Connection reset by peer")

    with pytest.raises(TransientTransactionError, match="Connection reset"):
        adapter.transact(identity, make_func(), "receiveMessage")

    # Resync failed, keep counting from where we were
    assert wallet.current_nonce == 8


def test_is_message_received(adapter, cctp_message):
    adapter.message_transmitter = Mock()
    used_nonces = adapter.message_transmitter.functions.usedNonces

    used_nonces.return_value.call.return_value = 0
    assert not adapter.is_message_received(cctp_message)

    used_nonces.return_value.call.return_value = 1
    assert adapter.is_message_received(cctp_message)

    used_nonces.assert_called_with(decode_cctp_message(cctp_message).nonce)
