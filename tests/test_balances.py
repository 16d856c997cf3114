"""Balance oracle across chain families."""

import struct
from decimal import Decimal
from unittest.mock import Mock

from solders.keypair import Keypair
from spl.token.constants import TOKEN_PROGRAM_ID

from cctp_bridge.balances import BalanceOracle, format_units
from cctp_bridge.chain import describe
from cctp_bridge.solana.adapter import SolanaChainAdapter
from tests.fakes import ARBITRUM_SEPOLIA, ARC_TESTNET, BASE_SEPOLIA, SOLANA_DEVNET, FakeAdapter, StubFactory, arc_balance

OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


def make_token_account_data(amount: int) -> bytes:
    """165-byte SPL token account with only the amount filled in."""
    data = bytearray(165)
    struct.pack_into("<Q", data, 64, amount)
    return bytes(data)


def test_format_units():
    assert format_units(Decimal("1.500000")) == "1.5"
    assert format_units(Decimal("0E-18")) == "0"
    assert format_units(Decimal("100")) == "100"
    assert format_units(Decimal("1E+2")) == "100"
    assert format_units(Decimal("0.000001")) == "0.000001"


def test_evm_usdc_balance(config):
    factory = StubFactory(config, {BASE_SEPOLIA: FakeAdapter(BASE_SEPOLIA, token_balance=1_500_000)})
    oracle = BalanceOracle(factory)
    assert oracle.balance_of(BASE_SEPOLIA, OWNER) == "1.5"
    assert oracle.balance_of_identity(BASE_SEPOLIA) == "1.5"


def test_arc_balance_uses_native_18_decimals(config):
    """USDC is the gas token on Arc, balanceOf() is not used."""
    adapter = FakeAdapter(ARC_TESTNET, native_balance=arc_balance("12.25"), token_balance=999)
    oracle = BalanceOracle(StubFactory(config, {ARC_TESTNET: adapter}))
    assert oracle.balance_of(ARC_TESTNET, OWNER) == "12.25"


def test_solana_missing_token_account_is_zero(config):
    client = Mock()
    client.get_account_info.return_value = Mock(value=None)
    adapter = SolanaChainAdapter(describe(SOLANA_DEVNET), client)
    oracle = BalanceOracle(StubFactory(config, {SOLANA_DEVNET: adapter}))

    owner = str(Keypair().pubkey())
    assert oracle.balance_of(SOLANA_DEVNET, owner) == "0"

    # We looked up the associated token account, not the wallet
    looked_up = client.get_account_info.call_args[0][0]
    assert looked_up == adapter.get_token_account(owner)


def test_solana_token_account_balance(config):
    client = Mock()
    client.get_account_info.return_value = Mock(value=Mock(owner=TOKEN_PROGRAM_ID, data=make_token_account_data(2_750_000)))
    client.get_balance.return_value = Mock(value=1_500_000_000)
    adapter = SolanaChainAdapter(describe(SOLANA_DEVNET), client)
    oracle = BalanceOracle(StubFactory(config, {SOLANA_DEVNET: adapter}))

    owner = str(Keypair().pubkey())
    assert oracle.balance_of(SOLANA_DEVNET, owner) == "2.75"
    assert oracle.native_balance_of(SOLANA_DEVNET, owner) == "1.5"


def test_has_gas_for_mint(config):
    factory = StubFactory(
        config,
        {
            BASE_SEPOLIA: FakeAdapter(BASE_SEPOLIA, native_balance=10**16),  # exactly 0.01 ETH
            ARBITRUM_SEPOLIA: FakeAdapter(ARBITRUM_SEPOLIA, native_balance=10**16 - 1),
        },
    )
    oracle = BalanceOracle(factory)
    assert oracle.has_gas_for_mint(BASE_SEPOLIA, OWNER)
    assert not oracle.has_gas_for_mint(ARBITRUM_SEPOLIA, OWNER)
