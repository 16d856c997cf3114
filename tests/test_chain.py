"""Chain registry."""

import pytest

from cctp_bridge.chain import (
    CHAIN_REGISTRY,
    ChainFamily,
    SupportedChainId,
    describe,
    get_chain_id_by_name,
    get_chain_name,
    get_chains_by_domain,
    resolve_family,
)
from cctp_bridge.errors import UnknownChain


def test_describe_base_sepolia():
    base = describe(84532)
    assert base.name == "Base Sepolia"
    assert base.family == ChainFamily.evm
    assert base.protocol_domain == 6
    assert base.testnet
    assert base.env_name == "BASE_SEPOLIA"


def test_describe_unknown_chain():
    with pytest.raises(UnknownChain) as exc_info:
        describe(999_999)
    assert exc_info.value.chain_id == 999_999
    assert "999999" in str(exc_info.value)

    # Callers catching KeyError keep working
    with pytest.raises(KeyError):
        describe(1)


def test_resolve_family():
    assert resolve_family(SupportedChainId.solana_devnet) == ChainFamily.solana
    assert resolve_family(SupportedChainId.arbitrum_sepolia) == ChainFamily.evm


def test_every_supported_chain_registered():
    assert len(CHAIN_REGISTRY) == len(SupportedChainId)
    for chain_id in SupportedChainId:
        descriptor = describe(chain_id)
        assert descriptor.chain_id == chain_id
        assert descriptor.rpc_url.startswith("https://")


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        CHAIN_REGISTRY[1] = describe(84532)


def test_arc_uses_usdc_as_gas():
    arc = describe(5042002)
    assert arc.usdc_is_native_gas
    assert arc.native_decimals == 18
    assert not describe(84532).usdc_is_native_gas


def test_solana_descriptors():
    devnet = describe(103)
    mainnet = describe(102)
    assert devnet.is_solana and mainnet.is_solana
    assert devnet.native_decimals == 9
    assert devnet.testnet
    assert not mainnet.testnet
    # Domain is shared, the Iris environment tells them apart
    assert {c.chain_id for c in get_chains_by_domain(5)} == {102, 103}


def test_get_chain_name():
    assert get_chain_name(421614) == "Arbitrum Sepolia"
    assert get_chain_name(999_999) == "Unknown chain 999999"


@pytest.mark.parametrize("name", ["Base Sepolia", "base-sepolia", "BASE_SEPOLIA"])
def test_get_chain_id_by_name(name):
    assert get_chain_id_by_name(name) == 84532


def test_get_chain_id_by_name_unknown():
    assert get_chain_id_by_name("Dogechain") is None
