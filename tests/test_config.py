"""Environment configuration."""

import pytest

from cctp_bridge.config import BridgeConfig, get_json_rpc_env
from cctp_bridge.constants import CARBON_OFFSET_MANAGER, DEFAULT_ATTESTATION_POLL_INTERVAL, IRIS_API_BASE_URL, IRIS_API_SANDBOX_URL


def test_json_rpc_env_names():
    assert get_json_rpc_env(84532) == "JSON_RPC_BASE_SEPOLIA"
    assert get_json_rpc_env(103) == "JSON_RPC_SOLANA_DEVNET"


def test_from_env_empty():
    config = BridgeConfig.from_env({})
    assert config.evm_private_key is None
    assert config.solana_private_key is None
    assert config.iris_api_url is None
    assert config.rpc_urls == {}
    assert config.attestation_poll_interval == DEFAULT_ATTESTATION_POLL_INTERVAL
    assert config.attestation_timeout is None
    assert config.carbon_offset_manager == CARBON_OFFSET_MANAGER


def test_from_env_full():
    config = BridgeConfig.from_env(
        {
            "EVM_PRIVATE_KEY": "0xaa",
            "SOLANA_PRIVATE_KEY": "bb",
            "IRIS_API_URL": "https://iris.example.com/",
            "JSON_RPC_BASE_SEPOLIA": " https://base.example.com ",
            "CCTP_ATTESTATION_POLL_INTERVAL": "1.5",
            "CCTP_ATTESTATION_TIMEOUT": "600",
        }
    )
    assert config.evm_private_key == "0xaa"
    assert config.solana_private_key == "bb"
    assert config.get_rpc_url(84532) == "https://base.example.com"
    assert config.get_rpc_url(421614) == "https://sepolia-rollup.arbitrum.io/rpc"
    assert config.attestation_poll_interval == 1.5
    assert config.attestation_timeout == 600.0
    # Override wins for both environments, trailing slash dropped
    assert config.get_iris_api_url(84532) == "https://iris.example.com"
    assert config.get_iris_api_url(102) == "https://iris.example.com"


def test_private_key_fallback():
    config = BridgeConfig.from_env({"PRIVATE_KEY": "0xcc"})
    assert config.evm_private_key == "0xcc"


def test_bad_number():
    with pytest.raises(ValueError, match="CCTP_ATTESTATION_TIMEOUT"):
        BridgeConfig.from_env({"CCTP_ATTESTATION_TIMEOUT": "soon"})


def test_iris_url_by_environment():
    config = BridgeConfig()
    assert config.get_iris_api_url(84532) == IRIS_API_SANDBOX_URL
    assert config.get_iris_api_url(103) == IRIS_API_SANDBOX_URL
    assert config.get_iris_api_url(102) == IRIS_API_BASE_URL


def test_repr_hides_secrets():
    config = BridgeConfig(evm_private_key="0xdeadbeef", solana_private_key="topsecret")
    text = repr(config)
    assert "deadbeef" not in text
    assert "topsecret" not in text
    assert "evm_key:set" in text
