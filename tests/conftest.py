"""Shared fixtures for offline bridge tests."""

from unittest.mock import Mock

import pytest
import requests

from cctp_bridge.adapter import ChainAdapter
from cctp_bridge.attestation import AttestationPollPolicy
from cctp_bridge.config import BridgeConfig
from cctp_bridge.testing import craft_cctp_message, make_iris_response
from cctp_bridge.transfer import CCTPTransferExecutor, MintRetryPolicy
from tests.fakes import (
    BASE_SEPOLIA_USDC,
    TEST_EVM_PRIVATE_KEY,
    TEST_SOLANA_PRIVATE_KEY,
    StubFactory,
    make_response,
    not_found,
)


@pytest.fixture()
def config() -> BridgeConfig:
    return BridgeConfig(
        evm_private_key=TEST_EVM_PRIVATE_KEY,
        solana_private_key=TEST_SOLANA_PRIVATE_KEY,
    )


@pytest.fixture()
def cctp_message() -> bytes:
    """Attested Base Sepolia -> Arbitrum Sepolia burn message."""
    return craft_cctp_message(
        source_domain=6,
        destination_domain=3,
        nonce=42,
        mint_recipient="0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
        amount=1_500_000,
        burn_token=BASE_SEPOLIA_USDC,
    )


@pytest.fixture()
def attestation_bytes() -> bytes:
    return bytes(range(65))


@pytest.fixture()
def complete_response(cctp_message, attestation_bytes) -> requests.Response:
    return make_response(200, make_iris_response(cctp_message, attestation_bytes))


@pytest.fixture()
def http_session(complete_response) -> Mock:
    """Iris answers 404 twice, then the complete attestation."""
    session = Mock()
    session.get.side_effect = [not_found(), not_found(), complete_response]
    return session


@pytest.fixture()
def sleeps() -> list:
    """Collects every injected sleep."""
    return []


@pytest.fixture()
def make_executor(config, http_session, sleeps):
    """Create an executor over fake adapters, with instant sleeps."""

    def _make(adapters: dict[int, ChainAdapter], session=http_session, factory_config=config, **kwargs) -> CCTPTransferExecutor:
        factory = StubFactory(factory_config, adapters)
        return CCTPTransferExecutor(
            factory,
            mint_retry_policy=MintRetryPolicy(sleep=sleeps.append),
            attestation_policy=AttestationPollPolicy(poll_interval=0.0, sleep=lambda s: None),
            http_session=session,
            **kwargs,
        )

    return _make


