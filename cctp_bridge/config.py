"""Read bridge configuration from environment variables.

Recognised keys:

- ``EVM_PRIVATE_KEY`` (or ``PRIVATE_KEY``): hex secret used on all EVM chains
- ``SOLANA_PRIVATE_KEY``: secret used on all Solana chains
- ``IRIS_API_URL``: attestation service base URL override
- ``JSON_RPC_<CHAIN_NAME>``: per-chain RPC URL override, e.g. ``JSON_RPC_BASE_SEPOLIA``
- ``CCTP_ATTESTATION_POLL_INTERVAL``: seconds between attestation polls
- ``CCTP_ATTESTATION_TIMEOUT``: give up attestation polling after this many seconds
- ``CARBON_OFFSET_MANAGER``: offset manager contract on the rewards chain

Secrets are only validated when a chain family is actually used,
see :py:class:`cctp_bridge.provider.AccountFactory`.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping

from eth_typing import HexAddress

from cctp_bridge.chain import CHAIN_REGISTRY, describe
from cctp_bridge.constants import (
    CARBON_OFFSET_MANAGER,
    DEFAULT_ATTESTATION_POLL_INTERVAL,
    IRIS_API_BASE_URL,
    IRIS_API_SANDBOX_URL,
)


def get_json_rpc_env(chain_id: int) -> str:
    """Get the JSON-RPC URL environment variable name for a chain.

    - Map chain id to a name and from there to environment variables.

    :raises UnknownChain:
        If the chain is not in the registry
    """
    return f"JSON_RPC_{describe(chain_id).env_name}"


def _read_float(environ: Mapping[str, str], key: str, default: float | None) -> float | None:
    value = environ.get(key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"Environment variable {key} must be a number, got {value!r}") from e


@dataclass(slots=True, frozen=True)
class BridgeConfig:
    """Bridge configuration.

    Construct with :py:meth:`from_env` in applications, directly in tests.
    """

    #: Raw EVM secret, hex, may be ``None``
    evm_private_key: str | None = None

    #: Raw Solana secret, may be ``None``
    solana_private_key: str | None = None

    #: Attestation service override.
    #:
    #: When not set, pick sandbox or production by the source chain.
    iris_api_url: str | None = None

    #: Chain id -> JSON-RPC URL overrides
    rpc_urls: Mapping[int, str] = field(default_factory=dict)

    #: Seconds between attestation polls
    attestation_poll_interval: float = DEFAULT_ATTESTATION_POLL_INTERVAL

    #: Give up polling after this many seconds, ``None`` polls forever
    attestation_timeout: float | None = None

    #: Offset manager contract used by the carbon hook
    carbon_offset_manager: HexAddress = CARBON_OFFSET_MANAGER

    def __repr__(self):
        # Never leak secrets to logs
        return (
            f"<BridgeConfig evm_key:{'set' if self.evm_private_key else 'unset'} "
            f"solana_key:{'set' if self.solana_private_key else 'unset'} "
            f"iris:{self.iris_api_url or 'auto'} rpc_overrides:{len(self.rpc_urls)}>"
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BridgeConfig":
        """Read configuration from environment variables.

        :param environ:
            Defaults to ``os.environ``

        :raises ValueError:
            If a numeric variable cannot be parsed
        """
        if environ is None:
            environ = os.environ

        rpc_urls = {}
        for chain_id in CHAIN_REGISTRY:
            url = environ.get(get_json_rpc_env(chain_id))
            if url:
                rpc_urls[chain_id] = url.strip()

        return cls(
            evm_private_key=environ.get("EVM_PRIVATE_KEY") or environ.get("PRIVATE_KEY") or None,
            solana_private_key=environ.get("SOLANA_PRIVATE_KEY") or None,
            iris_api_url=environ.get("IRIS_API_URL") or None,
            rpc_urls=rpc_urls,
            attestation_poll_interval=_read_float(environ, "CCTP_ATTESTATION_POLL_INTERVAL", DEFAULT_ATTESTATION_POLL_INTERVAL),
            attestation_timeout=_read_float(environ, "CCTP_ATTESTATION_TIMEOUT", None),
            carbon_offset_manager=HexAddress(environ.get("CARBON_OFFSET_MANAGER") or CARBON_OFFSET_MANAGER),
        )

    def get_rpc_url(self, chain_id: int) -> str:
        """JSON-RPC URL of a chain, override first, registry default second."""
        return self.rpc_urls.get(chain_id) or describe(chain_id).rpc_url

    def get_iris_api_url(self, source_chain_id: int) -> str:
        """Attestation service base URL for a burn on the given chain.

        Attestations are looked up by the source domain, so the source chain
        decides between the sandbox and production service.
        """
        if self.iris_api_url:
            return self.iris_api_url.rstrip("/")
        return IRIS_API_SANDBOX_URL if describe(source_chain_id).testnet else IRIS_API_BASE_URL
