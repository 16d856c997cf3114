"""Chain registry.

Static metadata of every chain the bridge can burn on or mint to.

- Chain ids are the key. For EVM chains this is the EIP-155 chain id.
  Solana has no chain id, so we use the same made up numbers as Circle's sample apps
  (``103`` devnet, ``102`` mainnet).

- CCTP domain ids are a separate namespace. They are what the Iris attestation service
  and ``depositForBurn`` use to identify a chain.

The registry is built once at import time and is read-only.

Example:

.. code-block:: python

    from cctp_bridge.chain import describe, resolve_family, ChainFamily

    base = describe(84532)
    assert base.protocol_domain == 6
    assert resolve_family(103) == ChainFamily.solana
"""

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from cctp_bridge.constants import (
    MESSAGE_TRANSMITTER_V2_TESTNET,
    NATIVE_EVM_DECIMALS,
    SOLANA_MESSAGE_TRANSMITTER_V2,
    SOLANA_NATIVE_DECIMALS,
    SOLANA_TOKEN_MESSENGER_MINTER_V2,
    TOKEN_MESSENGER_V2_TESTNET,
)
from cctp_bridge.errors import UnknownChain


class ChainFamily(enum.Enum):
    """Ledger family of a chain.

    Decides which :py:class:`~cctp_bridge.adapter.ChainAdapter` drives the chain.
    """

    #: Account based EVM chains, ERC-20 USDC
    evm = "evm"

    #: Solana account/program model, SPL USDC
    solana = "solana"


class SupportedChainId(enum.IntEnum):
    """Chains with a CCTP V2 deployment we know about."""

    eth_sepolia = 11155111
    arc_testnet = 5042002
    avax_fuji = 43113
    base_sepolia = 84532
    sonic_testnet = 14601
    linea_sepolia = 59141
    arbitrum_sepolia = 421614
    worldchain_sepolia = 4801
    optimism_sepolia = 11155420
    solana_devnet = 103
    solana_mainnet = 102
    codex_testnet = 812242
    unichain_sepolia = 1301
    polygon_amoy = 80002
    sei_testnet = 1328
    xdc_testnet = 51
    plume_sepolia = 98867
    hyperevm_testnet = 998
    ink_sepolia = 763373


@dataclass(slots=True, frozen=True)
class ChainDescriptor:
    """Everything we need to know about one chain."""

    #: Registry key, EVM chain id or pseudo id for Solana
    chain_id: int

    #: EVM or Solana
    family: ChainFamily

    #: Human readable name, e.g. "Base Sepolia"
    name: str

    #: Default public JSON-RPC endpoint.
    #:
    #: Can be overridden with ``JSON_RPC_<NAME>`` environment variable,
    #: see :py:func:`cctp_bridge.config.get_json_rpc_env`.
    rpc_url: str

    #: USDC ERC-20 contract address or SPL mint pubkey
    token_address: str

    #: TokenMessengerV2 contract or TokenMessengerMinterV2 program id
    messenger_address: str

    #: MessageTransmitterV2 contract or program id
    transmitter_address: str

    #: CCTP domain id
    protocol_domain: int

    #: Testnets use the Iris sandbox
    testnet: bool = True

    #: USDC is the gas token of the chain (Arc).
    #:
    #: Balance is read as native balance with 18 decimals, not with ``balanceOf()``.
    usdc_is_native_gas: bool = False

    #: Decimals of the native gas token
    native_decimals: int = NATIVE_EVM_DECIMALS

    def __repr__(self):
        return f"<Chain {self.name} id:{self.chain_id} domain:{self.protocol_domain} family:{self.family.value}>"

    @property
    def env_name(self) -> str:
        """Chain name usable in environment variable names, e.g. ``BASE_SEPOLIA``."""
        return self.name.upper().replace(" ", "_")

    @property
    def is_solana(self) -> bool:
        return self.family == ChainFamily.solana


def _evm(chain_id: int, name: str, rpc_url: str, usdc: str, domain: int, **kwargs) -> ChainDescriptor:
    return ChainDescriptor(
        chain_id=int(chain_id),
        family=ChainFamily.evm,
        name=name,
        rpc_url=rpc_url,
        token_address=usdc,
        messenger_address=TOKEN_MESSENGER_V2_TESTNET,
        transmitter_address=MESSAGE_TRANSMITTER_V2_TESTNET,
        protocol_domain=domain,
        **kwargs,
    )


def _solana(chain_id: int, name: str, rpc_url: str, usdc_mint: str, testnet: bool) -> ChainDescriptor:
    return ChainDescriptor(
        chain_id=int(chain_id),
        family=ChainFamily.solana,
        name=name,
        rpc_url=rpc_url,
        token_address=usdc_mint,
        messenger_address=SOLANA_TOKEN_MESSENGER_MINTER_V2,
        transmitter_address=SOLANA_MESSAGE_TRANSMITTER_V2,
        # Solana is domain 5 on both devnet and mainnet,
        # the Iris environment (sandbox vs. production) tells them apart
        protocol_domain=5,
        testnet=testnet,
        native_decimals=SOLANA_NATIVE_DECIMALS,
    )


_CHAINS = [
    _evm(SupportedChainId.eth_sepolia, "Ethereum Sepolia", "https://ethereum-sepolia-rpc.publicnode.com", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238", 0),
    _evm(SupportedChainId.avax_fuji, "Avalanche Fuji", "https://api.avax-test.network/ext/bc/C/rpc", "0x5425890298aed601595a70AB815c96711a31Bc65", 1),
    _evm(SupportedChainId.optimism_sepolia, "Optimism Sepolia", "https://sepolia.optimism.io", "0x5fd84259d66Cd46123540766Be93DFE6D43130D7", 2),
    _evm(SupportedChainId.arbitrum_sepolia, "Arbitrum Sepolia", "https://sepolia-rollup.arbitrum.io/rpc", "0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d", 3),
    _solana(SupportedChainId.solana_devnet, "Solana Devnet", "https://api.devnet.solana.com", "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU", testnet=True),
    _solana(SupportedChainId.solana_mainnet, "Solana Mainnet", "https://api.mainnet-beta.solana.com", "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", testnet=False),
    _evm(SupportedChainId.base_sepolia, "Base Sepolia", "https://sepolia.base.org", "0x036CbD53842c5426634e7929541eC2318f3dCF7e", 6),
    _evm(SupportedChainId.polygon_amoy, "Polygon Amoy", "https://rpc-amoy.polygon.technology", "0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582", 7),
    _evm(SupportedChainId.unichain_sepolia, "Unichain Sepolia", "https://sepolia.unichain.org", "0x31d0220469e10c4E71834a79b1f276d740d3768F", 10),
    _evm(SupportedChainId.linea_sepolia, "Linea Sepolia", "https://rpc.sepolia.linea.build", "0xFEce4462D57bD51A6A552365A011b95f0E16d9B7", 11),
    _evm(SupportedChainId.codex_testnet, "Codex Testnet", "https://812242.rpc.thirdweb.com", "0x6d7f141b6819C2c9CC2f818e6ad549E7Ca090F8f", 12),
    _evm(SupportedChainId.sonic_testnet, "Sonic Testnet", "https://rpc.testnet.soniclabs.com", "0x0BA304580ee7c9a980CF72e55f5Ed2E9fd30Bc51", 13),
    _evm(SupportedChainId.worldchain_sepolia, "Worldchain Sepolia", "https://worldchain-sepolia.g.alchemy.com/public", "0x66145f38cBAC35Ca6F1Dfb4914dF98F1614aeA88", 14),
    _evm(SupportedChainId.sei_testnet, "Sei Testnet", "https://evm-rpc-testnet.sei-apis.com", "0x4fCF1784B31630811181f670Aea7A7bEF803eaED", 16),
    _evm(SupportedChainId.xdc_testnet, "XDC Testnet", "https://erpc.apothem.network", "0xb5AB69F7bBada22B28e79C8FFAECe55eF1c771D4", 18),
    _evm(SupportedChainId.hyperevm_testnet, "HyperEVM Testnet", "https://rpc.hyperliquid-testnet.xyz/evm", "0x2B3370eE501B4a559b57D449569354196457D8Ab", 19),
    _evm(SupportedChainId.ink_sepolia, "Ink Sepolia", "https://rpc-gel-sepolia.inkonchain.com", "0xFabab97dCE620294D2B0b0e46C68964e326300Ac", 21),
    _evm(SupportedChainId.plume_sepolia, "Plume Sepolia", "https://testnet-rpc.plume.org", "0xcB5f30e335672893c7eb944B374c196392C19D18", 22),
    _evm(SupportedChainId.arc_testnet, "Arc Testnet", "https://rpc.testnet.arc.network", "0x3600000000000000000000000000000000000000", 26, usdc_is_native_gas=True),
]

#: Chain id -> descriptor, read-only
CHAIN_REGISTRY: Mapping[int, ChainDescriptor] = MappingProxyType({c.chain_id: c for c in _CHAINS})

assert len(CHAIN_REGISTRY) == len(_CHAINS), "Duplicate chain id in the registry"


def describe(chain_id: int) -> ChainDescriptor:
    """Get the descriptor of a chain.

    :raises UnknownChain:
        If the chain is not in the registry
    """
    try:
        return CHAIN_REGISTRY[chain_id]
    except KeyError as e:
        raise UnknownChain(chain_id) from e


def resolve_family(chain_id: int) -> ChainFamily:
    """EVM or Solana."""
    return describe(chain_id).family


def get_chain_name(chain_id: int) -> str:
    """Get a chain name for logging.

    Unlike :py:func:`describe`, never fails.
    """
    descriptor = CHAIN_REGISTRY.get(chain_id)
    if descriptor is None:
        return f"Unknown chain {chain_id}"
    return descriptor.name


def get_chain_id_by_name(name: str) -> int | None:
    """Resolve a chain by its name.

    Case and separator insensitive: ``base-sepolia``, ``Base Sepolia`` and ``BASE_SEPOLIA`` all match.
    """
    wanted = name.upper().replace("-", "_").replace(" ", "_")
    for descriptor in CHAIN_REGISTRY.values():
        if descriptor.env_name == wanted:
            return descriptor.chain_id
    return None


def get_chains_by_domain(protocol_domain: int) -> list[ChainDescriptor]:
    """All registry entries using a CCTP domain.

    Solana devnet and mainnet share domain 5, so this can return more than one chain.
    """
    return [c for c in CHAIN_REGISTRY.values() if c.protocol_domain == protocol_domain]
