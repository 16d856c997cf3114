"""Account and client factory.

Turns the static chain registry and the configured secrets into

- signing identities, one secret per chain family
- read clients: :py:class:`web3.Web3` for EVM, :py:class:`solana.rpc.api.Client` for Solana
- chain adapters bound to those clients

Everything is created lazily and cached per chain. Secrets and endpoints are fixed
at startup, so cache entries are never invalidated.

Example:

.. code-block:: python

    factory = AccountFactory(BridgeConfig.from_env())
    identity = factory.identity_for(84532)
    adapter = factory.adapter_for(84532)
    print(adapter.balance_of(identity.address))
"""

import logging
import threading

from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from web3 import HTTPProvider, Web3
from web3.middleware import ExtraDataToPOAMiddleware

from cctp_bridge.adapter import ChainAdapter
from cctp_bridge.chain import ChainFamily, describe
from cctp_bridge.config import BridgeConfig
from cctp_bridge.errors import MissingCredential
from cctp_bridge.evm.adapter import EVMChainAdapter
from cctp_bridge.identity import SigningIdentity, parse_evm_private_key, parse_solana_private_key
from cctp_bridge.solana.adapter import SolanaChainAdapter

logger = logging.getLogger(__name__)

#: These chains need POA middleware
POA_MIDDLEWARE_NEEDED_CHAIN_IDS = {
    43113,  # Avalanche Fuji
    80002,  # Polygon Amoy
}

#: Seconds for a single JSON-RPC request
DEFAULT_RPC_REQUEST_TIMEOUT = 30


def create_web3(json_rpc_url: str, chain_id: int | None = None) -> Web3:
    """Create a Web3 connection with chain-specific middleware.

    :param chain_id:
        Known chain id, so we do not need to call ``eth_chainId`` to decide the middleware
    """
    web3 = Web3(HTTPProvider(json_rpc_url, request_kwargs={"timeout": DEFAULT_RPC_REQUEST_TIMEOUT}))
    if chain_id is None:
        chain_id = web3.eth.chain_id
    if chain_id in POA_MIDDLEWARE_NEEDED_CHAIN_IDS:
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return web3


def create_solana_client(json_rpc_url: str) -> Client:
    return Client(json_rpc_url, commitment=Confirmed)


class AccountFactory:
    """Create identities, clients and adapters for chains.

    Thread safe. Several transfers running in parallel share one factory.
    """

    def __init__(self, config: BridgeConfig):
        self.config = config
        self._identities: dict[ChainFamily, SigningIdentity] = {}
        self._clients: dict[int, Web3 | Client] = {}
        self._adapters: dict[int, ChainAdapter] = {}
        self._lock = threading.RLock()

    def __repr__(self):
        return f"<AccountFactory {self.config}>"

    def _parse_identity(self, family: ChainFamily) -> SigningIdentity:
        match family:
            case ChainFamily.evm:
                secret = self.config.evm_private_key
                if not secret:
                    raise MissingCredential("EVM private key missing, set EVM_PRIVATE_KEY environment variable")
                return parse_evm_private_key(secret)
            case ChainFamily.solana:
                secret = self.config.solana_private_key
                if not secret:
                    raise MissingCredential("Solana private key missing, set SOLANA_PRIVATE_KEY environment variable")
                return parse_solana_private_key(secret)
            case _:
                raise NotImplementedError(f"Unknown chain family {family}")

    def identity_for(self, chain_id: int) -> SigningIdentity:
        """Get the signing identity used on a chain.

        All EVM chains share one identity, all Solana chains another.

        :raises UnknownChain:
            Chain not in the registry

        :raises MissingCredential:
            Secret for the chain family is not configured

        :raises MalformedCredential:
            Secret cannot be decoded
        """
        family = describe(chain_id).family
        with self._lock:
            identity = self._identities.get(family)
            if identity is None:
                identity = self._parse_identity(family)
                logger.info("Loaded %s signing identity %s", family.value, identity.address)
                self._identities[family] = identity
        return identity

    def read_client_for(self, chain_id: int) -> Web3 | Client:
        """Get the RPC client of a chain.

        Constructing the client does not do any network calls.
        """
        descriptor = describe(chain_id)
        with self._lock:
            client = self._clients.get(chain_id)
            if client is None:
                url = self.config.get_rpc_url(chain_id)
                match descriptor.family:
                    case ChainFamily.evm:
                        client = create_web3(url, chain_id)
                    case ChainFamily.solana:
                        client = create_solana_client(url)
                    case _:
                        raise NotImplementedError(f"Unknown chain family {descriptor.family}")
                self._clients[chain_id] = client
        return client

    def adapter_for(self, chain_id: int) -> ChainAdapter:
        """Get the chain adapter driving CCTP on a chain."""
        descriptor = describe(chain_id)
        with self._lock:
            adapter = self._adapters.get(chain_id)
            if adapter is None:
                client = self.read_client_for(chain_id)
                match descriptor.family:
                    case ChainFamily.evm:
                        adapter = EVMChainAdapter(descriptor, client)
                    case ChainFamily.solana:
                        adapter = SolanaChainAdapter(descriptor, client)
                    case _:
                        raise NotImplementedError(f"Unknown chain family {descriptor.family}")
                self._adapters[chain_id] = adapter
        return adapter

    def write_client_for(self, chain_id: int, identity: SigningIdentity | None = None):
        """Get the handle that signs and submits transactions on a chain.

        :return:
            :py:class:`~cctp_bridge.evm.hotwallet.HotWallet` on EVM,
            :py:class:`~cctp_bridge.solana.wallet.SolanaWallet` on Solana
        """
        if identity is None:
            identity = self.identity_for(chain_id)
        return self.adapter_for(chain_id).get_wallet(identity)
