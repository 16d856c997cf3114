"""Contract bindings from the ABI files shipped in ``cctp_bridge/abi``.

The files are Etherscan style ABI lists trimmed to the functions the bridge calls:

- ``ERC20.json``
- ``TokenMessengerV2.json``
- ``MessageTransmitterV2.json``
- ``OffsetManager.json``
"""

import json
from functools import lru_cache
from pathlib import Path

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

#: Where the ABI files live
ABI_FOLDER = Path(__file__).resolve().parent.parent / "abi"


@lru_cache(maxsize=None)
def load_abi(fname: str) -> list:
    """Read a bundled ABI file, cached for the process lifetime."""
    with open(ABI_FOLDER / fname, "rt", encoding="utf-8") as f:
        abi = json.load(f)
    assert isinstance(abi, list), f"{fname} is not an ABI list"
    return abi


def get_deployed_contract(web3: Web3, fname: str, address: HexAddress | str) -> Contract:
    """Bind a bundled ABI to a deployed contract.

    Example:

    .. code-block:: python

        usdc = get_deployed_contract(web3, "ERC20.json", descriptor.token_address)
        balance = usdc.functions.balanceOf(owner).call()

    :param fname:
        ABI file name under ``cctp_bridge/abi``
    """
    assert isinstance(web3, Web3), f"Got {type(web3)} instead of Web3"
    assert address, f"No address given for {fname}"
    return web3.eth.contract(address=Web3.to_checksum_address(address), abi=load_abi(fname))
