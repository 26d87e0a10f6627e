"""Contract ABIs shipped with bridgeswap."""

from importlib import resources
from typing import Any, List, Type
import functools
import json

from web3 import Web3
from web3.contract import Contract

# Offline instance: only used to encode call data and decode logs.
ABI_CODEC = Web3()


@functools.lru_cache(maxsize=None)
def load_contract_abi(filename: str) -> List[Any]:
    """Load an ABI JSON file from the contracts package."""
    with resources.files(__package__).joinpath(filename).open("r", encoding="utf-8") as fh:
        return json.load(fh)


@functools.lru_cache(maxsize=None)
def load_contract_codec(filename: str) -> Type[Contract]:
    """Return an address-less contract factory for ``filename`` to build call data with."""
    return ABI_CODEC.eth.contract(abi=load_contract_abi(filename))


__all__ = ["ABI_CODEC", "load_contract_abi", "load_contract_codec"]
