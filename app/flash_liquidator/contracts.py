"""
Web3 contract construction from the ABI files listed in config.yaml.
"""

import json
from functools import lru_cache
from typing import Any, List

from web3 import Web3
from web3.contract import Contract

from .config_loader import ChainConfig


@lru_cache(maxsize=None)
def load_abi(path: str) -> List[Any]:
    """Read the ``abi`` list of an artifact file; each file is parsed once per process."""
    with open(path, "r", encoding="utf-8") as file:
        return json.load(file)["abi"]


def create_contract_instance(address: str, abi_name: str, config: ChainConfig) -> Contract:
    """
    Bind ``address`` to the ABI stored under the global config key ``abi_name``.

    Addresses are checksummed here, so config values may use any case.
    """
    return config.w3.eth.contract(address=Web3.to_checksum_address(address), abi=load_abi(config.abi_path(abi_name)))
