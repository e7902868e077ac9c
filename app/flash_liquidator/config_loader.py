"""
Strategy record injected into the core, plus chain, web3 and secret settings.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import yaml
from web3 import Web3

from .exceptions import ConfigError
from .models import Route, RouteStep

APP_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_RPC_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class StrategyConfig:
    """
    Identities and policy constants of the liquidation route, resolved once at startup.

    The core never embeds venue addresses or asset identifiers; everything it
    needs to name is carried here.
    """

    target_user: str
    borrow_asset: str
    debt_asset: str
    collateral_asset: str
    repay_asset: str
    primary_pool: str
    secondary_pool: str
    stableswap_pool: str
    stableswap_coins: Tuple[str, ...]
    liquidator: str
    operator: str
    close_factor_bp: int = 5000
    slippage_bp: int = 100
    simulation_buffer_bp: int = 100
    execution_buffer_bp: int = 50
    search_iterations: int = 20
    health_factor_one: int = 10**18
    min_surplus: int = 0
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrategyConfig":
        """
        Build the strategy record from a YAML ``strategy`` section.

        Raises:
            ConfigError: when a required key is missing or a policy value is out of range.
        """
        required = [
            "target_user",
            "borrow_asset",
            "debt_asset",
            "collateral_asset",
            "repay_asset",
            "primary_pool",
            "secondary_pool",
            "stableswap_pool",
            "stableswap_coins",
            "liquidator",
            "operator",
        ]
        missing = [key for key in required if key not in data]
        if missing:
            raise ConfigError(f"Missing strategy settings: {', '.join(missing)}")

        known = set(cls.__dataclass_fields__) - {"extra"}
        values = {key: value for key, value in data.items() if key in known}
        values["stableswap_coins"] = tuple(data["stableswap_coins"])
        values["extra"] = {key: value for key, value in data.items() if key not in known}
        config = cls(**values)
        config.validate()
        return config

    def validate(self) -> None:
        for name in ("close_factor_bp", "slippage_bp", "simulation_buffer_bp", "execution_buffer_bp"):
            value = getattr(self, name)
            if not 0 <= value <= 10_000:
                raise ConfigError(f"{name} must be within [0, 10000], got {value}")
        if self.search_iterations <= 0:
            raise ConfigError("search_iterations must be positive")
        for asset in (self.borrow_asset, self.debt_asset):
            if asset not in self.stableswap_coins:
                raise ConfigError(f"Asset {asset} is not a coin of the stableswap pool")

    def route(self) -> Route:
        return Route(
            steps=(
                RouteStep(self.borrow_asset, self.debt_asset, self.stableswap_pool),
                RouteStep(self.debt_asset, self.collateral_asset, "ledger"),
                RouteStep(self.collateral_asset, self.repay_asset, self.secondary_pool),
                RouteStep(self.repay_asset, self.borrow_asset, self.primary_pool),
            )
        )


class Web3Singleton:
    """
    One Web3 client per node URL, shared by every reader in the process.
    """

    _instances: Dict[Tuple[str, int], Web3] = {}

    @staticmethod
    def get_instance(rpc_url: str, timeout: int = DEFAULT_RPC_TIMEOUT_SECONDS) -> Web3:
        key = (rpc_url, timeout)
        if key not in Web3Singleton._instances:
            provider = Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
            Web3Singleton._instances[key] = Web3(provider)
        return Web3Singleton._instances[key]


def setup_w3(rpc_url: str, timeout: int = DEFAULT_RPC_TIMEOUT_SECONDS) -> Web3:
    """
    Return the shared Web3 client for ``rpc_url``.

    Args:
        rpc_url: HTTP endpoint of the node.
        timeout: Seconds before a node request is abandoned and retried by the readers.
    """
    return Web3Singleton.get_instance(rpc_url, timeout)


def _checksum(value: Any) -> Any:
    """Checksum address strings, including inside lists; leave anything else untouched."""
    if isinstance(value, list):
        return [_checksum(item) for item in value]
    if isinstance(value, str) and Web3.is_address(value.lower()):
        return Web3.to_checksum_address(value)
    return value


class ChainConfig:
    """
    Settings of one chain: YAML values, secrets from the environment and the web3 client.

    Unknown attributes resolve against the chain section, then its ``contracts``
    mapping, then the ``global`` section, so ``config.LENDING_POOL`` and
    ``config.RECEIPT_TIMEOUT_SECONDS`` read straight from config.yaml.
    """

    required_env_vars = ("LIQUIDATOR_EOA", "LIQUIDATOR_PRIVATE_KEY")

    def __init__(self, chain_id: int, global_config: Dict[str, Any], chain_config: Dict[str, Any]):
        self._global = global_config
        self._chain = chain_config
        self.CHAIN_ID = chain_id
        self.CHAIN_NAME = chain_config["name"]

        self.validate()
        self.LIQUIDATOR_EOA = Web3.to_checksum_address(os.environ["LIQUIDATOR_EOA"])
        self.LIQUIDATOR_EOA_PRIVATE_KEY = os.environ["LIQUIDATOR_PRIVATE_KEY"]
        self.NOTIFICATION_URL = os.environ.get("NOTIFICATION_URL", "")

        rpc_var = chain_config["RPC_NAME"]
        self.RPC_URL = os.environ.get(rpc_var, "")
        if not self.RPC_URL:
            raise ConfigError(f"{self.CHAIN_NAME} needs a node URL in the {rpc_var} environment variable")
        self.w3 = setup_w3(self.RPC_URL, global_config.get("RPC_TIMEOUT_SECONDS", DEFAULT_RPC_TIMEOUT_SECONDS))

        strategy = {key: _checksum(value) for key, value in chain_config.get("strategy", {}).items()}
        strategy.setdefault("operator", self.LIQUIDATOR_EOA)
        self.strategy = StrategyConfig.from_dict(strategy)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        for section in (self._chain, self._chain.get("contracts", {}), self._global):
            if name in section:
                return section[name]
        raise AttributeError(f"{self.CHAIN_NAME} config has no setting '{name}'")

    def abi_path(self, name: str) -> str:
        """Resolve an ABI path from the global section, relative to the app directory."""
        path = self._global[name]
        return path if os.path.isabs(path) else os.path.join(APP_DIR, path)

    def validate(self) -> None:
        """
        Raises:
            ConfigError: a required environment variable is unset or empty.
        """
        missing = [key for key in self.required_env_vars if not os.getenv(key)]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")


def load_chain_config(chain_id: int, config_path: Optional[str] = None) -> ChainConfig:
    """
    Read config.yaml (or ``config_path``) and build the settings of ``chain_id``.

    Raises:
        ConfigError: the file is missing or malformed, or has no section for the chain.
    """
    config_path = config_path or os.path.join(APP_DIR, "config.yaml")
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found at {config_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {config_path} is not valid YAML: {exc}") from exc

    chains = document.get("chains", {})
    if chain_id not in chains:
        raise ConfigError(f"No configuration found for chain ID {chain_id}")
    return ChainConfig(chain_id, document.get("global", {}), chains[chain_id])
