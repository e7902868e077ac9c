import os
from dataclasses import dataclass

import pytest
from dotenv import load_dotenv

from app.flash_liquidator.config_loader import ChainConfig, StrategyConfig, load_chain_config
from app.flash_liquidator.models import RiskParameters
from app.flash_liquidator.trade_math import amount_out
from app.flash_liquidator.venues.base_venue import ExecutableVenues
from app.flash_liquidator.venues.sandbox import (
    Sandbox,
    SandboxLendingPool,
    SandboxOracle,
    SandboxPool,
    SandboxRiskRegistry,
    SandboxStableswap,
    SandboxWrappedNative,
)

TEST_CHAIN_ID = 1
ENV_EXAMPLE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env.example")

BORROWER = "0x" + "b0" * 20
OPERATOR = "operator"
LIQUIDATOR = "liquidator"

# Valuation unit is ETH with 18 decimals: 2000 USD per ETH, 50 ETH per BTC
PRICES = {
    "USDT": 5 * 10**14,
    "USDC": 5 * 10**14,
    "DAI": 5 * 10**14,
    "WBTC": 50 * 10**18,
    "WETH": 10**18,
}

RISK_PARAMETERS = {
    "USDT": RiskParameters(decimals=6, ltv=0, liquidation_threshold=0, liquidation_bonus=0),
    "USDC": RiskParameters(decimals=6, ltv=8000, liquidation_threshold=8500, liquidation_bonus=10500),
    "DAI": RiskParameters(decimals=18, ltv=7500, liquidation_threshold=8000, liquidation_bonus=10500),
    "WBTC": RiskParameters(decimals=8, ltv=7000, liquidation_threshold=7500, liquidation_bonus=10500),
    "WETH": RiskParameters(decimals=18, ltv=8000, liquidation_threshold=8250, liquidation_bonus=10500),
}

# 0.2 WBTC (10 ETH) against 16,666.67 USDC (8.33 ETH) puts the health factor just under 0.9
BORROWER_COLLATERAL = {"WBTC": 20_000_000}
BORROWER_DEBT = {"USDC": 16_666_666_667}


@dataclass
class Scenario:
    sandbox: Sandbox
    venues: ExecutableVenues
    strategy: StrategyConfig
    ledger: SandboxLendingPool
    primary_pool: SandboxPool
    secondary_pool: SandboxPool
    stableswap: SandboxStableswap
    oracle: SandboxOracle


def make_strategy(**overrides) -> StrategyConfig:
    values = dict(
        target_user=BORROWER,
        borrow_asset="USDT",
        debt_asset="USDC",
        collateral_asset="WBTC",
        repay_asset="WETH",
        primary_pool="primary",
        secondary_pool="secondary",
        stableswap_pool="stableswap",
        stableswap_coins=("DAI", "USDC", "USDT"),
        liquidator=LIQUIDATOR,
        operator=OPERATOR,
    )
    values.update(overrides)
    return StrategyConfig(**values)


def build_scenario(strategy: StrategyConfig = None) -> Scenario:
    strategy = strategy or make_strategy()
    sandbox = Sandbox()
    oracle = SandboxOracle(PRICES)
    registry = SandboxRiskRegistry(RISK_PARAMETERS)

    primary_pool = SandboxPool(sandbox, "primary", "USDT", "WETH", 1_000_000 * 10**6, 500 * 10**18)
    secondary_pool = SandboxPool(sandbox, "secondary", "WBTC", "WETH", 10 * 10**8, 500 * 10**18)
    stableswap = SandboxStableswap(
        sandbox,
        "stableswap",
        coins=("DAI", "USDC", "USDT"),
        decimals=(18, 6, 6),
        liquidity=(10_000_000 * 10**18, 10_000_000 * 10**6, 10_000_000 * 10**6),
    )
    ledger = SandboxLendingPool(sandbox, "lending_pool", oracle, registry)
    ledger.open_position(BORROWER, BORROWER_COLLATERAL, BORROWER_DEBT)

    venues = ExecutableVenues(
        ledger=ledger,
        primary_pool=primary_pool,
        secondary_pool=secondary_pool,
        stableswap=stableswap,
        oracle=oracle,
        registry=registry,
        wrapped_native=SandboxWrappedNative(sandbox, "WETH"),
    )
    return Scenario(
        sandbox=sandbox,
        venues=venues,
        strategy=strategy,
        ledger=ledger,
        primary_pool=primary_pool,
        secondary_pool=secondary_pool,
        stableswap=stableswap,
        oracle=oracle,
    )


def dump_collateral(scenario: Scenario, amount: int) -> None:
    """Another trader sells ``amount`` of WBTC into the secondary pool."""
    pool = scenario.secondary_pool
    reserve0, reserve1, _ = pool.get_reserves()
    scenario.sandbox.mint("WBTC", "whale", amount)
    scenario.sandbox.transfer("WBTC", "whale", pool.address, amount)
    pool.swap(0, amount_out(amount, reserve0, reserve1), "whale")


@pytest.fixture()
def strategy() -> StrategyConfig:
    return make_strategy()


@pytest.fixture()
def scenario(strategy) -> Scenario:
    return build_scenario(strategy)


@pytest.fixture()
def config() -> ChainConfig:
    load_dotenv(dotenv_path=ENV_EXAMPLE)
    return load_chain_config(TEST_CHAIN_ID)
