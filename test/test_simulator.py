"""
Tests for the profit simulator.
"""

from dataclasses import replace

import pytest

from app.flash_liquidator.simulator import ProfitSimulator, seized_collateral


@pytest.fixture()
def simulator(scenario):
    return ProfitSimulator(scenario.venues, scenario.strategy)


def test_seized_collateral_normalizes_decimals(simulator):
    snapshot = simulator.capture()
    # 1,000 USDC at 5e14 each with a 5% bonus is 0.525 ETH, or 0.0105 WBTC
    assert seized_collateral(1_000 * 10**6, snapshot) == 1_050_000


def test_seized_collateral_is_clamped_to_position(simulator):
    snapshot = replace(simulator.capture(), seizable_collateral=1_000)
    assert seized_collateral(1_000 * 10**6, snapshot) == 1_000


def test_zero_amount_has_zero_profit(simulator):
    result = simulator.simulate(0)
    assert result.profit == 0
    assert result.reason == "zero_amount"


def test_profitable_size(simulator):
    result = simulator.simulate(6_000 * 10**6)
    assert result.profitable
    assert result.collateral_needed < result.collateral_seized
    assert result.repayment_obligation > 0
    assert result.reason is None


def test_simulation_is_deterministic(simulator):
    snapshot = simulator.capture()
    first = simulator.simulate_with(5_000 * 10**6, snapshot)
    second = simulator.simulate_with(5_000 * 10**6, snapshot)
    assert first == second


def test_large_size_is_unprofitable(simulator):
    # Slippage on both pools outgrows the 5% bonus long before the close-factor cap
    result = simulator.simulate(400_000 * 10**6)
    assert result.profit == 0
    assert result.reason == "collateral_shortfall"


def test_size_beyond_pool_reserves(simulator):
    result = simulator.simulate(1_000_000 * 10**6)
    assert result.profit == 0
    assert result.reason == "insufficient_liquidity"


def test_needed_equal_to_seized_is_zero_profit(simulator):
    snapshot = simulator.capture()
    amount = 6_000 * 10**6
    needed = simulator.simulate_with(amount, snapshot).collateral_needed

    at_boundary = simulator.simulate_with(amount, replace(snapshot, seizable_collateral=needed))
    assert at_boundary.collateral_seized == needed
    assert at_boundary.profit == 0
    assert at_boundary.reason == "collateral_shortfall"

    just_above = simulator.simulate_with(amount, replace(snapshot, seizable_collateral=needed + 1))
    assert just_above.profit > 0


def test_simulation_does_not_touch_venues(scenario, simulator):
    balances_before = dict(scenario.sandbox.state.balances)
    reserves_before = scenario.primary_pool.get_reserves()
    simulator.simulate(6_000 * 10**6)
    assert dict(scenario.sandbox.state.balances) == balances_before
    assert scenario.primary_pool.get_reserves() == reserves_before
