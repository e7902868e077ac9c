"""
Tests for the in-memory venues.
"""

import pytest

from app.flash_liquidator.exceptions import (
    InsufficientLiquidity,
    PositionHealthy,
    SlippageExceeded,
    TransferFailure,
)
from app.flash_liquidator.trade_math import amount_out
from app.flash_liquidator.venues.base_venue import ExecutableVenues
from conftest import BORROWER


def test_atomic_restores_state_on_failure(scenario):
    sandbox = scenario.sandbox
    sandbox.mint("USDT", "alice", 100)

    with pytest.raises(TransferFailure):
        with sandbox.atomic():
            sandbox.transfer("USDT", "alice", "bob", 60)
            sandbox.transfer("USDT", "alice", "bob", 60)

    assert sandbox.balance_of("USDT", "alice") == 100
    assert sandbox.balance_of("USDT", "bob") == 0
    assert sandbox.rollbacks == 1


def test_atomic_keeps_state_on_success(scenario):
    sandbox = scenario.sandbox
    sandbox.mint("USDT", "alice", 100)
    with sandbox.atomic():
        sandbox.transfer("USDT", "alice", "bob", 60)
    assert sandbox.balance_of("USDT", "bob") == 60
    assert sandbox.rollbacks == 0


def test_pool_swap_updates_reserves(scenario):
    pool = scenario.secondary_pool
    reserve0, reserve1, timestamp = pool.get_reserves()
    out = amount_out(10**8, reserve0, reserve1)

    scenario.sandbox.mint("WBTC", "alice", 10**8)
    scenario.sandbox.transfer("WBTC", "alice", pool.address, 10**8)
    pool.swap(0, out, "alice")

    assert pool.get_reserves()[:2] == (reserve0 + 10**8, reserve1 - out)
    assert pool.get_reserves()[2] > timestamp
    assert scenario.sandbox.balance_of("WETH", "alice") == out


def test_pool_swap_rejects_overdraw(scenario):
    pool = scenario.secondary_pool
    reserve0, reserve1, _ = pool.get_reserves()
    out = amount_out(10**8, reserve0, reserve1)

    scenario.sandbox.mint("WBTC", "alice", 10**8)
    scenario.sandbox.transfer("WBTC", "alice", pool.address, 10**8)
    with pytest.raises(TransferFailure):
        pool.swap(0, out + 10**15, "alice")


def test_pool_swap_without_payment(scenario):
    with pytest.raises(TransferFailure):
        scenario.secondary_pool.swap(0, 10**18, "alice")


def test_pool_cannot_pay_whole_reserve(scenario):
    with pytest.raises(InsufficientLiquidity):
        scenario.secondary_pool.swap(10 * 10**8, 0, "alice")


def test_stableswap_exchange(scenario):
    stableswap = scenario.stableswap
    scenario.sandbox.mint("USDT", "alice", 1_000 * 10**6)
    received = stableswap.exchange("alice", 2, 1, 1_000 * 10**6, 0)
    assert received == stableswap.quote(2, 1, 1_000 * 10**6) == 999_600_000
    assert scenario.sandbox.balance_of("USDC", "alice") == received


def test_stableswap_minimum_output(scenario):
    scenario.sandbox.mint("USDT", "alice", 1_000 * 10**6)
    with pytest.raises(SlippageExceeded):
        scenario.stableswap.exchange("alice", 2, 1, 1_000 * 10**6, 1_000 * 10**6)


def test_ledger_health_factor(scenario):
    position = scenario.ledger.get_account_data(BORROWER)
    assert position.collateral_value == 10 * 10**18
    assert position.debt_value == 8_333_333_333_500_000_000
    assert position.liquidation_threshold == 7500
    assert position.health_factor < 9 * 10**17


def test_ledger_applies_close_factor(scenario):
    scenario.sandbox.mint("USDC", "alice", 20_000 * 10**6)
    debt_repaid, seized = scenario.ledger.liquidate("alice", "WBTC", "USDC", BORROWER, 20_000 * 10**6, False)

    assert debt_repaid == 8_333_333_333
    assert seized == scenario.sandbox.balance_of("WBTC", "alice")
    assert scenario.ledger.get_debt_balance(BORROWER, "USDC") == 16_666_666_667 - debt_repaid


def test_ledger_rejects_healthy_position(scenario):
    scenario.oracle.set_price("WBTC", 100 * 10**18)
    scenario.sandbox.mint("USDC", "alice", 1_000 * 10**6)
    with pytest.raises(PositionHealthy):
        scenario.ledger.liquidate("alice", "WBTC", "USDC", BORROWER, 1_000 * 10**6, False)


def test_wrapped_native_withdraw(scenario):
    scenario.sandbox.mint("WETH", "alice", 10**18)
    scenario.venues.wrapped_native.withdraw("alice", 10**18)
    assert scenario.sandbox.balance_of("WETH", "alice") == 0
    assert scenario.sandbox.native_balance("alice") == 10**18


def test_ledger_can_credit_collateral_position(scenario):
    scenario.sandbox.mint("USDC", "alice", 1_000 * 10**6)
    _, seized = scenario.ledger.liquidate("alice", "WBTC", "USDC", BORROWER, 1_000 * 10**6, True)

    assert seized == 1_050_000
    assert scenario.ledger.get_collateral_balance("alice", "WBTC") == seized
    assert scenario.sandbox.balance_of("WBTC", "alice") == 0


def test_executable_venues_require_wrapped_native(scenario):
    venues = scenario.venues
    with pytest.raises(TypeError):
        ExecutableVenues(
            ledger=venues.ledger,
            primary_pool=venues.primary_pool,
            secondary_pool=venues.secondary_pool,
            stableswap=venues.stableswap,
            oracle=venues.oracle,
            registry=venues.registry,
        )
