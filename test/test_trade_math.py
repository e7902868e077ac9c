"""
Tests for the constant-product trade math.
"""

import pytest

from app.flash_liquidator.exceptions import ArithmeticOverflow, InsufficientLiquidity, InvalidAmount
from app.flash_liquidator.trade_math import (
    UINT256_MAX,
    amount_in,
    amount_out,
    apply_buffer,
    min_output,
    mul_div,
)

USDT_WETH_RESERVES = (1_000_000 * 10**6, 500 * 10**18)
WBTC_WETH_RESERVES = (10 * 10**8, 500 * 10**18)


def test_amount_out_known_value():
    # 1000 * 997 * 10000 / (10000 * 1000 + 1000 * 997) = 906.6
    assert amount_out(1000, 10_000, 10_000) == 906


def test_amount_in_rounds_up():
    # 10000 * 906 * 1000 / ((10000 - 906) * 997) = 999.26, plus one
    assert amount_in(906, 10_000, 10_000) == 1000


@pytest.mark.parametrize(
    "x, reserve_in, reserve_out",
    [
        (1000, 10_000, 10_000),
        (10**9, *USDT_WETH_RESERVES),
        (6_249 * 10**6, *USDT_WETH_RESERVES),
        (12_345_678, WBTC_WETH_RESERVES[0], WBTC_WETH_RESERVES[1]),
    ],
)
def test_buying_back_costs_at_least_what_was_sold(x, reserve_in, reserve_out):
    assert amount_in(amount_out(x, reserve_in, reserve_out), reserve_in, reserve_out) >= x


@pytest.mark.parametrize(
    "y, reserve_in, reserve_out",
    [
        (3_000 * 10**6, USDT_WETH_RESERVES[1], USDT_WETH_RESERVES[0]),
        (10**6, *USDT_WETH_RESERVES),
        (2 * 10**18, *WBTC_WETH_RESERVES),
    ],
)
def test_paying_amount_in_yields_requested_output(y, reserve_in, reserve_out):
    assert amount_out(amount_in(y, reserve_in, reserve_out), reserve_in, reserve_out) >= y


def test_amount_out_is_monotonic():
    outputs = [amount_out(x * 10**6, *USDT_WETH_RESERVES) for x in (1, 10, 100, 1000, 10_000)]
    assert outputs == sorted(outputs)
    assert all(out < USDT_WETH_RESERVES[1] for out in outputs)


@pytest.mark.parametrize("reserves", [(0, 10_000), (10_000, 0)])
def test_empty_reserves_are_rejected(reserves):
    with pytest.raises(InsufficientLiquidity):
        amount_out(100, *reserves)
    with pytest.raises(InsufficientLiquidity):
        amount_in(100, *reserves)


def test_zero_amount_is_rejected():
    with pytest.raises(InvalidAmount):
        amount_out(0, 10_000, 10_000)
    with pytest.raises(InvalidAmount):
        amount_in(0, 10_000, 10_000)


def test_negative_amount_is_rejected():
    with pytest.raises(InvalidAmount):
        amount_out(-1, 10_000, 10_000)


def test_amount_in_for_whole_reserve():
    with pytest.raises(InsufficientLiquidity):
        amount_in(10_000, 10_000, 10_000)
    with pytest.raises(InsufficientLiquidity):
        amount_in(20_000, 10_000, 10_000)


def test_overflow_is_detected():
    with pytest.raises(ArithmeticOverflow):
        amount_out(2**255, 2**255, 2**255)
    with pytest.raises(ArithmeticOverflow):
        amount_in(2**200, 2**200, 2**201)
    with pytest.raises(ArithmeticOverflow):
        amount_out(UINT256_MAX + 1, 10_000, 10_000)


def test_buffers():
    assert apply_buffer(10_000, 100) == 10_100
    assert apply_buffer(999, 50) == 1003
    assert min_output(10_000, 100) == 9_900
    assert min_output(999, 100) == 989


def test_mul_div():
    assert mul_div(7, 3, 2) == 10
    with pytest.raises(InvalidAmount):
        mul_div(1, 1, 0)
    with pytest.raises(ArithmeticOverflow):
        mul_div(UINT256_MAX, 2, 2)
