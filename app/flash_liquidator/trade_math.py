"""
Fixed-point constant-product trade math.

Amounts are integers in base units. Python integers never wrap, so every
operand and intermediate product is checked against the 256-bit unsigned
range the venues settle in, and leaving it raises ArithmeticOverflow.
"""

from app.flash_liquidator.exceptions import ArithmeticOverflow, InsufficientLiquidity, InvalidAmount

UINT256_MAX = int(2**256 - 1)

FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000
BASIS_POINTS = 10_000


def _checked(value: int) -> int:
    if value > UINT256_MAX:
        raise ArithmeticOverflow(f"Value {value} exceeds uint256")
    return value


def _check_inputs(amount: int, reserve_in: int, reserve_out: int) -> None:
    for value in (amount, reserve_in, reserve_out):
        if value < 0:
            raise InvalidAmount(f"Negative amount {value}")
        _checked(value)
    if amount == 0:
        raise InvalidAmount("Traded amount must be greater than zero")
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity("Pool reserves are empty")


def amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """
    Output of selling ``amount_in`` into a pool with a 0.3% fee, rounded down.

    Raises:
        InvalidAmount: amount_in is zero.
        InsufficientLiquidity: either reserve is zero.
        ArithmeticOverflow: an intermediate leaves the uint256 range.
    """
    _check_inputs(amount_in, reserve_in, reserve_out)
    amount_in_with_fee = _checked(amount_in * FEE_NUMERATOR)
    numerator = _checked(amount_in_with_fee * reserve_out)
    denominator = _checked(_checked(reserve_in * FEE_DENOMINATOR) + amount_in_with_fee)
    return numerator // denominator


def amount_in(amount_out: int, reserve_in: int, reserve_out: int) -> int:
    """
    Input required to buy ``amount_out`` from a pool with a 0.3% fee.

    The result is rounded up by one unit so the pool always accepts the trade.

    Raises:
        InvalidAmount: amount_out is zero.
        InsufficientLiquidity: either reserve is zero, or amount_out >= reserve_out.
        ArithmeticOverflow: an intermediate leaves the uint256 range.
    """
    _check_inputs(amount_out, reserve_in, reserve_out)
    if amount_out >= reserve_out:
        raise InsufficientLiquidity(f"Requested {amount_out} but pool holds {reserve_out}")
    numerator = _checked(_checked(reserve_in * amount_out) * FEE_DENOMINATOR)
    denominator = _checked((reserve_out - amount_out) * FEE_NUMERATOR)
    return _checked(numerator // denominator + 1)


def apply_buffer(amount: int, buffer_bp: int) -> int:
    """Add a proportional safety buffer, in basis points, rounded down."""
    return _checked(amount + _checked(amount * buffer_bp) // BASIS_POINTS)


def min_output(amount: int, slippage_bp: int) -> int:
    """Minimum acceptable output for ``amount`` with the given slippage tolerance."""
    return _checked(amount * (BASIS_POINTS - slippage_bp)) // BASIS_POINTS


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with overflow detection on the product."""
    if denominator == 0:
        raise InvalidAmount("Division by zero")
    return _checked(a * b) // denominator
