"""
Custom exceptions for the flash liquidator.

Every error raised while planning or executing a liquidation is fail-fast:
the execution unit is atomic, so there is no partial success to recover.
"""


class LiquidationBotError(Exception):
    """Base exception for all flash liquidator errors."""


class ConfigError(LiquidationBotError):
    """Raised for configuration-related errors."""


class LiquidationError(LiquidationBotError):
    """Raised for errors during liquidation planning or execution."""


class InvalidAmount(LiquidationError):
    """Raised when a traded or repaid amount is zero or negative."""


class InsufficientLiquidity(LiquidationError):
    """Raised when a venue cannot fill the requested amount."""


class SlippageExceeded(LiquidationError):
    """Raised when a conversion returns less than the minimum acceptable output."""


class PositionHealthy(LiquidationError):
    """Raised when the target position is not eligible for liquidation."""


class ReserveInactive(LiquidationError):
    """Raised when a reserve involved in the route is not active on the ledger."""


class UnprofitableRoute(LiquidationError):
    """Raised when the route cannot repay the flash-funded capital with a surplus."""


class UnauthorizedCallback(LiquidationError):
    """Raised when the continuation is invoked by anyone but the expected pool."""


class TransferFailure(LiquidationError):
    """Raised when a balance transfer or loan settlement cannot complete."""


class ArithmeticOverflow(LiquidationError):
    """Raised when fixed-point arithmetic leaves the 256-bit unsigned range."""
