"""
Gate deciding whether a position may be liquidated and how much of it.
"""

from .config_loader import StrategyConfig
from .exceptions import PositionHealthy, ReserveInactive
from .logging_config import setup_logger
from .models import Eligibility, Position, RiskParameters
from .trade_math import BASIS_POINTS, mul_div
from .venues.base_venue import Venues

logger = setup_logger()


class EligibilityGate:
    """
    Applies the health-factor rule and the close-factor policy.

    ``borrow_decimals`` is the decimals of the flash-funded asset, which is the
    unit the repayable amount is expressed in.
    """

    def __init__(self, strategy: StrategyConfig, borrow_decimals: int):
        self.strategy = strategy
        self.borrow_decimals = borrow_decimals

    def is_liquidatable(self, position: Position) -> bool:
        return position.health_factor < self.strategy.health_factor_one

    def max_repayable(self, position: Position, oracle_price: int) -> int:
        """
        Largest repayment the close factor allows, in borrow-asset base units.

        Raises:
            PositionHealthy: the position's health factor is at or above one.
        """
        if not self.is_liquidatable(position):
            raise PositionHealthy(
                f"Position {position.user} has health factor {position.health_factor}, not below "
                f"{self.strategy.health_factor_one}"
            )
        return mul_div(
            position.debt_value * 10**self.borrow_decimals,
            self.strategy.close_factor_bp,
            oracle_price * BASIS_POINTS,
        )

    @staticmethod
    def check_reserves(debt_params: RiskParameters, collateral_params: RiskParameters) -> None:
        """Frozen reserves can still be liquidated; inactive ones cannot."""
        if not debt_params.active:
            raise ReserveInactive("Debt reserve is not active")
        if not collateral_params.active:
            raise ReserveInactive("Collateral reserve is not active")

    @classmethod
    def for_venues(cls, venues: Venues, strategy: StrategyConfig) -> "EligibilityGate":
        return cls(strategy, venues.registry.get_config(strategy.borrow_asset).decimals)

    def evaluate(self, venues: Venues, user: str = None) -> Eligibility:
        """
        Read the user's position and bound the repayment for it.

        Raises:
            PositionHealthy: the position cannot be liquidated.
            ReserveInactive: the debt or collateral reserve is inactive.
        """
        user = user or self.strategy.target_user
        position = venues.ledger.get_account_data(user)
        logger.info(
            "EligibilityGate: %s collateral=%s debt=%s health factor=%s",
            user, position.collateral_value, position.debt_value, position.health_factor,
        )
        price = venues.oracle.get_price(self.strategy.borrow_asset)
        max_repayable = self.max_repayable(position, price)
        self.check_reserves(
            venues.registry.get_config(self.strategy.debt_asset),
            venues.registry.get_config(self.strategy.collateral_asset),
        )
        logger.info("EligibilityGate: %s is liquidatable, max repayable %s", user, max_repayable)
        return Eligibility(position=position, max_repayable=max_repayable)
