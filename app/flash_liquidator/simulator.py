"""
Profit simulation of the full liquidation route for one repayment size.
"""

from functools import partial

from .config_loader import StrategyConfig
from .exceptions import InsufficientLiquidity
from .logging_config import setup_logger
from .models import MarketSnapshot, SimulationResult
from .stableswap import StableswapAdapter
from .trade_math import BASIS_POINTS, amount_in, amount_out, apply_buffer, mul_div
from .venues.base_venue import Venues

logger = setup_logger()


def seized_collateral(debt_repaid: int, snapshot: MarketSnapshot) -> int:
    """
    Collateral the ledger awards for repaying ``debt_repaid``, bonus included.

    Clamped to what the position actually holds.
    """
    seized = mul_div(
        debt_repaid * snapshot.debt_price,
        10**snapshot.collateral_decimals * snapshot.liquidation_bonus,
        snapshot.collateral_price * 10**snapshot.debt_decimals * BASIS_POINTS,
    )
    return min(seized, snapshot.seizable_collateral)


class ProfitSimulator:
    """
    Deterministic estimate of the surplus a liquidation of size ``amount`` leaves.

    Profit is denominated in the repay asset. Estimates are advisory: the
    orchestrator re-derives every guard at execution time.
    """

    def __init__(self, venues: Venues, strategy: StrategyConfig):
        self.venues = venues
        self.strategy = strategy
        self.stableswap = StableswapAdapter(venues.stableswap, strategy.stableswap_coins, strategy.slippage_bp)

    def capture(self, user: str = None) -> MarketSnapshot:
        """Read a fresh snapshot of every venue input."""
        user = user or self.strategy.target_user
        debt_params = self.venues.registry.get_config(self.strategy.debt_asset)
        collateral_params = self.venues.registry.get_config(self.strategy.collateral_asset)
        idx_in, idx_out = self.stableswap.indices(self.strategy.borrow_asset, self.strategy.debt_asset)

        return MarketSnapshot(
            primary_pool=self.venues.primary_pool.snapshot(),
            secondary_pool=self.venues.secondary_pool.snapshot(),
            debt_price=self.venues.oracle.get_price(self.strategy.debt_asset),
            collateral_price=self.venues.oracle.get_price(self.strategy.collateral_asset),
            debt_decimals=debt_params.decimals,
            collateral_decimals=collateral_params.decimals,
            liquidation_bonus=collateral_params.liquidation_bonus,
            seizable_collateral=self.venues.ledger.get_collateral_balance(user, self.strategy.collateral_asset),
            quote_debt_asset=partial(self.stableswap.quote_out, idx_in, idx_out),
        )

    def simulate(self, amount: int, user: str = None) -> SimulationResult:
        return self.simulate_with(amount, self.capture(user))

    def simulate_with(self, amount: int, snapshot: MarketSnapshot) -> SimulationResult:
        """
        Simulate the route for ``amount`` of borrow asset against ``snapshot``.

        Returns a result whose profit is zero whenever the collateral needed to
        repay the flash loan is not strictly less than the collateral seized.
        """
        result = SimulationResult(amount=amount)
        if amount == 0:
            result.reason = "zero_amount"
            return result

        strategy = self.strategy
        try:
            result.debt_repaid = snapshot.quote_debt_asset(amount)
            result.collateral_seized = seized_collateral(result.debt_repaid, snapshot)

            reserve_in, reserve_out = snapshot.primary_pool.reserves_for(strategy.repay_asset)
            obligation = amount_in(amount, reserve_in, reserve_out)
            result.repayment_obligation = apply_buffer(obligation, strategy.simulation_buffer_bp)

            reserve_in, reserve_out = snapshot.secondary_pool.reserves_for(strategy.collateral_asset)
            needed = amount_in(result.repayment_obligation, reserve_in, reserve_out)
            result.collateral_needed = apply_buffer(needed, strategy.simulation_buffer_bp)
        except InsufficientLiquidity as ex:
            logger.debug("Simulator: amount %s cannot be filled: %s", amount, ex)
            result.reason = "insufficient_liquidity"
            return result

        if result.collateral_needed >= result.collateral_seized:
            result.reason = "collateral_shortfall"
            return result

        # The repayment leg has already moved the secondary pool when the surplus is sold
        bought = amount_out(result.collateral_needed, reserve_in, reserve_out)
        after = snapshot.secondary_pool.after_swap(strategy.collateral_asset, result.collateral_needed, bought)
        reserve_in, reserve_out = after.reserves_for(strategy.collateral_asset)
        result.profit = amount_out(result.collateral_seized - result.collateral_needed, reserve_in, reserve_out)

        logger.debug(
            "Simulator: amount=%s debt=%s seized=%s obligation=%s needed=%s profit=%s",
            amount, result.debt_repaid, result.collateral_seized,
            result.repayment_obligation, result.collateral_needed, result.profit,
        )
        return result
