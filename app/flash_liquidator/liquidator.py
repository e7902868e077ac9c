"""
Operator entry point: gate, optimize, then execute one liquidation.
"""

from .config_loader import StrategyConfig
from .eligibility import EligibilityGate
from .exceptions import UnprofitableRoute
from .logging_config import setup_logger
from .models import ExecutionContext, LiquidationPlan
from .optimizer import Optimizer
from .orchestrator import ExecutionOrchestrator
from .simulator import ProfitSimulator
from .venues.base_venue import ExecutableVenues, ExecutionEnvironment, Venues

logger = setup_logger()


def plan_liquidation(venues: Venues, strategy: StrategyConfig, user: str = None) -> LiquidationPlan:
    """
    Gate the position and search for the most profitable repayment size.

    Raises:
        PositionHealthy: the position cannot be liquidated.
    """
    user = user or strategy.target_user
    gate = EligibilityGate.for_venues(venues, strategy)
    eligibility = gate.evaluate(venues, user)

    simulator = ProfitSimulator(venues, strategy)
    optimizer = Optimizer(simulator, strategy.search_iterations)
    search = optimizer.search(eligibility.max_repayable)

    plan = LiquidationPlan(
        user=user,
        max_repayable=eligibility.max_repayable,
        amount=search.best_amount,
        expected_profit=search.best_profit,
        simulation=optimizer.best_result,
    )
    logger.info(
        "Operator: plan for %s amount=%s expected profit=%s (max %s, route %s)",
        user, plan.amount, plan.expected_profit, plan.max_repayable, strategy.route().describe(),
    )
    return plan


class FlashLiquidator:
    """
    Runs EligibilityGate, Optimizer and ExecutionOrchestrator in order.

    Failures propagate unchanged: no retries and no resizing, since the
    venues may have moved since the failing read.
    """

    def __init__(self, environment: ExecutionEnvironment, venues: ExecutableVenues, strategy: StrategyConfig):
        self.environment = environment
        self.venues = venues
        self.strategy = strategy

    def plan(self, user: str = None) -> LiquidationPlan:
        return plan_liquidation(self.venues, self.strategy, user)

    def operate(self, user: str = None) -> ExecutionContext:
        """
        Liquidate the target position at the most profitable size found.

        Returns:
            The settled execution context.

        Raises:
            UnprofitableRoute: no profitable size exists, or execution found none.
            LiquidationError: any other guard failure during execution.
        """
        plan = self.plan(user)
        if plan.amount == 0:
            raise UnprofitableRoute(f"No profitable repayment size for {plan.user} up to {plan.max_repayable}")

        orchestrator = ExecutionOrchestrator(self.environment, self.venues, self.strategy, plan.user)
        context = orchestrator.execute(plan.amount)
        logger.info(
            "Operator: settled %s, forwarded %s (expected %s)", plan.user, context.forwarded, plan.expected_profit
        )
        return context
