"""
Bounded search for the repayment size that maximizes simulated profit.
"""

from .logging_config import setup_logger
from .models import OptimizationState, SimulationResult
from .simulator import ProfitSimulator

logger = setup_logger()

DEFAULT_ITERATIONS = 20


class Optimizer:
    """
    Fixed-budget interval narrowing over ``[0, max_repayable]``.

    Each iteration evaluates the midpoint: a new best profit moves the lower
    bound up to it, anything else moves the upper bound down. This finds the
    optimum only when profit is unimodal in the repayment size; stableswap
    curvature and the seizure clamp can break that, so the result is the best
    size seen, not a proven maximum.
    """

    def __init__(self, simulator: ProfitSimulator, iterations: int = DEFAULT_ITERATIONS):
        self.simulator = simulator
        self.iterations = iterations
        self.best_result: SimulationResult = None

    def _evaluate(self, state: OptimizationState, amount: int) -> SimulationResult:
        state.evaluations += 1
        result = self.simulator.simulate(amount)
        if result.profit > state.best_profit:
            state.best_amount = amount
            state.best_profit = result.profit
            self.best_result = result
        return result

    def search(self, max_repayable: int) -> OptimizationState:
        """
        Search ``[0, max_repayable]`` for the most profitable repayment size.

        The narrowing starts with no best; the upper endpoint is only compared
        once the iterations are spent, so it never steers the bounds.

        Returns:
            The final search state; ``best_amount == 0`` means no profitable size was found.
        """
        state = OptimizationState(low=0, high=max_repayable)
        self.best_result = None
        if max_repayable <= 0:
            logger.info("Optimizer: empty search domain")
            return state

        for iteration in range(self.iterations):
            if state.high - state.low <= 1:
                break
            mid = (state.low + state.high) // 2
            previous_best = state.best_profit
            result = self._evaluate(state, mid)
            if result.profit > previous_best:
                state.low = mid
            else:
                state.high = mid
            logger.debug(
                "Optimizer: iteration %s mid=%s profit=%s bounds=[%s, %s]",
                iteration, mid, result.profit, state.low, state.high,
            )

        self._evaluate(state, max_repayable)

        logger.info(
            "Optimizer: best amount %s with profit %s after %s evaluations",
            state.best_amount, state.best_profit, state.evaluations,
        )
        return state
