"""
State machine executing one flash-funded liquidation as an atomic unit.
"""

import secrets

from .config_loader import StrategyConfig
from .exceptions import LiquidationError, TransferFailure, UnauthorizedCallback, UnprofitableRoute
from .logging_config import setup_logger
from .models import ExecutionContext, ExecutionState
from .stableswap import StableswapAdapter
from .trade_math import amount_in, amount_out, apply_buffer
from .venues.base_venue import ExecutableVenues, ExecutionEnvironment, FlashBorrower

logger = setup_logger()


class ExecutionOrchestrator(FlashBorrower):
    """
    Sequences borrow -> convert -> liquidate -> convert back -> repay -> settle.

    Requesting capital hands control to the primary pool, which resumes the
    operation through ``on_capital_received`` before it settles. The whole
    sequence runs inside the environment's atomic unit, so any failing guard
    leaves no effect behind. Every guard is re-derived from live venue state;
    planning-time estimates are never trusted here.

    An orchestrator runs a single operation and owns its ExecutionContext.
    """

    def __init__(
        self,
        environment: ExecutionEnvironment,
        venues: ExecutableVenues,
        strategy: StrategyConfig,
        user: str = None,
    ):
        self.environment = environment
        self.venues = venues
        self.strategy = strategy
        self.user = user or strategy.target_user
        self.address = strategy.liquidator
        self.state = ExecutionState.IDLE
        self.context = ExecutionContext()
        self.stableswap = StableswapAdapter(venues.stableswap, strategy.stableswap_coins, strategy.slippage_bp)

    def _transition(self, new_state: ExecutionState) -> None:
        logger.info("Orchestrator: %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.context.transitions.append(new_state)

    def _expect(self, expected: ExecutionState) -> None:
        if self.state is not expected:
            raise LiquidationError(f"Orchestrator is {self.state.value}, expected {expected.value}")

    def execute(self, amount: int) -> ExecutionContext:
        """
        Run the full operation for ``amount`` of borrow asset.

        Returns:
            The settled execution context.

        Raises:
            LiquidationError: any guard failure; the operation is aborted and rolled back.
        """
        self._expect(ExecutionState.IDLE)
        try:
            with self.environment.atomic():
                self.request_capital(amount)
                self.finalize()
        except Exception as ex:
            self._transition(ExecutionState.ABORTED)
            logger.error("Orchestrator: liquidation of %s aborted: %s", self.user, ex, exc_info=True)
            raise
        return self.context

    def request_capital(self, amount: int) -> None:
        """Borrow ``amount`` of the borrow asset from the primary pool."""
        self._expect(ExecutionState.IDLE)
        self._transition(ExecutionState.CAPITAL_REQUESTED)

        pool = self.venues.primary_pool
        token = secrets.token_bytes(16)
        self.context.pending_token = token
        if pool.token0 == self.strategy.borrow_asset:
            amount0_out, amount1_out = amount, 0
        else:
            amount0_out, amount1_out = 0, amount

        logger.info("Orchestrator: requesting %s of %s from %s", amount, self.strategy.borrow_asset, pool.address)
        pool.swap(amount0_out, amount1_out, self, token)
        self.context.pending_token = None

        if self.state is not ExecutionState.REPAYING:
            raise TransferFailure(f"Pool {pool.address} settled without resuming the operation")

    def on_capital_received(self, caller: str, amount0: int, amount1: int, data: bytes) -> None:
        """
        Continuation run by the primary pool while the flash loan is outstanding.

        Raises:
            UnauthorizedCallback: the caller is not the primary pool or no matching request is pending.
            SlippageExceeded: the stableswap conversion pays less than 99% of its quote.
            UnprofitableRoute: the collateral needed for repayment is not below the collateral seized.
        """
        pool = self.venues.primary_pool
        if caller != self.strategy.primary_pool or caller != pool.address:
            raise UnauthorizedCallback(f"Continuation invoked by {caller}, expected {self.strategy.primary_pool}")
        if (
            self.state is not ExecutionState.CAPITAL_REQUESTED
            or self.context.pending_token is None
            or data != self.context.pending_token
        ):
            raise UnauthorizedCallback(f"No pending capital request matches continuation from {caller}")

        ctx = self.context
        strategy = self.strategy
        ctx.borrowed_amount = amount0 if pool.token0 == strategy.borrow_asset else amount1

        reserve_in, reserve_out = pool.snapshot().reserves_for(strategy.repay_asset)
        ctx.repayment_obligation = amount_in(ctx.borrowed_amount, reserve_in, reserve_out)

        self._transition(ExecutionState.CONVERTING_TO_DEBT_ASSET)
        idx_in, idx_out = self.stableswap.indices(strategy.borrow_asset, strategy.debt_asset)
        debt_amount = self.stableswap.convert(self.address, idx_in, idx_out, ctx.borrowed_amount)

        self._transition(ExecutionState.LIQUIDATING)
        collateral_before = self.environment.balance_of(strategy.collateral_asset, self.address)
        ctx.debt_repaid, _ = self.venues.ledger.liquidate(
            self.address, strategy.collateral_asset, strategy.debt_asset, self.user, debt_amount,
            receive_a_token=False,
        )
        ctx.collateral_seized = self.environment.balance_of(strategy.collateral_asset, self.address) - collateral_before
        ctx.debt_asset_retained = self.environment.balance_of(strategy.debt_asset, self.address)
        if ctx.debt_asset_retained:
            logger.warning(
                "Orchestrator: ledger covered %s of %s debt asset, %s stays with the liquidator",
                ctx.debt_repaid, debt_amount, ctx.debt_asset_retained,
            )

        self._transition(ExecutionState.CONVERTING_COLLATERAL_BACK)
        reserve_in, reserve_out = self.venues.secondary_pool.snapshot().reserves_for(strategy.collateral_asset)
        needed = apply_buffer(
            amount_in(ctx.repayment_obligation, reserve_in, reserve_out), strategy.execution_buffer_bp
        )
        if needed >= ctx.collateral_seized:
            raise UnprofitableRoute(
                f"Repayment needs {needed} collateral but only {ctx.collateral_seized} was seized"
            )
        ctx.collateral_sold_for_repayment = needed
        ctx.repay_asset_received = self._sell_collateral(needed)

        self._transition(ExecutionState.REPAYING)
        self.environment.transfer(strategy.repay_asset, self.address, pool.address, ctx.repayment_obligation)

        ctx.surplus_collateral = ctx.collateral_seized - needed
        if ctx.surplus_collateral > 0:
            self._sell_collateral(ctx.surplus_collateral)
        ctx.surplus = self.environment.balance_of(strategy.repay_asset, self.address)
        logger.info(
            "Orchestrator: borrowed=%s obligation=%s seized=%s sold=%s surplus=%s",
            ctx.borrowed_amount, ctx.repayment_obligation, ctx.collateral_seized, needed, ctx.surplus,
        )

    def _sell_collateral(self, amount: int) -> int:
        pool = self.venues.secondary_pool
        collateral = self.strategy.collateral_asset
        reserve_in, reserve_out = pool.snapshot().reserves_for(collateral)
        bought = amount_out(amount, reserve_in, reserve_out)
        self.environment.transfer(collateral, self.address, pool.address, amount)
        if pool.token0 == collateral:
            pool.swap(0, bought, self.address)
        else:
            pool.swap(bought, 0, self.address)
        return bought

    def finalize(self) -> None:
        """
        Unwrap the retained repay asset and forward it to the operator.

        A zero balance forwards nothing.

        Raises:
            UnprofitableRoute: the surplus is below the configured minimum.
        """
        self._expect(ExecutionState.REPAYING)
        strategy = self.strategy
        balance = self.environment.balance_of(strategy.repay_asset, self.address)
        if balance < strategy.min_surplus:
            raise UnprofitableRoute(f"Surplus {balance} is below the minimum {strategy.min_surplus}")

        if balance > 0:
            self.venues.wrapped_native.withdraw(self.address, balance)
            self.environment.send_native(self.address, strategy.operator, balance)
            logger.info("Orchestrator: forwarded %s to operator %s", balance, strategy.operator)
        else:
            logger.info("Orchestrator: no surplus to forward")
        self.context.forwarded = balance
        self._transition(ExecutionState.SETTLED)
