"""
Data classes for structured values in the flash liquidator.

All monetary fields are non-negative integers in each asset's base units.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple


@dataclass(frozen=True)
class Position:
    """Snapshot of a borrower's account state on the lending ledger."""

    user: str
    collateral_value: int
    debt_value: int
    borrow_headroom: int
    liquidation_threshold: int
    ltv: int
    health_factor: int


@dataclass(frozen=True)
class PoolSnapshot:
    """Reserves of a two-asset constant-product pool at one point in time."""

    address: str
    token0: str
    token1: str
    reserve0: int
    reserve1: int
    timestamp: int = 0

    def reserves_for(self, token_in: str) -> Tuple[int, int]:
        """Return (reserve_in, reserve_out) for a trade selling ``token_in``."""
        if token_in == self.token0:
            return self.reserve0, self.reserve1
        if token_in == self.token1:
            return self.reserve1, self.reserve0
        raise ValueError(f"Token {token_in} is not traded by pool {self.address}")

    def after_swap(self, token_in: str, amount_in: int, amount_out: int) -> "PoolSnapshot":
        """Return the snapshot that results from selling ``amount_in`` of ``token_in``."""
        if token_in == self.token0:
            return replace(self, reserve0=self.reserve0 + amount_in, reserve1=self.reserve1 - amount_out)
        return replace(self, reserve0=self.reserve0 - amount_out, reserve1=self.reserve1 + amount_in)


@dataclass(frozen=True)
class RiskParameters:
    """Per-asset parameters from the protocol's risk registry."""

    decimals: int
    ltv: int
    liquidation_threshold: int
    liquidation_bonus: int
    collateral_enabled: bool = True
    borrow_enabled: bool = True
    active: bool = True
    frozen: bool = False


@dataclass(frozen=True)
class RouteStep:
    """One conversion in the liquidation route."""

    asset_in: str
    asset_out: str
    venue: str


@dataclass(frozen=True)
class Route:
    """The fixed repay -> seize -> convert-back chain."""

    steps: Tuple[RouteStep, ...]

    def describe(self) -> str:
        return " -> ".join(f"{step.asset_in}>{step.asset_out}@{step.venue}" for step in self.steps)


@dataclass(frozen=True)
class MarketSnapshot:
    """Read-only view of every venue input the profit simulation depends on."""

    primary_pool: PoolSnapshot
    secondary_pool: PoolSnapshot
    debt_price: int
    collateral_price: int
    debt_decimals: int
    collateral_decimals: int
    liquidation_bonus: int
    seizable_collateral: int
    quote_debt_asset: Callable[[int], int]


@dataclass
class SimulationResult:
    """Every intermediate amount of one simulated route."""

    amount: int
    profit: int = 0
    debt_repaid: int = 0
    collateral_seized: int = 0
    repayment_obligation: int = 0
    collateral_needed: int = 0
    reason: Optional[str] = None

    @property
    def profitable(self) -> bool:
        return self.profit > 0


@dataclass
class OptimizationState:
    """Transient bounds and best result of one search."""

    low: int
    high: int
    best_amount: int = 0
    best_profit: int = 0
    evaluations: int = 0


@dataclass(frozen=True)
class Eligibility:
    """Result of gating a position for liquidation."""

    position: Position
    max_repayable: int


class ExecutionState(Enum):
    """States of one atomic liquidation."""

    IDLE = "idle"
    CAPITAL_REQUESTED = "capital_requested"
    CONVERTING_TO_DEBT_ASSET = "converting_to_debt_asset"
    LIQUIDATING = "liquidating"
    CONVERTING_COLLATERAL_BACK = "converting_collateral_back"
    REPAYING = "repaying"
    SETTLED = "settled"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in (ExecutionState.SETTLED, ExecutionState.ABORTED)


@dataclass
class ExecutionContext:
    """Per-operation record, alive only for one atomic execution."""

    borrowed_amount: int = 0
    repayment_obligation: int = 0
    debt_repaid: int = 0
    collateral_seized: int = 0
    collateral_sold_for_repayment: int = 0
    repay_asset_received: int = 0
    surplus_collateral: int = 0
    debt_asset_retained: int = 0
    surplus: int = 0
    forwarded: int = 0
    pending_token: Optional[bytes] = None
    transitions: List[ExecutionState] = field(default_factory=list)


@dataclass(frozen=True)
class LiquidationPlan:
    """The optimizer's decision for one position."""

    user: str
    max_repayable: int
    amount: int
    expected_profit: int
    simulation: Optional[SimulationResult] = None

    def to_dict(self) -> dict:
        return {
            "user": self.user,
            "max_repayable": str(self.max_repayable),
            "amount": str(self.amount),
            "expected_profit": str(self.expected_profit),
            "reason": self.simulation.reason if self.simulation else None,
        }
