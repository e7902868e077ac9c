"""
Interfaces of the external collaborators the liquidator consumes.

Readers are enough to plan a liquidation; the executable extensions are what
the orchestrator needs to carry one out in a non-transactional environment.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Tuple

from app.flash_liquidator.models import PoolSnapshot, Position, RiskParameters


class LedgerReader(ABC):
    """Read side of the lending ledger."""

    @abstractmethod
    def get_account_data(self, user: str) -> Position:
        """Return the user's collateral, debt, headroom, threshold, ltv and health factor."""

    @abstractmethod
    def get_collateral_balance(self, user: str, asset: str) -> int:
        """Return how much of ``asset`` the user has deposited as collateral."""


class PoolReader(ABC):
    """Read side of a constant-product pool."""

    address: str = ""
    token0: str = ""
    token1: str = ""

    @abstractmethod
    def get_reserves(self) -> Tuple[int, int, int]:
        """Return (reserve0, reserve1, last_update_time)."""

    def snapshot(self) -> PoolSnapshot:
        reserve0, reserve1, timestamp = self.get_reserves()
        return PoolSnapshot(
            address=self.address,
            token0=self.token0,
            token1=self.token1,
            reserve0=reserve0,
            reserve1=reserve1,
            timestamp=timestamp,
        )


class StableswapQuoter(ABC):
    """Read side of a stableswap pool."""

    address: str = ""

    @abstractmethod
    def quote(self, idx_in: int, idx_out: int, amount_in: int) -> int:
        """Return the output of exchanging ``amount_in`` of coin ``idx_in`` for coin ``idx_out``."""


class PriceOracle(ABC):
    @abstractmethod
    def get_price(self, asset: str) -> int:
        """Price of one whole unit of ``asset`` in the common valuation unit."""


class RiskRegistry(ABC):
    @abstractmethod
    def get_config(self, asset: str) -> RiskParameters:
        """Return the risk parameters of ``asset``."""


class ExecutableLedger(LedgerReader):
    address: str = ""

    @abstractmethod
    def liquidate(
        self,
        caller: str,
        collateral_asset: str,
        debt_asset: str,
        user: str,
        debt_to_cover: int,
        receive_a_token: bool,
    ) -> Tuple[int, int]:
        """Repay ``debt_to_cover`` of the user's debt and seize collateral; return (debt repaid, seized)."""


class FlashBorrower(ABC):
    """Anything a pool may hand control to in the middle of a swap."""

    @abstractmethod
    def on_capital_received(self, caller: str, amount0: int, amount1: int, data: bytes) -> None:
        """Continuation invoked by the pool before it settles balances."""


class ExecutablePool(PoolReader):
    @abstractmethod
    def swap(self, amount0_out: int, amount1_out: int, recipient: FlashBorrower, data: bytes = b"") -> None:
        """Send the requested outputs, call the recipient back when ``data`` is set, then settle."""


class ExecutableStableswap(StableswapQuoter):
    @abstractmethod
    def exchange(self, caller: str, idx_in: int, idx_out: int, amount_in: int, min_amount_out: int) -> int:
        """Exchange coins, failing with SlippageExceeded below ``min_amount_out``."""


class WrappedNative(ABC):
    token: str = ""

    @abstractmethod
    def withdraw(self, caller: str, amount: int) -> None:
        """Burn ``amount`` of the wrapped token held by ``caller`` and credit native balance."""


class ExecutionEnvironment(ABC):
    """Token balances plus the all-or-nothing execution unit."""

    @abstractmethod
    def balance_of(self, token: str, holder: str) -> int:
        """Token balance of ``holder``."""

    @abstractmethod
    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        """Move ``amount`` of ``token``; raise TransferFailure when the sender cannot cover it."""

    @abstractmethod
    def native_balance(self, holder: str) -> int:
        """Native settlement balance of ``holder``."""

    @abstractmethod
    def send_native(self, sender: str, recipient: str, amount: int) -> None:
        """Move native settlement balance."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Context manager under which either every effect persists or none does."""


@dataclass(frozen=True)
class Venues:
    """The read-side collaborators a plan is computed from."""

    ledger: LedgerReader
    primary_pool: PoolReader
    secondary_pool: PoolReader
    stableswap: StableswapQuoter
    oracle: PriceOracle
    registry: RiskRegistry


@dataclass(frozen=True)
class ExecutableVenues(Venues):
    """Collaborators able to execute the route, plus the wrapped native token."""

    ledger: ExecutableLedger
    primary_pool: ExecutablePool
    secondary_pool: ExecutablePool
    stableswap: ExecutableStableswap
    oracle: PriceOracle
    registry: RiskRegistry
    wrapped_native: WrappedNative
