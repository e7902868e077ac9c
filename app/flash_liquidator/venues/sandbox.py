"""
In-memory execution environment and venues.

Nothing here is transactional by nature, so Sandbox.atomic() snapshots the
whole state and restores it when the unit fails. Every venue keeps its
mutable data in the shared SandboxState so a single restore covers balances,
pool reserves and ledger positions alike.
"""

import copy
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from app.flash_liquidator.exceptions import (
    InsufficientLiquidity,
    InvalidAmount,
    PositionHealthy,
    ReserveInactive,
    SlippageExceeded,
    TransferFailure,
)
from app.flash_liquidator.logging_config import setup_logger
from app.flash_liquidator.models import Position, RiskParameters
from app.flash_liquidator.trade_math import BASIS_POINTS, UINT256_MAX
from app.flash_liquidator.venues.base_venue import (
    ExecutableLedger,
    ExecutablePool,
    ExecutableStableswap,
    ExecutionEnvironment,
    FlashBorrower,
    PriceOracle,
    RiskRegistry,
    WrappedNative,
)

logger = setup_logger()


@dataclass
class SandboxState:
    balances: Dict[Tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    native: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    reserves: Dict[str, List[int]] = field(default_factory=dict)
    collateral: Dict[Tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    debt: Dict[Tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    clock: int = 0


class Sandbox(ExecutionEnvironment):
    """Token and native balances with snapshot/restore atomicity."""

    def __init__(self) -> None:
        self.state = SandboxState()
        self.rollbacks = 0

    def balance_of(self, token: str, holder: str) -> int:
        return self.state.balances[(token, holder)]

    def mint(self, token: str, holder: str, amount: int) -> None:
        self.state.balances[(token, holder)] += amount

    def burn(self, token: str, holder: str, amount: int) -> None:
        if self.state.balances[(token, holder)] < amount:
            raise TransferFailure(f"{holder} holds less than {amount} of {token}")
        self.state.balances[(token, holder)] -= amount

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"Negative transfer of {amount}")
        if self.state.balances[(token, sender)] < amount:
            raise TransferFailure(
                f"{sender} cannot transfer {amount} of {token}, balance {self.state.balances[(token, sender)]}"
            )
        self.state.balances[(token, sender)] -= amount
        self.state.balances[(token, recipient)] += amount

    def native_balance(self, holder: str) -> int:
        return self.state.native[holder]

    def credit_native(self, holder: str, amount: int) -> None:
        self.state.native[holder] += amount

    def send_native(self, sender: str, recipient: str, amount: int) -> None:
        if self.state.native[sender] < amount:
            raise TransferFailure(f"{sender} cannot send {amount} native, balance {self.state.native[sender]}")
        self.state.native[sender] -= amount
        self.state.native[recipient] += amount

    def tick(self) -> int:
        self.state.clock += 1
        return self.state.clock

    @contextmanager
    def atomic(self) -> Iterator["Sandbox"]:
        saved = copy.deepcopy(self.state)
        try:
            yield self
        except Exception as ex:
            self.state = saved
            self.rollbacks += 1
            logger.warning("Sandbox: rolled back atomic unit after %s: %s", type(ex).__name__, ex)
            raise


class SandboxPool(ExecutablePool):
    """Constant-product pool with optimistic transfers and a fee-adjusted invariant check."""

    def __init__(self, sandbox: Sandbox, address: str, token0: str, token1: str, reserve0: int, reserve1: int):
        self.sandbox = sandbox
        self.address = address
        self.token0 = token0
        self.token1 = token1
        sandbox.mint(token0, address, reserve0)
        sandbox.mint(token1, address, reserve1)
        self._sync(reserve0, reserve1)

    def _sync(self, balance0: int, balance1: int) -> None:
        if balance0 > UINT256_MAX or balance1 > UINT256_MAX:
            raise InsufficientLiquidity("Pool balance overflow")
        self.sandbox.state.reserves[self.address] = [balance0, balance1, self.sandbox.tick()]

    def get_reserves(self) -> Tuple[int, int, int]:
        reserve0, reserve1, timestamp = self.sandbox.state.reserves[self.address]
        return reserve0, reserve1, timestamp

    def swap(
        self, amount0_out: int, amount1_out: int, recipient: Union[str, FlashBorrower], data: bytes = b""
    ) -> None:
        if amount0_out == 0 and amount1_out == 0:
            raise InvalidAmount("Swap requests no output")
        reserve0, reserve1, _ = self.get_reserves()
        if amount0_out >= reserve0 or amount1_out >= reserve1:
            raise InsufficientLiquidity(f"Pool {self.address} cannot pay {amount0_out}/{amount1_out}")

        to = recipient if isinstance(recipient, str) else recipient.address
        if amount0_out:
            self.sandbox.transfer(self.token0, self.address, to, amount0_out)
        if amount1_out:
            self.sandbox.transfer(self.token1, self.address, to, amount1_out)
        if data:
            if not isinstance(recipient, FlashBorrower):
                raise TransferFailure(f"Recipient {to} cannot receive a continuation")
            recipient.on_capital_received(self.address, amount0_out, amount1_out, data)

        balance0 = self.sandbox.balance_of(self.token0, self.address)
        balance1 = self.sandbox.balance_of(self.token1, self.address)
        amount0_in = max(balance0 - (reserve0 - amount0_out), 0)
        amount1_in = max(balance1 - (reserve1 - amount1_out), 0)
        if amount0_in == 0 and amount1_in == 0:
            raise TransferFailure(f"Pool {self.address} received no input")

        adjusted0 = balance0 * 1000 - amount0_in * 3
        adjusted1 = balance1 * 1000 - amount1_in * 3
        if adjusted0 * adjusted1 < reserve0 * reserve1 * 1000**2:
            raise TransferFailure(f"Pool {self.address} constant-product invariant violated")
        self._sync(balance0, balance1)


class SandboxStableswap(ExecutableStableswap):
    """
    Near-parity pool over indexed coins.

    Quotes normalize decimals and take a fixed fee unless a quote function is
    injected. ``execution_haircut_bp`` makes execution pay less than the quote,
    which is how state drift between quoting and executing shows up.
    """

    def __init__(
        self,
        sandbox: Sandbox,
        address: str,
        coins: Sequence[str],
        decimals: Sequence[int],
        liquidity: Sequence[int],
        fee_bp: int = 4,
        quote_fn: Optional[Callable[[int, int, int], int]] = None,
    ):
        self.sandbox = sandbox
        self.address = address
        self.coins = tuple(coins)
        self.decimals = tuple(decimals)
        self.fee_bp = fee_bp
        self.quote_fn = quote_fn
        self.execution_haircut_bp = 0
        for coin, amount in zip(self.coins, liquidity):
            sandbox.mint(coin, address, amount)

    def quote(self, idx_in: int, idx_out: int, amount_in: int) -> int:
        if self.quote_fn is not None:
            return self.quote_fn(idx_in, idx_out, amount_in)
        normalized = amount_in * 10 ** self.decimals[idx_out] // 10 ** self.decimals[idx_in]
        return normalized - normalized * self.fee_bp // BASIS_POINTS

    def exchange(self, caller: str, idx_in: int, idx_out: int, amount_in: int, min_amount_out: int) -> int:
        if amount_in == 0:
            raise InvalidAmount("Stableswap exchange of zero")
        received = self.quote(idx_in, idx_out, amount_in)
        received -= received * self.execution_haircut_bp // BASIS_POINTS
        if received < min_amount_out:
            raise SlippageExceeded(f"Exchange would return {received}, below minimum {min_amount_out}")
        if received >= self.sandbox.balance_of(self.coins[idx_out], self.address):
            raise InsufficientLiquidity(f"Stableswap {self.address} cannot pay {received}")
        self.sandbox.transfer(self.coins[idx_in], caller, self.address, amount_in)
        self.sandbox.transfer(self.coins[idx_out], self.address, caller, received)
        return received


class SandboxOracle(PriceOracle):
    def __init__(self, prices: Dict[str, int]):
        self.prices = dict(prices)

    def get_price(self, asset: str) -> int:
        return self.prices[asset]

    def set_price(self, asset: str, price: int) -> None:
        self.prices[asset] = price


class SandboxRiskRegistry(RiskRegistry):
    def __init__(self, params: Dict[str, RiskParameters]):
        self.params = dict(params)

    def get_config(self, asset: str) -> RiskParameters:
        return self.params[asset]


class SandboxLendingPool(ExecutableLedger):
    """
    Lending ledger with pooled-reserve liquidation semantics.

    Account values are in the oracle's valuation unit; the health factor is
    risk-adjusted collateral over debt scaled by ``health_factor_one``.
    """

    def __init__(
        self,
        sandbox: Sandbox,
        address: str,
        oracle: PriceOracle,
        registry: RiskRegistry,
        close_factor_bp: int = 5000,
        health_factor_one: int = 10**18,
    ):
        self.sandbox = sandbox
        self.address = address
        self.oracle = oracle
        self.registry = registry
        self.close_factor_bp = close_factor_bp
        self.health_factor_one = health_factor_one

    def open_position(self, user: str, collateral: Dict[str, int], debt: Dict[str, int]) -> None:
        """Record deposits held by the pool and debts owed by ``user``."""
        state = self.sandbox.state
        for asset, amount in collateral.items():
            self.sandbox.mint(asset, self.address, amount)
            state.collateral[(user, asset)] += amount
        for asset, amount in debt.items():
            state.debt[(user, asset)] += amount

    def _value(self, asset: str, amount: int) -> int:
        return amount * self.oracle.get_price(asset) // 10 ** self.registry.get_config(asset).decimals

    def get_account_data(self, user: str) -> Position:
        state = self.sandbox.state
        collateral_value = 0
        weighted_threshold = 0
        weighted_ltv = 0
        for (holder, asset), amount in state.collateral.items():
            if holder != user or amount == 0:
                continue
            value = self._value(asset, amount)
            params = self.registry.get_config(asset)
            collateral_value += value
            weighted_threshold += value * params.liquidation_threshold
            weighted_ltv += value * params.ltv

        debt_value = sum(
            self._value(asset, amount) for (holder, asset), amount in state.debt.items() if holder == user
        )

        threshold = weighted_threshold // collateral_value if collateral_value else 0
        ltv = weighted_ltv // collateral_value if collateral_value else 0
        if debt_value == 0:
            health_factor = UINT256_MAX
        else:
            health_factor = collateral_value * threshold // BASIS_POINTS * self.health_factor_one // debt_value
        headroom = max(collateral_value * ltv // BASIS_POINTS - debt_value, 0)

        return Position(
            user=user,
            collateral_value=collateral_value,
            debt_value=debt_value,
            borrow_headroom=headroom,
            liquidation_threshold=threshold,
            ltv=ltv,
            health_factor=health_factor,
        )

    def get_collateral_balance(self, user: str, asset: str) -> int:
        return self.sandbox.state.collateral[(user, asset)]

    def get_debt_balance(self, user: str, asset: str) -> int:
        return self.sandbox.state.debt[(user, asset)]

    def liquidate(
        self,
        caller: str,
        collateral_asset: str,
        debt_asset: str,
        user: str,
        debt_to_cover: int,
        receive_a_token: bool,
    ) -> Tuple[int, int]:
        if debt_to_cover == 0:
            raise InvalidAmount("Nothing to cover")
        collateral_params = self.registry.get_config(collateral_asset)
        debt_params = self.registry.get_config(debt_asset)
        if not collateral_params.active or not debt_params.active:
            raise ReserveInactive(f"Reserve {collateral_asset} or {debt_asset} is not active")

        position = self.get_account_data(user)
        if position.health_factor >= self.health_factor_one:
            raise PositionHealthy(f"{user} health factor {position.health_factor}")

        state = self.sandbox.state
        user_debt = state.debt[(user, debt_asset)]
        user_collateral = state.collateral[(user, collateral_asset)]
        if user_debt == 0 or user_collateral == 0:
            raise InvalidAmount(f"{user} has no {debt_asset} debt or no {collateral_asset} collateral")

        debt_repaid = min(debt_to_cover, user_debt * self.close_factor_bp // BASIS_POINTS)
        debt_price = self.oracle.get_price(debt_asset)
        collateral_price = self.oracle.get_price(collateral_asset)
        bonus = collateral_params.liquidation_bonus
        debt_unit = 10**debt_params.decimals
        collateral_unit = 10**collateral_params.decimals

        seized = debt_repaid * debt_price * collateral_unit * bonus // (
            collateral_price * debt_unit * BASIS_POINTS
        )
        if seized > user_collateral:
            seized = user_collateral
            debt_repaid = seized * collateral_price * debt_unit * BASIS_POINTS // (
                debt_price * collateral_unit * bonus
            )

        self.sandbox.transfer(debt_asset, caller, self.address, debt_repaid)
        state.debt[(user, debt_asset)] -= debt_repaid
        state.collateral[(user, collateral_asset)] -= seized
        if receive_a_token:
            state.collateral[(caller, collateral_asset)] += seized
        else:
            self.sandbox.transfer(collateral_asset, self.address, caller, seized)

        logger.info(
            "SandboxLendingPool: %s liquidated %s, repaid %s of %s, seized %s of %s",
            caller, user, debt_repaid, debt_asset, seized, collateral_asset,
        )
        return debt_repaid, seized


class SandboxWrappedNative(WrappedNative):
    def __init__(self, sandbox: Sandbox, token: str):
        self.sandbox = sandbox
        self.token = token

    def withdraw(self, caller: str, amount: int) -> None:
        self.sandbox.burn(self.token, caller, amount)
        self.sandbox.credit_native(caller, amount)
