"""
Adapter around an externally quoted stableswap pool.
"""

from typing import Sequence, Tuple

from .logging_config import setup_logger
from .trade_math import min_output
from .venues.base_venue import ExecutableStableswap, StableswapQuoter

logger = setup_logger()


class StableswapAdapter:
    """
    Quotes and executes coin conversions on a stableswap pool.

    Execution always carries a minimum-output guard derived from a fresh quote,
    so the venue rejects the conversion when the realized rate has drifted.
    """

    def __init__(self, pool: StableswapQuoter, coins: Sequence[str], slippage_bp: int = 100):
        self.pool = pool
        self.coins = tuple(coins)
        self.slippage_bp = slippage_bp

    def indices(self, asset_in: str, asset_out: str) -> Tuple[int, int]:
        try:
            return self.coins.index(asset_in), self.coins.index(asset_out)
        except ValueError as ex:
            raise ValueError(f"Pair {asset_in}/{asset_out} is not traded by {self.pool.address}") from ex

    def quote_out(self, idx_in: int, idx_out: int, amount_in: int) -> int:
        return self.pool.quote(idx_in, idx_out, amount_in)

    def convert(self, caller: str, idx_in: int, idx_out: int, amount_in: int) -> int:
        """
        Exchange ``amount_in`` of coin ``idx_in`` for coin ``idx_out``.

        Args:
            caller: Account whose balances are converted.
            idx_in: Index of the coin sold.
            idx_out: Index of the coin bought.
            amount_in: Amount sold, in base units.

        Returns:
            Amount received.

        Raises:
            SlippageExceeded: the venue would pay less than 99% of the quote.
        """
        if not isinstance(self.pool, ExecutableStableswap):
            raise TypeError(f"Stableswap venue {self.pool.address} is read-only")

        quoted = self.quote_out(idx_in, idx_out, amount_in)
        min_amount_out = min_output(quoted, self.slippage_bp)
        logger.info(
            "Stableswap: converting %s of coin %s to coin %s, quoted %s, min %s",
            amount_in, idx_in, idx_out, quoted, min_amount_out,
        )
        return self.pool.exchange(caller, idx_in, idx_out, amount_in, min_amount_out)
