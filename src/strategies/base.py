"""
Strategy interface and simple implementations.

**Conceptual**: A strategy is the decision rule inside a trading system. Given
the current date, the price history up to that date and the state of the
system's own account, it answers "what fraction of my equity should be in each
instrument?". The system (src/strategies/system.py) turns that answer into a
trade on its ledger; the portfolio decides whether the system runs at all and
how much capital it has.

**Why target weights?**
  - Strategies stay independent of account size: a weight of 1.0 means "fully
    invested" whether the allocator granted 1,000 or 1,000,000.
  - The system, not the strategy, deals with prices, cash limits and costs.

Strategies should be stateless between calls (or at least safe to deep-copy),
because every live system in a portfolio run is a clone of a prototype.
"""

from typing import Protocol, TYPE_CHECKING

import pandas as pd

from src.utils.math import (
    compute_moving_average_exponential,
    compute_moving_average_simple,
)

if TYPE_CHECKING:
    from src.execution.ledger import FundsRecord


class Strategy(Protocol):
    """
    Strategy interface.

    This is a Protocol (structural typing): any object with a matching
    `generate_target_weights` method can drive a system.
    """

    def generate_target_weights(
        self,
        dt: pd.Timestamp,
        data: dict[str, pd.DataFrame],
        portfolio_state: "FundsRecord | None" = None,
    ) -> dict[str, float]:
        """
        Generate target weights for `dt`.

        Args:
            dt: Current date. `data` never contains rows after it.
            data: Mapping symbol -> price frame (timestamp, closing_price, ...),
                  newest first, rows with timestamp <= dt.
            portfolio_state: Funds of the calling system's account, if available.

        Returns:
            Mapping symbol -> target weight. Missing symbols mean weight 0.0
            (liquidate). Empty dict means all cash.
        """
        ...


class AlwaysCashStrategy:
    """Never invests. Useful to check that idle systems keep their capital untouched."""

    def generate_target_weights(
        self,
        dt: pd.Timestamp,
        data: dict[str, pd.DataFrame],
        portfolio_state: "FundsRecord | None" = None,
    ) -> dict[str, float]:
        return {}


class AlwaysLongStrategy:
    """
    Keeps 100% of equity in one symbol.

    **Expected behavior**: the first time the system runs with cash it buys as
    much of the symbol as the cash allows; afterwards it only trades when new
    cash arrives.

    Args:
        symbol: The instrument to hold.
    """

    def __init__(self, symbol: str):
        self.symbol = symbol

    def generate_target_weights(
        self,
        dt: pd.Timestamp,
        data: dict[str, pd.DataFrame],
        portfolio_state: "FundsRecord | None" = None,
    ) -> dict[str, float]:
        return {self.symbol: 1.0}


class MovingAverageTrendStrategy:
    """
    Trend filter: fully long while the fast EMA is above the slow SMA, flat otherwise.

    **Conceptual**: A classic trend-following rule. The exponential average
    reacts quickly to recent prices; the simple average is a slower baseline.
    When the fast line sits above the slow one the trend is considered up and
    the system holds the instrument; when it drops below, the system sells out
    and holds cash. Until enough history exists for the slow average, the
    strategy stays flat.

    Args:
        symbol: Instrument to trade.
        fast: EMA span (periods).
        slow: SMA window (periods). Must be greater than `fast`.

    Raises:
        ValueError: If fast < 1 or slow <= fast.
    """

    def __init__(self, symbol: str, fast: int = 10, slow: int = 30):
        if fast < 1:
            raise ValueError(f"fast must be >= 1, got {fast}")
        if slow <= fast:
            raise ValueError(f"slow ({slow}) must be greater than fast ({fast})")
        self.symbol = symbol
        self.fast = fast
        self.slow = slow

    def generate_target_weights(
        self,
        dt: pd.Timestamp,
        data: dict[str, pd.DataFrame],
        portfolio_state: "FundsRecord | None" = None,
    ) -> dict[str, float]:
        frame = data.get(self.symbol)
        if frame is None or len(frame) < self.slow:
            return {}

        # Frames are newest first; index by timestamp so the helpers see the order.
        closes = pd.Series(
            frame['closing_price'].to_numpy(),
            index=pd.DatetimeIndex(frame['timestamp']),
        )
        fast_ma = compute_moving_average_exponential(closes, self.fast)
        slow_ma = compute_moving_average_simple(closes, self.slow)

        latest = closes.index.max()
        if pd.isna(slow_ma.loc[latest]):
            return {}
        if fast_ma.loc[latest] > slow_ma.loc[latest]:
            return {self.symbol: 1.0}
        return {}
