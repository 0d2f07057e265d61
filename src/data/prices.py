"""
In-memory price table shared by systems, selectors, ledgers and calendars.

**Conceptual**: The simulation only needs daily closes. A PriceTable holds one
normalized price frame per symbol and answers the three questions the rest of
the code asks:
  - "what was the close of X on or before date d?" (ledger valuation)
  - "was there a bar for X exactly on date d?" (systems only trade on bar dates)
  - "give me X's history inside this query window / up to date d" (strategies)

Frames are validated and normalized on the way in, so every lookup can assume
naive midnight timestamps in descending order.
"""

from typing import Iterable, Protocol

import pandas as pd

from src.data.schemas import normalize_price_frame
from src.utils.time import to_timestamp


class PriceSource(Protocol):
    """Anything that can price a symbol as of a date (used by ledgers)."""

    def price_on(self, symbol: str, date) -> float | None:
        ...


class PriceTable:
    """
    Per-symbol closing price histories.

    Args:
        frames: Mapping symbol -> DataFrame with `timestamp` and `closing_price`.
    """

    def __init__(self, frames: dict[str, pd.DataFrame] | None = None):
        self._frames: dict[str, pd.DataFrame] = {}
        self._closes: dict[str, pd.Series] = {}
        for symbol, frame in (frames or {}).items():
            self.add(symbol, frame)

    def add(self, symbol: str, frame: pd.DataFrame) -> None:
        """Validate, normalize and store the history for `symbol` (replacing any previous one)."""
        normalized = normalize_price_frame(frame, context=symbol)
        self._frames[symbol] = normalized
        # Ascending close series for as-of lookups.
        self._closes[symbol] = pd.Series(
            normalized['closing_price'].to_numpy()[::-1],
            index=pd.DatetimeIndex(normalized['timestamp'].to_numpy()[::-1]),
            name=symbol,
        )

    @property
    def symbols(self) -> list[str]:
        return list(self._frames.keys())

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._frames

    def __len__(self) -> int:
        return len(self._frames)

    def frame(self, symbol: str) -> pd.DataFrame:
        """Full normalized history for `symbol` (newest first). Raises KeyError if unknown."""
        return self._frames[symbol]

    def closes(self, symbol: str) -> pd.Series:
        """Ascending close series for `symbol`. Raises KeyError if unknown."""
        return self._closes[symbol]

    def dates(self, symbols: Iterable[str] | None = None) -> list[pd.Timestamp]:
        """Sorted union of bar dates for the given symbols (all symbols by default)."""
        selected = self.symbols if symbols is None else list(symbols)
        all_dates = set()
        for symbol in selected:
            if symbol in self._closes:
                all_dates.update(self._closes[symbol].index.tolist())
        return sorted(all_dates)

    def has_bar(self, symbol: str, date) -> bool:
        """True if `symbol` has a bar exactly on `date`."""
        if symbol not in self._closes:
            return False
        return to_timestamp(date) in self._closes[symbol].index

    def price_on(self, symbol: str, date) -> float | None:
        """
        Latest close of `symbol` at or before `date`.

        Returns:
            The close, or None if the symbol is unknown or has no bar yet.
        """
        closes = self._closes.get(symbol)
        if closes is None or closes.empty:
            return None
        ts = to_timestamp(date)
        pos = closes.index.searchsorted(ts, side='right')
        if pos == 0:
            return None
        return float(closes.iloc[pos - 1])

    def history(self, symbol: str, date) -> pd.DataFrame:
        """
        Rows of `symbol` with timestamp <= `date`, newest first.

        This is the slice handed to strategies; it never contains rows after
        `date`, so a strategy cannot look into the future.
        """
        frame = self._frames[symbol]
        ts = to_timestamp(date)
        return frame[frame['timestamp'] <= ts]

    def window(self, symbol: str, start, end) -> pd.DataFrame:
        """Rows of `symbol` with start <= timestamp < end, newest first."""
        frame = self._frames[symbol]
        start_ts = to_timestamp(start)
        end_ts = to_timestamp(end)
        mask = (frame['timestamp'] >= start_ts) & (frame['timestamp'] < end_ts)
        return frame[mask].reset_index(drop=True)
