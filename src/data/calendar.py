"""
Query ranges and trading calendars.

**Conceptual**: The portfolio does not decide which days exist; it asks a
calendar. A Query describes a half-open date range [start, end) and a
TradingCalendar turns it into the ordered list of dates the control loop
steps through. The calendar is passed to `Portfolio.run` explicitly so the
orchestrator can be tested with any date stream.

Two calendars are provided:
  - BusinessDayCalendar: Monday-Friday, minus an optional holiday list.
  - PriceHistoryCalendar: every date on which at least one symbol in a
    PriceTable has a bar (mirrors how a daily backtest derives its dates
    from the data it has).
"""

from dataclasses import dataclass
from typing import Iterable, Protocol

import pandas as pd

from src.data.prices import PriceTable
from src.utils.time import to_timestamp


@dataclass(frozen=True)
class Query:
    """
    Half-open date range [start, end).

    Attributes:
        start: First date included.
        end: First date excluded. Must be after start.
    """
    start: pd.Timestamp
    end: pd.Timestamp

    def __post_init__(self):
        start = to_timestamp(self.start)
        end = to_timestamp(self.end)
        if end <= start:
            raise ValueError(f"Query end ({end.date()}) must be after start ({start.date()}).")
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, 'start', start)
        object.__setattr__(self, 'end', end)

    def contains(self, date) -> bool:
        ts = to_timestamp(date)
        return self.start <= ts < self.end


class TradingCalendar(Protocol):
    """Produces the ordered simulation dates for a query."""

    def trading_days(self, query: Query) -> list[pd.Timestamp]:
        ...


class BusinessDayCalendar:
    """
    Weekday calendar with optional holidays.

    Args:
        holidays: Dates to exclude (anything `to_timestamp` accepts).
    """

    def __init__(self, holidays: Iterable = ()):
        self._holidays = frozenset(to_timestamp(d) for d in holidays)

    def trading_days(self, query: Query) -> list[pd.Timestamp]:
        days = pd.bdate_range(query.start, query.end, inclusive='left')
        return [day for day in days if day not in self._holidays]


class PriceHistoryCalendar:
    """
    Calendar derived from the bar dates of a price table.

    Args:
        prices: PriceTable whose dates define the calendar.
        symbols: Optional subset of symbols; defaults to all symbols in the table.
    """

    def __init__(self, prices: PriceTable, symbols: Iterable[str] | None = None):
        self._prices = prices
        self._symbols = None if symbols is None else list(symbols)

    def trading_days(self, query: Query) -> list[pd.Timestamp]:
        return [d for d in self._prices.dates(self._symbols) if query.contains(d)]
