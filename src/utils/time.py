"""
Clock abstractions and date helpers for the portfolio simulation.

The simulation never asks the operating system what time it is directly. Any
component that needs "now" (for example the portfolio's default reporting
range, which runs from the account's inception date up to today) receives a
Clock. Tests and backtests pass a FrozenClock so results do not depend on the
day the suite happens to run.

All dates handed around the simulation are timezone-naive, midnight-normalized
pandas Timestamps. The helpers at the bottom of this module convert anything a
caller might pass (str, date, datetime, tz-aware Timestamp) into that form.
"""

from datetime import datetime, timezone
from typing import Protocol

import pandas as pd


class Clock(Protocol):
    """
    Abstract time source.

    **Conceptual**: A Clock answers "what time is it right now?". Depending on
    this protocol instead of calling datetime.now() keeps reporting code
    deterministic: the funds curve of a finished backtest must not grow a new
    point every time someone re-runs the report tomorrow.
    """

    def now(self) -> datetime:
        """Return the current time according to this clock."""
        ...


class RealClock:
    """Clock backed by the system clock (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """
    Clock that always returns the same timestamp.

    **Usage**:
        clock = FrozenClock(datetime(2024, 3, 1, tzinfo=timezone.utc))
        portfolio = Portfolio(ledger, selector, allocator, clock=clock)
        portfolio.get_funds_curve()  # range ends at 2024-03-01 (exclusive)
    """

    def __init__(self, fixed_now: datetime):
        self._fixed_now = fixed_now

    def now(self) -> datetime:
        return self._fixed_now


def get_real_clock() -> Clock:
    """Factory for the production clock."""
    return RealClock()


def get_frozen_clock(fixed_now: datetime) -> Clock:
    """Factory for a frozen clock (tests and backtests)."""
    return FrozenClock(fixed_now)


def to_timestamp(value) -> pd.Timestamp:
    """
    Normalize a date-like value to a naive, midnight pandas Timestamp.

    **Why normalize?** Ledger events, calendar dates and price bars are compared
    with `<=` all over the simulation. Mixing tz-aware and naive values raises
    in pandas, and mixing intraday times with midnight dates silently shifts
    "as of" lookups by a day. Everything is therefore reduced to a naive date.

    Args:
        value: str, date, datetime or Timestamp.

    Returns:
        Timezone-naive Timestamp at midnight.

    Raises:
        ValueError: If value is None or cannot be parsed.
    """
    if value is None:
        raise ValueError("Cannot convert None to a timestamp.")
    ts = pd.Timestamp(value)
    if ts is pd.NaT:
        raise ValueError(f"Cannot convert {value!r} to a timestamp.")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.normalize()


def date_range_until_now(
    start,
    clock: Clock,
    freq: str = "D",
) -> list[pd.Timestamp]:
    """
    Dates from `start` (inclusive) up to the clock's "now" (exclusive).

    Args:
        start: First date of the range.
        clock: Source of "now".
        freq: pandas frequency alias for the spacing of the dates ("D", "B", "W-FRI", ...).

    Returns:
        Ascending list of naive Timestamps. Empty if now <= start.
    """
    start_ts = to_timestamp(start)
    end_ts = to_timestamp(clock.now())
    if end_ts <= start_ts:
        return []
    return list(pd.date_range(start_ts, end_ts, freq=freq, inclusive="left"))
