"""
Tests for src/utils/time.py

Clock abstraction plus the date normalization helpers every ledger, calendar
and price lookup relies on.
"""

from datetime import date, datetime, timezone

import pandas as pd
import pytest

from src.utils.time import (
    FrozenClock,
    RealClock,
    date_range_until_now,
    get_frozen_clock,
    get_real_clock,
    to_timestamp,
)


def test_real_clock_returns_current_time():
    """RealClock returns a UTC time between two direct system clock reads."""
    clock = RealClock()

    before = datetime.now(timezone.utc)
    clock_time = clock.now()
    after = datetime.now(timezone.utc)

    assert before <= clock_time <= after
    assert clock_time.tzinfo == timezone.utc


def test_frozen_clock_returns_fixed_time():
    fixed_time = datetime(2015, 1, 5, 12, 30, 45, tzinfo=timezone.utc)
    clock = FrozenClock(fixed_time)

    assert clock.now() == fixed_time
    assert clock.now() == fixed_time


def test_clock_factories():
    fixed_time = datetime(2020, 6, 15, tzinfo=timezone.utc)
    assert get_frozen_clock(fixed_time).now() == fixed_time
    assert isinstance(get_real_clock(), RealClock)


def test_to_timestamp_accepts_common_inputs():
    """Strings, dates, datetimes and Timestamps all become the same naive midnight Timestamp."""
    expected = pd.Timestamp("2024-03-01")

    assert to_timestamp("2024-03-01") == expected
    assert to_timestamp(date(2024, 3, 1)) == expected
    assert to_timestamp(datetime(2024, 3, 1, 16, 45)) == expected
    assert to_timestamp(pd.Timestamp("2024-03-01 09:30")) == expected


def test_to_timestamp_converts_timezone_aware_values_to_utc_date():
    """A New York evening bar is already the next day in UTC."""
    ts = pd.Timestamp("2024-03-01 21:00", tz="America/New_York")

    result = to_timestamp(ts)

    assert result.tzinfo is None
    assert result == pd.Timestamp("2024-03-02")


def test_to_timestamp_rejects_missing_values():
    with pytest.raises(ValueError):
        to_timestamp(None)
    with pytest.raises(ValueError):
        to_timestamp(pd.NaT)


def test_date_range_until_now_is_half_open():
    clock = FrozenClock(datetime(2024, 1, 5, 15, 0, tzinfo=timezone.utc))

    dates = date_range_until_now("2024-01-01", clock)

    assert dates == list(pd.date_range("2024-01-01", "2024-01-04"))


def test_date_range_until_now_with_business_days():
    clock = FrozenClock(datetime(2024, 1, 10, tzinfo=timezone.utc))

    dates = date_range_until_now("2024-01-05", clock, freq="B")

    # Fri 5th, Mon 8th, Tue 9th; the 10th itself is excluded
    assert dates == [pd.Timestamp("2024-01-05"), pd.Timestamp("2024-01-08"), pd.Timestamp("2024-01-09")]


def test_date_range_until_now_empty_when_start_not_in_past():
    clock = FrozenClock(datetime(2024, 1, 5, tzinfo=timezone.utc))

    assert date_range_until_now("2024-01-05", clock) == []
    assert date_range_until_now("2024-02-01", clock) == []
