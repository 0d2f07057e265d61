"""
Tests for price frame validation/normalization and the PriceTable.
"""

import pandas as pd
import pytest

from src.data.prices import PriceTable
from src.data.schemas import SchemaValidationError, normalize_price_frame, validate_price_frame


def make_df(dates, prices):
    return pd.DataFrame({'timestamp': list(dates), 'closing_price': list(prices)})


# ----------------------------------------------------------------------
# Schema
# ----------------------------------------------------------------------

def test_validate_accepts_descending_frame():
    df = make_df(pd.to_datetime(["2024-01-02", "2024-01-01"]), [11.0, 10.0])
    validate_price_frame(df)


def test_validate_missing_column():
    df = pd.DataFrame({'timestamp': pd.to_datetime(["2024-01-01"])})
    with pytest.raises(SchemaValidationError, match="closing_price"):
        validate_price_frame(df, context="AAA")


def test_validate_rejects_ascending_order():
    df = make_df(pd.to_datetime(["2024-01-01", "2024-01-02"]), [10.0, 11.0])
    with pytest.raises(SchemaValidationError, match="descending"):
        validate_price_frame(df)


def test_validate_rejects_non_positive_prices():
    df = make_df(pd.to_datetime(["2024-01-02", "2024-01-01"]), [0.0, 10.0])
    with pytest.raises(SchemaValidationError):
        validate_price_frame(df)


def test_normalize_sorts_dedupes_and_strips_timezone():
    df = make_df(
        ["2024-01-01T15:00:00Z", "2024-01-02T15:00:00Z", "2024-01-02T20:00:00Z"],
        [10.0, 11.0, 11.5],
    )

    out = normalize_price_frame(df, context="AAA")

    assert list(out['timestamp']) == [pd.Timestamp("2024-01-02"), pd.Timestamp("2024-01-01")]
    # Same-day duplicates keep the last row
    assert list(out['closing_price']) == [11.5, 10.0]
    assert out['timestamp'].dt.tz is None
    # Input untouched
    assert df['closing_price'].tolist() == [10.0, 11.0, 11.5]


def test_normalize_rejects_garbage_timestamps():
    df = make_df(["not a date"], [10.0])
    with pytest.raises(SchemaValidationError):
        normalize_price_frame(df)


# ----------------------------------------------------------------------
# PriceTable
# ----------------------------------------------------------------------

@pytest.fixture
def table():
    aaa = make_df(pd.to_datetime(["2024-01-01", "2024-01-02", "2024-01-04"]), [10.0, 11.0, 12.0])
    bbb = make_df(pd.to_datetime(["2024-01-03"]), [50.0])
    return PriceTable({"AAA": aaa, "BBB": bbb})


def test_symbols_and_membership(table):
    assert table.symbols == ["AAA", "BBB"]
    assert "AAA" in table
    assert "ZZZ" not in table
    assert len(table) == 2


def test_frame_is_newest_first(table):
    assert table.frame("AAA")['timestamp'].iloc[0] == pd.Timestamp("2024-01-04")
    assert table.closes("AAA").index.is_monotonic_increasing


def test_dates_union(table):
    assert table.dates() == list(pd.to_datetime(["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04"]))
    assert table.dates(["BBB"]) == [pd.Timestamp("2024-01-03")]


def test_price_on_is_as_of(table):
    assert table.price_on("AAA", "2024-01-02") == 11.0
    assert table.price_on("AAA", "2024-01-03") == 11.0
    assert table.price_on("AAA", "2023-12-31") is None
    assert table.price_on("ZZZ", "2024-01-02") is None


def test_has_bar(table):
    assert table.has_bar("AAA", "2024-01-02")
    assert not table.has_bar("AAA", "2024-01-03")
    assert not table.has_bar("ZZZ", "2024-01-02")


def test_history_never_includes_later_rows(table):
    history = table.history("AAA", "2024-01-03")
    assert list(history['timestamp']) == [pd.Timestamp("2024-01-02"), pd.Timestamp("2024-01-01")]


def test_window_is_half_open(table):
    window = table.window("AAA", "2024-01-02", "2024-01-04")
    assert list(window['closing_price']) == [11.0]


def test_add_replaces_symbol(table):
    table.add("BBB", make_df(pd.to_datetime(["2024-01-05"]), [60.0]))
    assert table.price_on("BBB", "2024-01-05") == 60.0
    assert table.price_on("BBB", "2024-01-03") is None
