"""
Tests for queries, trading calendars and the CSV price loader.
"""

import pandas as pd
import pytest

from src.data.calendar import BusinessDayCalendar, PriceHistoryCalendar, Query
from src.data.loaders import load_price_table, read_price_csv
from src.data.prices import PriceTable
from src.data.schemas import SchemaValidationError


def test_query_normalizes_and_validates():
    query = Query("2024-01-01 10:00", pd.Timestamp("2024-01-05"))

    assert query.start == pd.Timestamp("2024-01-01")
    assert query.contains("2024-01-04")
    assert not query.contains("2024-01-05")

    with pytest.raises(ValueError):
        Query("2024-01-05", "2024-01-05")


def test_business_day_calendar_skips_weekends_and_holidays():
    calendar = BusinessDayCalendar(holidays=["2024-01-01"])

    days = calendar.trading_days(Query("2024-01-01", "2024-01-09"))

    assert days == list(pd.to_datetime([
        "2024-01-02", "2024-01-03", "2024-01-04", "2024-01-05", "2024-01-08",
    ]))


def test_price_history_calendar_uses_bar_dates():
    dates = pd.to_datetime(["2024-01-10", "2024-01-03", "2024-01-02"])
    prices = PriceTable({
        "AAA": pd.DataFrame({'timestamp': dates, 'closing_price': [1.0, 1.0, 1.0]}),
        "BBB": pd.DataFrame({'timestamp': pd.to_datetime(["2024-01-04"]), 'closing_price': [2.0]}),
    })

    assert PriceHistoryCalendar(prices).trading_days(Query("2024-01-02", "2024-01-10")) == list(
        pd.to_datetime(["2024-01-02", "2024-01-03", "2024-01-04"])
    )
    assert PriceHistoryCalendar(prices, ["BBB"]).trading_days(Query("2024-01-01", "2024-02-01")) == [
        pd.Timestamp("2024-01-04")
    ]


def test_load_price_table_from_directory(tmp_path):
    pd.DataFrame({
        'timestamp': ["2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z"],
        'closing_price': [10.0, 11.0],
        'volume': [100, 200],
    }).to_csv(tmp_path / "AAA.csv", index=False)
    pd.DataFrame({
        'timestamp': ["2024-01-02"],
        'closing_price': [20.0],
    }).to_csv(tmp_path / "BBB.csv", index=False)

    table = load_price_table(directory=tmp_path)

    assert table.symbols == ["AAA", "BBB"]
    assert table.price_on("AAA", "2024-01-02") == 11.0

    only = load_price_table(["BBB"], tmp_path)
    assert only.symbols == ["BBB"]


def test_load_price_table_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_price_table(directory=tmp_path / "missing")
    with pytest.raises(FileNotFoundError):
        load_price_table(["AAA"], tmp_path)
    with pytest.raises(FileNotFoundError):
        read_price_csv(tmp_path / "nope.csv")

    pd.DataFrame({'date': ["2024-01-01"], 'close': [1.0]}).to_csv(tmp_path / "BAD.csv", index=False)
    with pytest.raises(SchemaValidationError):
        load_price_table(["BAD"], tmp_path)
