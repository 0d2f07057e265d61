"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import src...' works, and
provides small price/ledger fixtures shared by the portfolio tests.
"""
import sys
from pathlib import Path

import pandas as pd
import pytest

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.config.settings import reset_settings
from src.data.prices import PriceTable


def make_price_frame(dates, prices) -> pd.DataFrame:
    """Price frame in schema order (newest first) from parallel date/price lists."""
    df = pd.DataFrame({
        'timestamp': pd.to_datetime(list(dates)),
        'closing_price': [float(p) for p in prices],
    })
    return df.sort_values('timestamp', ascending=False).reset_index(drop=True)


@pytest.fixture
def trading_days():
    """Ten business days starting Monday 2024-01-01."""
    return list(pd.bdate_range("2024-01-01", periods=10))


@pytest.fixture
def flat_prices(trading_days):
    """Three symbols priced at a constant 10.0 on every trading day."""
    frames = {
        symbol: make_price_frame(trading_days, [10.0] * len(trading_days))
        for symbol in ("AAA", "BBB", "CCC")
    }
    return PriceTable(frames)


@pytest.fixture
def rising_prices(trading_days):
    """Three symbols starting at 10.0 and compounding 1% per trading day."""
    closes = [10.0 * 1.01 ** i for i in range(len(trading_days))]
    frames = {
        symbol: make_price_frame(trading_days, closes)
        for symbol in ("AAA", "BBB", "CCC")
    }
    return PriceTable(frames)


@pytest.fixture(autouse=True)
def _clear_cached_settings():
    """Never leak a cached Settings object between tests."""
    reset_settings()
    yield
    reset_settings()
