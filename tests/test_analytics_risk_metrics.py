"""
Tests for src/analytics/risk_metrics.py

Hand-crafted funds curves whose metrics are easy to verify by eye.
"""

import numpy as np
import pandas as pd

from src.analytics.risk_metrics import (
    compute_cagr,
    compute_drawdown_series,
    compute_max_drawdown,
    compute_total_return,
)


def test_compute_total_return_simple_case():
    """100 -> 150 is a 50% gain."""
    funds = pd.Series([100.0, 110.0, 130.0, 150.0])
    assert np.isclose(compute_total_return(funds), 0.50)


def test_compute_total_return_degenerate_curves():
    assert np.isnan(compute_total_return(pd.Series([], dtype=float)))
    assert np.isnan(compute_total_return(pd.Series([0.0, 10.0])))


def test_compute_cagr_doubling_in_252_days():
    funds = pd.Series([100.0] * 252 + [200.0])
    assert np.isclose(compute_cagr(funds, periods_per_year=252), 1.0)


def test_compute_cagr_too_short():
    assert np.isnan(compute_cagr(pd.Series([100.0])))


def test_compute_drawdown_series_with_drop():
    funds = pd.Series([100.0, 120.0, 90.0, 130.0])

    drawdown = compute_drawdown_series(funds)

    assert list(drawdown) == [0.0, 0.0, -0.25, 0.0]


def test_compute_drawdown_series_ignores_zero_peak():
    """A curve starting before any capital arrived has no drawdown while it is zero."""
    funds = pd.Series([0.0, 0.0, 100.0, 80.0])

    assert list(compute_drawdown_series(funds)) == [0.0, 0.0, 0.0, -0.2]


def test_compute_max_drawdown():
    assert np.isclose(compute_max_drawdown(pd.Series([100.0, 120.0, 90.0, 130.0])), -0.25)
    assert compute_max_drawdown(pd.Series([100.0, 110.0, 120.0])) == 0.0
    assert compute_max_drawdown(pd.Series([], dtype=float)) == 0.0
