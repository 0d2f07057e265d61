"""
Performance metrics for portfolio funds curves.

All functions take a funds (total assets) curve indexed by date, ascending.
"""

import numpy as np
import pandas as pd


def compute_total_return(funds_curve: pd.Series) -> float:
    """
    Overall return from the first to the last point of the curve.

    **Mathematical**: Total Return = (F_T / F_0) - 1

    Returns:
        Total return as a decimal (0.25 = 25% gain). NaN if the curve is empty
        or starts at zero.
    """
    if funds_curve.empty:
        return float('nan')
    initial = funds_curve.iloc[0]
    if initial == 0:
        return float('nan')
    return float(funds_curve.iloc[-1] / initial - 1.0)


def compute_cagr(funds_curve: pd.Series, periods_per_year: int = 252) -> float:
    """
    Compound annual growth rate, assuming one curve point per period.

    **Mathematical**: CAGR = (F_T / F_0) ^ (periods_per_year / n_periods) - 1,
    where n_periods = len(curve) - 1.

    Returns:
        CAGR as a decimal, or NaN for curves shorter than two points.
    """
    n_periods = len(funds_curve) - 1
    if n_periods < 1 or funds_curve.iloc[0] <= 0:
        return float('nan')
    growth = funds_curve.iloc[-1] / funds_curve.iloc[0]
    return float(growth ** (periods_per_year / n_periods) - 1.0)


def compute_drawdown_series(funds_curve: pd.Series) -> pd.Series:
    """
    Percentage drop from the running peak at every point.

    **Conceptual**: Drawdown answers "how far below the best level so far is the
    portfolio?" It is 0 at a new peak and negative otherwise.

    Returns:
        Series of drawdowns (values <= 0) with the input's index.
    """
    cumulative_peak = funds_curve.cummax()
    # A zero peak means no capital yet: no drawdown
    drawdown = (funds_curve / cumulative_peak.replace(0, np.nan)) - 1.0
    return drawdown.fillna(0.0)


def compute_max_drawdown(funds_curve: pd.Series) -> float:
    """
    Worst peak-to-trough loss over the curve (value <= 0, e.g. -0.30).

    Returns 0.0 for an empty curve.
    """
    if funds_curve.empty:
        return 0.0
    return float(compute_drawdown_series(funds_curve).min())
