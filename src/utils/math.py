"""
Series math used by strategies and selectors.

Price frames in this project follow the descending (newest first) row order of
the price schema. Every rolling computation here must therefore look at the
order of the index before calling pandas' rolling/ewm helpers, which always
walk positionally from the first row. Getting this wrong turns a lagging
indicator into a look-ahead one.
"""

import pandas as pd


def _is_descending(series: pd.Series) -> bool:
    if len(series) < 2:
        return False
    return series.index[-1] < series.index[0]


def compute_simple_returns(prices: pd.Series) -> pd.Series:
    """
    Period-over-period simple returns, r_t = P_t / P_{t-1} - 1.

    Args:
        prices: Price series in chronological order.

    Returns:
        Series of returns aligned to the input index (first value NaN).
    """
    return prices.pct_change()


def compute_trailing_return(prices: pd.Series, lookback: int) -> float:
    """
    Simple return over the last `lookback` periods of a price series.

    **Conceptual**: This is the momentum score used to rank tradables: how much
    did the price move between `lookback` bars ago and the latest bar? The
    series may be in either row order; the newest observation is taken from
    whichever end holds the latest index value.

    Args:
        prices: Price series indexed by timestamp.
        lookback: Number of periods to look back (must be >= 1).

    Returns:
        Trailing simple return, or NaN if fewer than lookback + 1 prices exist.

    Raises:
        ValueError: If lookback < 1.
    """
    if lookback < 1:
        raise ValueError(f"lookback must be >= 1, got {lookback}")

    ordered = prices.iloc[::-1] if _is_descending(prices) else prices
    ordered = ordered.dropna()
    if len(ordered) <= lookback:
        return float("nan")

    latest = ordered.iloc[-1]
    base = ordered.iloc[-1 - lookback]
    if base == 0:
        return float("nan")
    return float(latest / base - 1.0)


def compute_moving_average_simple(prices: pd.Series, window: int) -> pd.Series:
    """
    Simple moving average over `window` periods.

    The first (window - 1) values are NaN. Works for both ascending and
    descending row order: descending input is reversed, averaged, and reversed
    back so each value only uses prices at or before its own timestamp.

    Args:
        prices: Price series.
        window: Number of periods (>= 1).

    Returns:
        Series aligned with the input index.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    if _is_descending(prices):
        return prices.iloc[::-1].rolling(window=window).mean().iloc[::-1]
    return prices.rolling(window=window).mean()


def compute_moving_average_exponential(prices: pd.Series, span: int) -> pd.Series:
    """
    Exponential moving average with smoothing factor 2 / (span + 1).

    **Mathematical**: The first value seeds the average with the first price,
    then for every following period:
        EMA_t = (2 * P_t + (span - 1) * EMA_{t-1}) / (span + 1)
    which is pandas' `ewm(span=span, adjust=False)`. Leading NaNs in the input
    are skipped; the average starts at the first valid price.

    Args:
        prices: Price series.
        span: EMA span in periods (>= 1).

    Returns:
        Series aligned with the input index.
    """
    if span < 1:
        raise ValueError(f"span must be >= 1, got {span}")

    if _is_descending(prices):
        ascending = prices.iloc[::-1]
        return ascending.ewm(span=span, adjust=False, ignore_na=True).mean().iloc[::-1]
    return prices.ewm(span=span, adjust=False, ignore_na=True).mean()

