"""
Synthetic market data generators for tests and demos.

Prices follow Geometric Brownian Motion (GBM): trending, compounding,
equity-like behavior with a controllable drift and volatility. Frames come out
in the project's price schema (`timestamp`, `closing_price`, newest first) so
they can go straight into a `PriceTable`.
"""

from typing import Iterable

import numpy as np
import pandas as pd


def generate_gbm_paths(
    initial_price: float,
    drift: float,
    volatility: float,
    n_steps: int,
    dt: float = 1 / 252,
    seed: int | None = None,
) -> pd.Series:
    """
    Generate a price path using Geometric Brownian Motion.

    **Mathematical**: The discrete update for each step is
        S_{t+1} = S_t * exp((μ - 0.5 * σ^2) * dt + σ * sqrt(dt) * Z_t)
    where Z_t ~ N(0, 1). The (μ - 0.5 * σ^2) term is the Itô correction so the
    expected price grows at rate μ.

    **Interpretation**:
    - drift > 0: upward trending market; drift < 0: downward.
    - volatility = 0 gives a deterministic exponential path.

    Args:
        initial_price: Starting price (must be positive).
        drift: Annualized drift μ (0.10 = 10% per year).
        volatility: Annualized volatility σ.
        n_steps: Number of steps after the initial price.
        dt: Time increment per step (1/252 for daily).
        seed: Random seed for reproducibility.

    Returns:
        Series of length n_steps + 1 indexed by step number.

    Raises:
        ValueError: If initial_price <= 0 or n_steps < 0.
    """
    if initial_price <= 0:
        raise ValueError(f"initial_price must be positive, got: {initial_price}")
    if n_steps < 0:
        raise ValueError(f"n_steps must be non-negative, got: {n_steps}")

    if seed is not None:
        np.random.seed(seed)

    prices = np.zeros(n_steps + 1)
    prices[0] = initial_price

    Z = np.random.standard_normal(n_steps)
    drift_term = (drift - 0.5 * volatility**2) * dt
    diffusion_term = volatility * np.sqrt(dt) * Z

    # Cumulative log-returns give the whole path at once
    prices[1:] = initial_price * np.exp(np.cumsum(drift_term + diffusion_term))

    return pd.Series(prices, index=range(n_steps + 1), name='price')


def generate_price_history(
    dates: Iterable,
    initial_price: float = 100.0,
    drift: float = 0.08,
    volatility: float = 0.2,
    seed: int | None = None,
) -> pd.DataFrame:
    """
    Build a GBM price frame over the given dates.

    Args:
        dates: Bar dates (any order; output is sorted newest first).
        initial_price: Close on the earliest date.
        drift: Annualized drift.
        volatility: Annualized volatility.
        seed: Random seed for reproducibility.

    Returns:
        DataFrame with `timestamp` and `closing_price`, sorted descending.
    """
    index = pd.DatetimeIndex(sorted(pd.to_datetime(list(dates)).normalize().unique()))
    if len(index) == 0:
        return pd.DataFrame({'timestamp': pd.Series(dtype='datetime64[ns]'),
                             'closing_price': pd.Series(dtype=float)})

    path = generate_gbm_paths(initial_price, drift, volatility, len(index) - 1, seed=seed)
    df = pd.DataFrame({'timestamp': index, 'closing_price': path.to_numpy()})
    return df.sort_values('timestamp', ascending=False).reset_index(drop=True)


def generate_price_table_frames(
    symbols: Iterable[str],
    dates: Iterable,
    initial_price: float = 100.0,
    drift: float = 0.08,
    volatility: float = 0.2,
    seed: int | None = None,
) -> dict[str, pd.DataFrame]:
    """
    One GBM frame per symbol. Symbol i uses seed + i so paths differ but stay reproducible.
    """
    dates = list(dates)
    frames = {}
    for i, symbol in enumerate(symbols):
        frames[symbol] = generate_price_history(
            dates,
            initial_price=initial_price,
            drift=drift,
            volatility=volatility,
            seed=None if seed is None else seed + i,
        )
    return frames
