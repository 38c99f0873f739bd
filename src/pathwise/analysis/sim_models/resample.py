"""Historical resampling (bootstrap) path generation.

Each step applies one log return drawn from the stored series:
  S[t+1] = S[t] * exp(r[k_t]),  k_t = floor(U_t · n)
"""

import numpy as np

from . import prepend_initial


def resample_indices(uniforms: np.ndarray, series_length: int) -> np.ndarray:
    """Map U[0, 1) draws onto integer indices of a series."""
    idx = np.floor(np.asarray(uniforms, dtype=float) * series_length).astype(np.int64)
    return np.clip(idx, 0, series_length - 1)


def simulate_resample_path(
    initial_price: float,
    returns,
    shocks: np.ndarray,
    uniforms: np.ndarray,
    antithetic: bool = False,
) -> np.ndarray:
    """Generate a bootstrap path from a historical log-return series.

    Without antithetic pairing the normal shocks are ignored and resampling
    reads the series in its stored order. With antithetic pairing the series
    is sorted and a negative shock mirrors the drawn index (k → n−1−k), so
    the two members of a pair, whose shocks have opposite signs, pick
    opposite order statistics at every step while each keeps the uniform
    marginal over the series.

    Args:
        initial_price: Price at step 0.
        returns: Historical log returns.
        shocks: Standard-normal shocks (only their sign is used).
        uniforms: U[0, 1) draws, same shape as ``shocks``.
        antithetic: Whether the run pairs paths with negated shocks.
    """
    series = np.asarray(returns, dtype=float)
    n = len(series)
    idx = resample_indices(uniforms, n)

    if antithetic:
        series = np.sort(series)
        idx = np.where(np.asarray(shocks) < 0, n - 1 - idx, idx)

    cumulative = np.cumsum(series[idx], axis=-1)
    return prepend_initial(initial_price, initial_price * np.exp(cumulative))
