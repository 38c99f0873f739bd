"""Geometric Brownian Motion (constant volatility) path generation."""

import numpy as np

from . import prepend_initial


def gbm_log_increments(drift: float, volatility: float, dt: float, shocks: np.ndarray) -> np.ndarray:
    """Per-step log increments (drift − ½σ²)·dt + σ·√dt·Z."""
    return (drift - 0.5 * volatility**2) * dt + volatility * np.sqrt(dt) * shocks


def simulate_gbm_path(
    initial_price: float,
    drift: float,
    volatility: float,
    dt: float,
    shocks,
) -> np.ndarray:
    """Generate a GBM path from pre-drawn shocks.

    S[t+1] = S[t] * exp((μ − ½σ²)·dt + σ·√dt·Z[t])

    Args:
        initial_price: Price at step 0.
        drift: Annualised arithmetic drift μ.
        volatility: Annualised volatility σ (zero gives a deterministic path).
        dt: Step size in years.
        shocks: Standard-normal shocks, last axis is the step axis.

    Returns:
        Array with one more entry than ``shocks`` along the last axis.
    """
    z = np.asarray(shocks, dtype=float)
    cumulative = np.cumsum(gbm_log_increments(drift, volatility, dt, z), axis=-1)
    return prepend_initial(initial_price, initial_price * np.exp(cumulative))

