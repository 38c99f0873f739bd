"""Merton jump-diffusion path generation.

GBM diffusion + compound Poisson jumps in log space:
  log S[t+1] − log S[t] = (μ − ½σ²)dt + σ√dt·Z + Σ_{k≤N_t} J_k
  N_t ~ Poisson(λ·dt),  J_k ~ Normal(μ_j, σ_j)

The jump count is the Poisson inverse CDF of an auxiliary uniform. The sum
of N iid Normal(μ_j, σ_j) log sizes equals N·μ_j + √N·σ_j·W in law, so a
single auxiliary normal W per step carries all jump sizes for that step.
"""

import logging

import numpy as np

from . import prepend_initial
from .gbm import gbm_log_increments

logger = logging.getLogger(__name__)


def poisson_from_uniform(uniforms, rate: float) -> np.ndarray:
    """Invert the Poisson(rate) CDF at each uniform draw."""
    u = np.asarray(uniforms, dtype=float)
    counts = np.zeros(u.shape, dtype=np.int64)
    if rate <= 0.0:
        return counts

    prob = np.exp(-rate)
    cdf = prob
    k = 0
    max_k = int(rate + 20.0 * np.sqrt(rate) + 50)
    pending = u >= cdf
    while np.any(pending) and k < max_k:
        counts[pending] += 1
        k += 1
        prob *= rate / k
        cdf += prob
        pending = u >= cdf
    if np.any(pending):
        logger.debug("Poisson inversion truncated at %d jumps for rate %.4g", max_k, rate)
    return counts


def jump_log_sizes(
    counts: np.ndarray,
    jump_mean: float,
    jump_volatility: float,
    normals: np.ndarray,
) -> np.ndarray:
    """Total log jump per step given jump counts and one normal per step."""
    return counts * jump_mean + np.sqrt(counts) * jump_volatility * np.asarray(normals, dtype=float)


def simulate_merton_path(
    initial_price: float,
    drift: float,
    volatility: float,
    jump_intensity: float,
    jump_mean: float,
    jump_volatility: float,
    dt: float,
    shocks: np.ndarray,
    uniforms: np.ndarray | None = None,
    normals: np.ndarray | None = None,
) -> np.ndarray:
    """Generate a Merton jump-diffusion path.

    Args:
        initial_price: Price at step 0.
        drift: Annualised arithmetic drift of the diffusion.
        volatility: Annualised diffusion volatility.
        jump_intensity: Expected jumps per year (λ).
        jump_mean: Mean log jump size (μ_j).
        jump_volatility: Log jump size volatility (σ_j).
        dt: Step size in years.
        shocks: Diffusion shocks.
        uniforms: Auxiliary uniforms for jump counts; unused when λ = 0.
        normals: Auxiliary normals for jump sizes; unused when λ = 0.
    """
    z = np.asarray(shocks, dtype=float)
    log_inc = gbm_log_increments(drift, volatility, dt, z)

    if jump_intensity > 0.0:
        counts = poisson_from_uniform(uniforms, jump_intensity * dt)
        log_inc = log_inc + jump_log_sizes(counts, jump_mean, jump_volatility, normals)

    cumulative = np.cumsum(log_inc, axis=-1)
    return prepend_initial(initial_price, initial_price * np.exp(cumulative))
