"""Monte Carlo path generation models package.

Each model turns an externally supplied sequence of standard-normal shocks
into one deterministic price path:
- GBM: Geometric Brownian Motion (constant volatility)
- HISTORICAL_RESAMPLE: bootstrap of a stored log-return series
- MEAN_REVERSION: Ornstein-Uhlenbeck, Euler-Maruyama discretisation
- JUMP_DIFFUSION: Merton jump-diffusion
- GARCH: GARCH(1,1) path-dependent variance

Models never draw randomness themselves. Jump counts and resample indices
come from auxiliary draws that the caller derives from the same seeded stream.
"""

from enum import Enum
from typing import NamedTuple

import numpy as np

from pathwise.errors import ShapeMismatch


class SimModel(str, Enum):
    GBM = "gbm"
    HISTORICAL_RESAMPLE = "historical_resample"
    MEAN_REVERSION = "mean_reversion"
    JUMP_DIFFUSION = "jump_diffusion"
    GARCH = "garch"


class AuxDraws(NamedTuple):
    """Auxiliary per-step draws for models that need more than one shock."""
    uniform: np.ndarray  # U[0, 1), jump counts / resample indices
    normal: np.ndarray   # N(0, 1), jump sizes


def draw_aux(rng: np.random.Generator, step_count: int) -> AuxDraws:
    """Draw one auxiliary uniform and one normal per step from ``rng``."""
    return AuxDraws(
        uniform=rng.random(step_count),
        normal=rng.standard_normal(step_count),
    )


def as_shocks(shocks, step_count: int) -> np.ndarray:
    """Coerce shocks to a float array whose last axis has ``step_count`` entries."""
    z = np.asarray(shocks, dtype=float)
    if z.ndim == 0 or z.shape[-1] != step_count:
        raise ShapeMismatch(
            f"expected {step_count} shocks per path, got shape {z.shape}"
        )
    return z


def prepend_initial(initial_price: float, body: np.ndarray) -> np.ndarray:
    """Return ``body`` with the initial price inserted at step 0."""
    path = np.empty(body.shape[:-1] + (body.shape[-1] + 1,))
    path[..., 0] = initial_price
    path[..., 1:] = body
    return path


__all__ = ["SimModel", "AuxDraws", "draw_aux", "as_shocks", "prepend_initial"]
