"""GARCH(1,1) path-dependent volatility generation.

Each path evolves its own conditional variance:
  r[t]   = √v[t] · Z[t]
  v[t+1] = ω + α·r[t]² + β·v[t]
  S[t+1] = S[t] · exp(r[t])

Variance is per step, so ``dt`` does not enter the recursion. The initial
variance defaults to the unconditional level ω / (1 − α − β).
"""

import numpy as np

from . import prepend_initial


def unconditional_variance(omega: float, alpha: float, beta: float) -> float:
    return omega / (1.0 - alpha - beta)


def garch_recursion(
    shocks: np.ndarray,
    omega: float,
    alpha: float,
    beta: float,
    initial_variance: float | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Run the GARCH(1,1) recursion over the step axis.

    Returns:
        (log_returns, variances), both shaped like ``shocks``; ``variances[t]``
        is the conditional variance used at step t.
    """
    z = np.asarray(shocks, dtype=float)
    v0 = unconditional_variance(omega, alpha, beta) if initial_variance is None else initial_variance

    log_returns = np.empty(z.shape)
    variances = np.empty(z.shape)
    v = np.full(z.shape[:-1], v0, dtype=float)

    for t in range(z.shape[-1]):
        variances[..., t] = v
        r = np.sqrt(v) * z[..., t]
        log_returns[..., t] = r
        v = omega + alpha * r**2 + beta * v

    return log_returns, variances


def simulate_garch_path(
    initial_price: float,
    omega: float,
    alpha: float,
    beta: float,
    shocks: np.ndarray,
    initial_variance: float | None = None,
) -> np.ndarray:
    log_returns, _ = garch_recursion(shocks, omega, alpha, beta, initial_variance)
    cumulative = np.cumsum(log_returns, axis=-1)
    return prepend_initial(initial_price, initial_price * np.exp(cumulative))
