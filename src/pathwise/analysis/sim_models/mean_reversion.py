"""Ornstein-Uhlenbeck mean-reverting price path generation.

Euler-Maruyama discretisation in price space:
  S[t+1] = S[t] + κ(θ − S[t])·dt + σ·√dt·Z[t]

Prices are not floored at zero; an aggressive σ relative to θ can produce
negative levels, which the process permits.
"""

import numpy as np


def simulate_mean_reversion_path(
    initial_price: float,
    speed: float,
    long_run_mean: float,
    volatility: float,
    dt: float,
    shocks: np.ndarray,
) -> np.ndarray:
    z = np.asarray(shocks, dtype=float)
    steps = z.shape[-1]
    diffusion = volatility * np.sqrt(dt)

    path = np.empty(z.shape[:-1] + (steps + 1,))
    path[..., 0] = initial_price

    for t in range(steps):
        prev = path[..., t]
        path[..., t + 1] = prev + speed * (long_run_mean - prev) * dt + diffusion * z[..., t]

    return path
