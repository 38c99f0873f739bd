"""Path generator: parameter validation and the single model dispatch."""

import math

import numpy as np

from pathwise.analysis.sim_models import AuxDraws, SimModel, as_shocks
from pathwise.analysis.sim_models.garch import simulate_garch_path
from pathwise.analysis.sim_models.gbm import simulate_gbm_path
from pathwise.analysis.sim_models.mean_reversion import simulate_mean_reversion_path
from pathwise.analysis.sim_models.merton import simulate_merton_path
from pathwise.analysis.sim_models.resample import simulate_resample_path
from pathwise.errors import InvalidParameter, ShapeMismatch
from pathwise.schemas import ModelParameters


def _require(condition: bool, model: str, message: str):
    if not condition:
        raise InvalidParameter(f"{model}: {message}")


def _require_finite(model: str, **values: float):
    for name, value in values.items():
        _require(math.isfinite(value), model, f"{name} must be finite, got {value}")


def validate_model_params(params: ModelParameters) -> None:
    """Check a model's invariants.

    Raises:
        InvalidParameter: naming the model and the violated constraint.
    """
    model = SimModel(params.model)

    if model == SimModel.GBM:
        _require_finite(model.value, drift=params.drift, volatility=params.volatility)
        _require(params.volatility >= 0.0, model.value, "volatility must be non-negative")

    elif model == SimModel.HISTORICAL_RESAMPLE:
        _require(len(params.returns) > 0, model.value, "return series must not be empty")
        _require(
            bool(np.all(np.isfinite(np.asarray(params.returns, dtype=float)))),
            model.value, "return series must be finite",
        )

    elif model == SimModel.MEAN_REVERSION:
        _require_finite(
            model.value, speed=params.speed,
            long_run_mean=params.long_run_mean, volatility=params.volatility,
        )
        _require(params.speed > 0.0, model.value, "speed must be positive")
        _require(params.volatility >= 0.0, model.value, "volatility must be non-negative")

    elif model == SimModel.JUMP_DIFFUSION:
        _require_finite(
            model.value, drift=params.drift, volatility=params.volatility,
            jump_intensity=params.jump_intensity, jump_mean=params.jump_mean,
            jump_volatility=params.jump_volatility,
        )
        _require(params.volatility >= 0.0, model.value, "volatility must be non-negative")
        _require(params.jump_intensity >= 0.0, model.value, "jump_intensity must be non-negative")
        _require(params.jump_volatility >= 0.0, model.value, "jump_volatility must be non-negative")

    elif model == SimModel.GARCH:
        _require_finite(model.value, omega=params.omega, alpha=params.alpha, beta=params.beta)
        _require(params.omega > 0.0, model.value, "omega must be positive")
        _require(params.alpha >= 0.0, model.value, "alpha must be non-negative")
        _require(params.beta >= 0.0, model.value, "beta must be non-negative")
        _require(
            params.alpha + params.beta < 1.0, model.value,
            f"stationarity requires alpha + beta < 1, got {params.alpha + params.beta}",
        )
        if params.initial_variance is not None:
            _require(
                math.isfinite(params.initial_variance) and params.initial_variance > 0.0,
                model.value, "initial_variance must be positive",
            )


def needs_aux(params: ModelParameters) -> bool:
    """Whether the model consumes auxiliary uniform/normal draws."""
    model = SimModel(params.model)
    if model == SimModel.HISTORICAL_RESAMPLE:
        return True
    if model == SimModel.JUMP_DIFFUSION:
        return params.jump_intensity > 0.0
    return False


def generate_path(
    params: ModelParameters,
    initial_price: float,
    step_count: int,
    dt: float,
    shocks,
    aux: AuxDraws | None = None,
    antithetic: bool = False,
) -> np.ndarray:
    """Produce one deterministic price path from pre-supplied shocks.

    Args:
        params: Tagged model parameters.
        initial_price: Price at index 0.
        step_count: Number of steps; ``shocks`` must have this many entries.
        dt: Step size in years.
        shocks: ``step_count`` standard-normal values.
        aux: Auxiliary draws, required when ``needs_aux(params)``.
        antithetic: Whether the run pairs paths with negated shocks.

    Returns:
        ``step_count + 1`` prices, index 0 is ``initial_price``.

    Raises:
        InvalidParameter: model invariants violated.
        ShapeMismatch: shock or auxiliary lengths differ from ``step_count``.
    """
    validate_model_params(params)
    z = as_shocks(shocks, step_count)

    if needs_aux(params):
        if aux is None:
            raise ShapeMismatch(f"{params.model} requires auxiliary draws")
        if np.shape(aux.uniform) != z.shape or np.shape(aux.normal) != z.shape:
            raise ShapeMismatch(
                f"auxiliary draws shaped {np.shape(aux.uniform)}/{np.shape(aux.normal)}, "
                f"expected {z.shape}"
            )

    model = SimModel(params.model)

    if model == SimModel.GBM:
        return simulate_gbm_path(initial_price, params.drift, params.volatility, dt, z)
    elif model == SimModel.HISTORICAL_RESAMPLE:
        return simulate_resample_path(
            initial_price, params.returns, z, aux.uniform, antithetic=antithetic,
        )
    elif model == SimModel.MEAN_REVERSION:
        return simulate_mean_reversion_path(
            initial_price, params.speed, params.long_run_mean, params.volatility, dt, z,
        )
    elif model == SimModel.JUMP_DIFFUSION:
        return simulate_merton_path(
            initial_price, params.drift, params.volatility,
            params.jump_intensity, params.jump_mean, params.jump_volatility, dt, z,
            uniforms=aux.uniform if aux is not None else None,
            normals=aux.normal if aux is not None else None,
        )
    elif model == SimModel.GARCH:
        return simulate_garch_path(
            initial_price, params.omega, params.alpha, params.beta, z,
            initial_variance=params.initial_variance,
        )
    raise InvalidParameter(f"Unknown model: {params.model}")
