"""Pydantic schemas for simulation run configuration.

Structure and field types are enforced here. Cross-field rules (weight sum,
barrier ordering, model invariants, correlation validity) are checked by
``validate_portfolio`` and the analysis modules during a run's validation
stage, so every rule raises an error from ``pathwise.errors``.
"""

import json
import logging
import math
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from pathwise.errors import ConfigValidationError

logger = logging.getLogger(__name__)

CURRENT_VERSION = 2


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)


# --- Model parameter variants ---


class GbmParams(_Frozen):
    model: Literal["gbm"] = "gbm"
    drift: float
    volatility: float


class HistoricalResampleParams(_Frozen):
    model: Literal["historical_resample"] = "historical_resample"
    returns: list[float] = Field(description="Historical log returns, oldest first")


class MeanReversionParams(_Frozen):
    model: Literal["mean_reversion"] = "mean_reversion"
    speed: float
    long_run_mean: float
    volatility: float


class JumpDiffusionParams(_Frozen):
    model: Literal["jump_diffusion"] = "jump_diffusion"
    drift: float
    volatility: float
    jump_intensity: float = Field(description="Expected jumps per year")
    jump_mean: float = Field(description="Mean log jump size")
    jump_volatility: float = Field(description="Log jump size volatility")


class GarchParams(_Frozen):
    model: Literal["garch"] = "garch"
    omega: float
    alpha: float
    beta: float
    initial_variance: float | None = Field(
        None, description="Defaults to the unconditional variance omega/(1-alpha-beta)"
    )


ModelParameters = Annotated[
    Union[
        GbmParams,
        HistoricalResampleParams,
        MeanReversionParams,
        JumpDiffusionParams,
        GarchParams,
    ],
    Field(discriminator="model"),
]


# --- Portfolio ---


class InstrumentConfig(_Frozen):
    symbol: str = Field(min_length=1)
    initial_price: float = Field(gt=0)
    weight: float = Field(ge=0, le=1, description="Fraction of total capital")
    stop_loss: float | None = None
    target: float | None = None
    model_params: ModelParameters


class Portfolio(_Frozen):
    tickers: list[InstrumentConfig] = Field(min_length=1)
    correlation_matrix: list[list[float]] | None = Field(
        None, description="N x N, indexed in ticker order"
    )
    total_capital: float = Field(gt=0)

    @property
    def symbols(self) -> list[str]:
        return [t.symbol for t in self.tickers]


class SimulationConfig(_Frozen):
    version: int = CURRENT_VERSION
    horizon: int = Field(gt=0, description="Number of steps")
    num_paths: int = Field(gt=0)
    seed: int = Field(ge=0, lt=2**64)
    use_antithetic: bool = False
    dt: float = Field(gt=0)
    portfolio: Portfolio


# ---------------------------------------------------------------------------
# Cross-field validation
# ---------------------------------------------------------------------------


def validate_portfolio(portfolio: Portfolio, weight_tolerance: float = 1e-6) -> None:
    """Check weight sum, unique symbols and barrier ordering.

    Raises:
        ConfigValidationError: on the first violated rule.
    """
    symbols = portfolio.symbols
    if len(set(symbols)) != len(symbols):
        raise ConfigValidationError(f"Duplicate symbols in portfolio: {symbols}")

    weight_sum = math.fsum(t.weight for t in portfolio.tickers)
    if abs(weight_sum - 1.0) > weight_tolerance:
        raise ConfigValidationError(
            f"Portfolio weights must sum to 1.0 (±{weight_tolerance}), got {weight_sum:.6f}"
        )

    for t in portfolio.tickers:
        if t.stop_loss is not None and not t.stop_loss < t.initial_price:
            raise ConfigValidationError(
                f"{t.symbol}: stop_loss {t.stop_loss} must be below initial price {t.initial_price}"
            )
        if t.target is not None and not t.target > t.initial_price:
            raise ConfigValidationError(
                f"{t.symbol}: target {t.target} must be above initial price {t.initial_price}"
            )


# ---------------------------------------------------------------------------
# Parsing (version 1 promotion) and persistence
# ---------------------------------------------------------------------------

# Legacy single-ticker model blocks: model_type -> (params key, tag, field renames)
_LEGACY_MODELS: dict[str, tuple[str | None, str, dict[str, str]]] = {
    "GBM": ("gbm_params", "gbm", {"mu": "drift", "sigma": "volatility"}),
    "Bootstrap": (None, "historical_resample", {}),
    "MeanReversion": (
        "mean_reversion_params", "mean_reversion",
        {"theta": "speed", "mu_long_term": "long_run_mean", "sigma": "volatility"},
    ),
    "JumpDiffusion": (
        "jump_diffusion_params", "jump_diffusion",
        {
            "mu": "drift", "sigma": "volatility", "lambda": "jump_intensity",
            "mu_j": "jump_mean", "sigma_j": "jump_volatility",
        },
    ),
    "GARCH": ("garch_params", "garch", {}),
}

_V1_RUN_FIELDS = ("horizon", "num_paths", "seed", "use_antithetic", "dt")
_DEFAULT_V1_SYMBOL = "ASSET"


def _legacy_model_params(
    raw: dict[str, Any],
    symbol: str,
    historical_returns: dict[str, list[float]] | None,
) -> dict[str, Any]:
    model_type = raw.get("model_type")
    if model_type not in _LEGACY_MODELS:
        raise ConfigValidationError(f"Unknown model type: {model_type}")

    params_key, tag, renames = _LEGACY_MODELS[model_type]
    if params_key is None:
        returns = (historical_returns or {}).get(symbol)
        if returns is None:
            raise ConfigValidationError(
                f"Bootstrap model for {symbol} requires a historical return series"
            )
        return {"model": tag, "returns": list(returns)}

    block = raw.get(params_key)
    if block is None:
        raise ConfigValidationError(f"{model_type} parameters missing ({params_key})")
    if not isinstance(block, dict):
        raise ConfigValidationError(f"{model_type} parameters ({params_key}) must be an object")
    return {"model": tag, **{renames.get(k, k): v for k, v in block.items()}}


def _promote_v1(
    raw: dict[str, Any],
    historical_returns: dict[str, list[float]] | None,
) -> dict[str, Any]:
    """Wrap a single-ticker version 1 payload into a one-element portfolio."""
    symbol = raw.get("symbol") or _DEFAULT_V1_SYMBOL
    if not isinstance(symbol, str):
        raise ConfigValidationError(f"symbol must be a string, got {type(symbol).__name__}")

    if "model_params" in raw:
        model_params = raw["model_params"]
    else:
        model_params = _legacy_model_params(raw, symbol, historical_returns)

    initial_price = raw.get("initial_price")
    ticker = {
        "symbol": symbol,
        "initial_price": initial_price,
        "weight": 1.0,
        "stop_loss": raw.get("stop_loss"),
        "target": raw.get("target"),
        "model_params": model_params,
    }
    promoted = {k: raw[k] for k in _V1_RUN_FIELDS if k in raw}
    promoted["version"] = CURRENT_VERSION
    promoted["portfolio"] = {
        "tickers": [ticker],
        "correlation_matrix": None,
        "total_capital": raw.get("total_capital", initial_price),
    }
    logger.debug("Promoted version 1 config for %s to a single-ticker portfolio", symbol)
    return promoted


def parse_simulation_config(
    raw: dict[str, Any],
    historical_returns: dict[str, list[float]] | None = None,
) -> SimulationConfig:
    """Build a SimulationConfig from a decoded JSON payload.

    Args:
        raw: Decoded configuration. ``version`` 1 payloads are promoted.
        historical_returns: Parsed log-return series per symbol, used by
            legacy ``Bootstrap`` models.

    Raises:
        ConfigValidationError: on any structural problem.
    """
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"Configuration must be a JSON object, got {type(raw).__name__}")

    version = raw.get("version", CURRENT_VERSION)
    if version == 1:
        raw = _promote_v1(raw, historical_returns)
    elif version != CURRENT_VERSION:
        raise ConfigValidationError(f"Unsupported configuration version: {version}")

    try:
        return SimulationConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid simulation configuration: {e}") from e


def load_config(
    path: str | Path,
    historical_returns: dict[str, list[float]] | None = None,
) -> SimulationConfig:
    text = Path(path).read_text(encoding="utf-8")
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigValidationError(f"{path}: not valid JSON ({e})") from e
    return parse_simulation_config(raw, historical_returns)


_RETURNS_ADAPTER = TypeAdapter(dict[str, list[float]])


def load_returns(path: str | Path) -> dict[str, list[float]]:
    """Read a JSON object mapping symbol to its historical log-return series."""
    try:
        return _RETURNS_ADAPTER.validate_json(Path(path).read_bytes())
    except ValidationError as e:
        raise ConfigValidationError(f"{path}: invalid historical returns ({e})") from e


def save_config(config: SimulationConfig, path: str | Path) -> None:
    Path(path).write_text(config.model_dump_json(indent=2), encoding="utf-8")
