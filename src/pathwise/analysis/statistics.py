"""Per-instrument and portfolio statistics over simulated paths.

Reductions are order-independent so that results do not depend on how
paths were split across workers:
- counts and hit-step totals are integers,
- extrema carry their path index and break ties on the lower index,
- floating-point sums use ``math.fsum`` (correctly rounded, so the result
  does not depend on summation order),
- medians and percentiles are taken over values ordered by path index.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any

import numpy as np

from pathwise.analysis.barrier import BarrierScan, first_exit_masks, scan_barriers
from pathwise.errors import ShapeMismatch
from pathwise.schemas import InstrumentConfig

logger = logging.getLogger(__name__)

VAR_PERCENTILE = 5.0
MIN_TAIL_PATHS = 2

# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class InstrumentStats:
    symbol: str
    num_paths: int
    mean_final_price: float
    median_final_price: float
    std_final_price: float       # population
    p5_final_price: float
    p25_final_price: float
    p75_final_price: float
    p95_final_price: float
    prob_stop_loss: float
    mean_time_to_stop_loss: float | None  # steps; None when no path hits
    prob_target: float
    mean_time_to_target: float | None
    prob_exit_stop_loss: float   # stop-loss reached first (wins ties)
    prob_exit_target: float
    best_path_index: int
    worst_path_index: int
    median_path_index: int


@dataclass
class PortfolioStats:
    instruments: dict[str, InstrumentStats]
    num_paths: int
    horizon: int
    mean_return: float
    median_return: float
    std_return: float            # population
    sharpe_ratio: float
    prob_profit: float
    prob_loss: float
    mean_profit: float | None    # mean return over profitable paths
    mean_loss: float | None      # mean return over losing paths
    var_95: float                # 5th percentile of returns
    cvar_95: float               # mean of returns at or below var_95
    p5_return: float
    p25_return: float
    p75_return: float
    p95_return: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Order-independent accumulation
# ---------------------------------------------------------------------------


def _pick_extreme(a: tuple[float, int] | None, b: tuple[float, int] | None, maximize: bool):
    """Choose between (value, index) candidates; lower index wins ties."""
    if a is None:
        return b
    if b is None:
        return a
    if a[0] == b[0]:
        return a if a[1] < b[1] else b
    if maximize:
        return a if a[0] > b[0] else b
    return a if a[0] < b[0] else b


@dataclass
class InstrumentAccumulator:
    """Partial per-instrument reduction over a subset of paths.

    ``merge`` is associative and commutative, so partials produced by any
    decomposition of the path set combine to the same ``finalize`` result.
    """

    symbol: str
    path_indices: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    final_prices: np.ndarray = field(default_factory=lambda: np.empty(0))
    stop_hits: int = 0
    stop_step_total: int = 0
    target_hits: int = 0
    target_step_total: int = 0
    stop_exits: int = 0
    target_exits: int = 0
    best: tuple[float, int] | None = None
    worst: tuple[float, int] | None = None

    @classmethod
    def from_paths(
        cls,
        symbol: str,
        paths: np.ndarray,
        scan: BarrierScan,
        start_index: int = 0,
    ) -> "InstrumentAccumulator":
        """Reduce a contiguous block of paths whose first row is ``start_index``."""
        p = np.atleast_2d(paths)
        finals = p[:, -1].astype(float)
        indices = np.arange(start_index, start_index + len(finals), dtype=np.int64)
        stop_first, target_first = first_exit_masks(scan)

        best = worst = None
        if len(finals):
            best = (float(finals[np.argmax(finals)]), int(indices[np.argmax(finals)]))
            worst = (float(finals[np.argmin(finals)]), int(indices[np.argmin(finals)]))

        return cls(
            symbol=symbol,
            path_indices=indices,
            final_prices=finals,
            stop_hits=int(scan.stop_hit.sum()),
            stop_step_total=int(scan.stop_step[scan.stop_hit].sum()),
            target_hits=int(scan.target_hit.sum()),
            target_step_total=int(scan.target_step[scan.target_hit].sum()),
            stop_exits=int(stop_first.sum()),
            target_exits=int(target_first.sum()),
            best=best,
            worst=worst,
        )

    def merge(self, other: "InstrumentAccumulator") -> "InstrumentAccumulator":
        if other.symbol != self.symbol:
            raise ShapeMismatch(f"Cannot merge {other.symbol} into {self.symbol}")
        return InstrumentAccumulator(
            symbol=self.symbol,
            path_indices=np.concatenate([self.path_indices, other.path_indices]),
            final_prices=np.concatenate([self.final_prices, other.final_prices]),
            stop_hits=self.stop_hits + other.stop_hits,
            stop_step_total=self.stop_step_total + other.stop_step_total,
            target_hits=self.target_hits + other.target_hits,
            target_step_total=self.target_step_total + other.target_step_total,
            stop_exits=self.stop_exits + other.stop_exits,
            target_exits=self.target_exits + other.target_exits,
            best=_pick_extreme(self.best, other.best, maximize=True),
            worst=_pick_extreme(self.worst, other.worst, maximize=False),
        )

    def finalize(self) -> InstrumentStats:
        n = len(self.final_prices)
        if n == 0:
            raise ShapeMismatch(f"No paths accumulated for {self.symbol}")

        order = np.argsort(self.path_indices, kind="stable")
        indices = self.path_indices[order]
        if np.any(np.diff(indices) == 0):
            raise ShapeMismatch(f"Duplicate path indices accumulated for {self.symbol}")
        finals = self.final_prices[order]

        mean = math.fsum(finals) / n
        std = math.sqrt(math.fsum((finals - mean) ** 2) / n)
        median = float(np.median(finals))
        p5, p25, p75, p95 = (float(v) for v in np.percentile(finals, [5, 25, 75, 95]))
        median_idx = int(indices[np.argmin(np.abs(finals - median))])

        return InstrumentStats(
            symbol=self.symbol,
            num_paths=n,
            mean_final_price=mean,
            median_final_price=median,
            std_final_price=std,
            p5_final_price=p5,
            p25_final_price=p25,
            p75_final_price=p75,
            p95_final_price=p95,
            prob_stop_loss=self.stop_hits / n,
            mean_time_to_stop_loss=self.stop_step_total / self.stop_hits if self.stop_hits else None,
            prob_target=self.target_hits / n,
            mean_time_to_target=self.target_step_total / self.target_hits if self.target_hits else None,
            prob_exit_stop_loss=self.stop_exits / n,
            prob_exit_target=self.target_exits / n,
            best_path_index=self.best[1],
            worst_path_index=self.worst[1],
            median_path_index=median_idx,
        )


def calculate_instrument_stats(
    symbol: str,
    paths,
    stop_loss: float | None = None,
    target: float | None = None,
) -> InstrumentStats:
    """Reduce every path of one instrument into summary statistics.

    Args:
        symbol: Instrument identifier.
        paths: 2-D array, one path per row, final price in the last column.
        stop_loss: Lower barrier, or None.
        target: Upper barrier, or None.
    """
    p = np.atleast_2d(np.asarray(paths, dtype=float))
    scan = scan_barriers(p, stop_loss, target)
    return InstrumentAccumulator.from_paths(symbol, p, scan).finalize()


# ---------------------------------------------------------------------------
# Portfolio level
# ---------------------------------------------------------------------------


def portfolio_value_paths(
    paths: dict[str, np.ndarray],
    instruments: list[InstrumentConfig],
    total_capital: float,
) -> np.ndarray:
    """Portfolio value per path per step.

    V(t) = Σ capital_i · price_i(t) / initial_price_i,  capital_i = weight_i · total_capital

    Instruments are summed in configuration order.
    """
    values = None
    for inst in instruments:
        capital = inst.weight * total_capital
        contribution = capital * np.asarray(paths[inst.symbol], dtype=float) / inst.initial_price
        values = contribution if values is None else values + contribution
    return values


def summarize_returns(
    returns,
    risk_free_rate: float = 0.0,
) -> dict[str, float | None]:
    """Return-distribution statistics: moments, Sharpe, win/loss split, VaR/CVaR."""
    r = np.asarray(returns, dtype=float)
    n = len(r)
    if n == 0:
        raise ShapeMismatch("No returns to summarize")

    mean = math.fsum(r) / n
    std = math.sqrt(math.fsum((r - mean) ** 2) / n)
    sharpe = (mean - risk_free_rate) / std if std > 0.0 else 0.0

    profits = r[r > 0]
    losses = r[r < 0]

    var_95 = float(np.percentile(r, VAR_PERCENTILE))
    tail = r[r <= var_95]
    if len(tail) < MIN_TAIL_PATHS:
        logger.debug("CVaR tail holds %d path(s); reporting VaR", len(tail))
        cvar_95 = var_95
    else:
        cvar_95 = min(math.fsum(tail) / len(tail), var_95)

    p5, p25, p75, p95 = (float(v) for v in np.percentile(r, [5, 25, 75, 95]))

    return {
        "mean_return": mean,
        "median_return": float(np.median(r)),
        "std_return": std,
        "sharpe_ratio": sharpe,
        "prob_profit": len(profits) / n,
        "prob_loss": len(losses) / n,
        "mean_profit": math.fsum(profits) / len(profits) if len(profits) else None,
        "mean_loss": math.fsum(losses) / len(losses) if len(losses) else None,
        "var_95": var_95,
        "cvar_95": cvar_95,
        "p5_return": p5,
        "p25_return": p25,
        "p75_return": p75,
        "p95_return": p95,
    }


def calculate_portfolio_stats(
    paths: dict[str, np.ndarray],
    instruments: list[InstrumentConfig],
    total_capital: float,
    instrument_stats: dict[str, InstrumentStats] | None = None,
    risk_free_rate: float = 0.0,
    values: np.ndarray | None = None,
) -> PortfolioStats:
    """Portfolio-level statistics from full per-instrument path sets.

    Args:
        paths: symbol -> 2-D path array, rows in path-index order.
        instruments: Instrument configs in portfolio order.
        total_capital: Portfolio value at step 0.
        instrument_stats: Precomputed per-instrument stats; computed from
            ``paths`` when omitted.
        risk_free_rate: Rate over the simulated horizon used in the Sharpe ratio.
        values: Precomputed ``portfolio_value_paths`` output; computed from
            ``paths`` when omitted.
    """
    if instrument_stats is None:
        instrument_stats = {
            inst.symbol: calculate_instrument_stats(
                inst.symbol, paths[inst.symbol], inst.stop_loss, inst.target,
            )
            for inst in instruments
        }

    if values is None:
        values = portfolio_value_paths(paths, instruments, total_capital)
    returns = (values[:, -1] - total_capital) / total_capital

    return PortfolioStats(
        instruments=instrument_stats,
        num_paths=values.shape[0],
        horizon=values.shape[1] - 1,
        **summarize_returns(returns, risk_free_rate),
    )
