"""Monte Carlo simulation orchestrator.

One run moves through
  CONFIGURED → VALIDATING → FACTORING → SIMULATING → AGGREGATING → COMPLETE
and any error moves it to FAILED. All validation happens before path work
starts; a failure in any path aborts the whole run.

Paths are simulated in chunks on a process pool. Each path's random stream
is derived from (seed, stream index) alone, and aggregation is an
order-independent merge, so results do not depend on worker count or
completion order.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum

import numpy as np

from pathwise.analysis.correlation import cholesky_factor, correlate, validate_correlation
from pathwise.analysis.sim_models import draw_aux
from pathwise.analysis.sim_models.generator import generate_path, needs_aux, validate_model_params
from pathwise.analysis.barrier import scan_barriers
from pathwise.analysis.statistics import (
    InstrumentAccumulator,
    PortfolioStats,
    calculate_portfolio_stats,
    portfolio_value_paths,
)
from pathwise.config import Settings
from pathwise.errors import InvalidParameter, NumericInstability
from pathwise.schemas import SimulationConfig, validate_portfolio

logger = logging.getLogger(__name__)

# Substream 0 carries the diffusion shocks; instrument i uses substream i + 1
# for its auxiliary draws.
SHOCK_SUBSTREAM = 0


class RunState(str, Enum):
    CONFIGURED = "configured"
    VALIDATING = "validating"
    FACTORING = "factoring"
    SIMULATING = "simulating"
    AGGREGATING = "aggregating"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class SimulationResult:
    stats: PortfolioStats
    paths: dict[str, np.ndarray]       # symbol -> (num_paths, horizon + 1)
    portfolio_values: np.ndarray       # (num_paths, horizon + 1)


@dataclass
class ChunkResult:
    start: int
    stop: int
    paths: dict[str, np.ndarray]
    accumulators: dict[str, InstrumentAccumulator]


# ---------------------------------------------------------------------------
# Deterministic random streams
# ---------------------------------------------------------------------------


def derive_rng(seed: int, stream_index: int, substream: int = SHOCK_SUBSTREAM) -> np.random.Generator:
    """Fresh generator for one (seed, stream, substream) triple.

    Uses SeedSequence spawn keys, so streams are independent and depend only
    on their own coordinates, never on a shared generator's history.
    """
    return np.random.default_rng(
        np.random.SeedSequence(entropy=seed, spawn_key=(stream_index, substream))
    )


def stream_for_path(path_index: int, antithetic: bool) -> tuple[int, float]:
    """(stream index, shock sign) for a stored path.

    With antithetic pairing, paths 2k and 2k+1 share stream k and path 2k+1
    uses the negated shocks.
    """
    if not antithetic:
        return path_index, 1.0
    return path_index // 2, -1.0 if path_index % 2 else 1.0


def chunk_bounds(num_paths: int, chunk_size: int) -> list[tuple[int, int]]:
    chunk_size = max(1, chunk_size)
    return [(start, min(start + chunk_size, num_paths)) for start in range(0, num_paths, chunk_size)]


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------


def simulate_chunk(
    config: SimulationConfig,
    factor: np.ndarray | None,
    start: int,
    stop: int,
) -> ChunkResult:
    """Simulate paths ``[start, stop)`` for every instrument.

    Picklable worker for ProcessPoolExecutor. Buffers are owned by this call
    and handed back in the result.

    Raises:
        NumericInstability: a generated path contains NaN or infinity.
    """
    instruments = config.portfolio.tickers
    steps = config.horizon
    antithetic = config.use_antithetic
    buffers = {inst.symbol: np.empty((stop - start, steps + 1)) for inst in instruments}

    for row, path_index in enumerate(range(start, stop)):
        stream, sign = stream_for_path(path_index, antithetic)
        rng = derive_rng(config.seed, stream)
        independent = rng.standard_normal((steps, len(instruments)))
        shocks = sign * correlate(factor, independent)

        for i, inst in enumerate(instruments):
            aux = None
            if needs_aux(inst.model_params):
                aux = draw_aux(derive_rng(config.seed, stream, i + 1), steps)

            path = generate_path(
                inst.model_params,
                inst.initial_price,
                steps,
                config.dt,
                np.ascontiguousarray(shocks[:, i]),
                aux=aux,
                antithetic=antithetic,
            )
            if not np.all(np.isfinite(path)):
                bad_step = int(np.argmin(np.isfinite(path)))
                raise NumericInstability(
                    f"Non-finite price for {inst.symbol} on path {path_index} at step {bad_step}",
                    symbol=inst.symbol,
                    path_index=path_index,
                )
            buffers[inst.symbol][row] = path

    accumulators = {}
    for inst in instruments:
        scan = scan_barriers(buffers[inst.symbol], inst.stop_loss, inst.target)
        accumulators[inst.symbol] = InstrumentAccumulator.from_paths(
            inst.symbol, buffers[inst.symbol], scan, start_index=start,
        )

    return ChunkResult(start=start, stop=stop, paths=buffers, accumulators=accumulators)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class SimulationRunner:
    """Drives one all-or-nothing simulation run."""

    def __init__(
        self,
        config: SimulationConfig,
        settings: Settings | None = None,
        max_workers: int | None = None,
    ):
        self.config = config
        self.settings = settings or Settings()
        self.max_workers = max_workers if max_workers is not None else self.settings.max_workers
        self.state = RunState.CONFIGURED
        self.history: list[RunState] = [RunState.CONFIGURED]
        self.error: Exception | None = None

    def _transition(self, state: RunState):
        logger.debug("Simulation run: %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _fail(self, error: Exception):
        self.error = error
        logger.error("Simulation run failed during %s: %s", self.state.value, error)
        self._transition(RunState.FAILED)

    def prepare(self) -> np.ndarray | None:
        """Validate the configuration and factor the correlation matrix.

        Returns:
            Cholesky factor, or None when instruments are independent.
        """
        if self.state != RunState.CONFIGURED:
            raise RuntimeError(f"Run already started (state: {self.state.value})")
        try:
            self._transition(RunState.VALIDATING)
            matrix = self._validate()
            self._transition(RunState.FACTORING)
            return cholesky_factor(matrix) if matrix is not None else None
        except Exception as e:
            self._fail(e)
            raise

    def _validate(self) -> np.ndarray | None:
        portfolio = self.config.portfolio
        validate_portfolio(portfolio, self.settings.weight_tolerance)

        for inst in portfolio.tickers:
            try:
                validate_model_params(inst.model_params)
            except InvalidParameter as e:
                raise InvalidParameter(f"{inst.symbol}: {e}") from e

        if portfolio.correlation_matrix is None:
            return None
        return validate_correlation(
            portfolio.correlation_matrix,
            size=len(portfolio.tickers),
            tolerance=self.settings.symmetry_tolerance,
        )

    def run(self) -> SimulationResult:
        factor = self.prepare()
        try:
            self._transition(RunState.SIMULATING)
            paths, accumulators = self._simulate(factor)

            self._transition(RunState.AGGREGATING)
            result = self._aggregate(paths, accumulators)
        except Exception as e:
            self._fail(e)
            raise

        self._transition(RunState.COMPLETE)
        logger.info(
            "Simulation complete: %d paths x %d instruments, mean return %.4f",
            self.config.num_paths, len(paths), result.stats.mean_return,
        )
        return result

    def _simulate(self, factor: np.ndarray | None):
        config = self.config
        instruments = config.portfolio.tickers
        bounds = chunk_bounds(config.num_paths, self.settings.paths_per_chunk)
        max_workers = max(1, min(self.max_workers, len(bounds)))

        logger.info(
            "Running simulation: %d paths, %d instruments, %d chunks on %d workers",
            config.num_paths, len(instruments), len(bounds), max_workers,
        )

        paths = {
            inst.symbol: np.empty((config.num_paths, config.horizon + 1))
            for inst in instruments
        }
        accumulators: dict[str, InstrumentAccumulator] = {}

        def collect(chunk: ChunkResult):
            for symbol, block in chunk.paths.items():
                paths[symbol][chunk.start:chunk.stop] = block
            for symbol, acc in chunk.accumulators.items():
                accumulators[symbol] = accumulators[symbol].merge(acc) if symbol in accumulators else acc

        if max_workers == 1:
            for start, stop in bounds:
                collect(simulate_chunk(config, factor, start, stop))
            return paths, accumulators

        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(simulate_chunk, config, factor, start, stop): (start, stop)
                for start, stop in bounds
            }
            try:
                for future in as_completed(futures):
                    collect(future.result())
            except Exception:
                for future in futures:
                    future.cancel()
                raise

        return paths, accumulators

    def _aggregate(self, paths, accumulators) -> SimulationResult:
        portfolio = self.config.portfolio
        instrument_stats = {
            inst.symbol: accumulators[inst.symbol].finalize() for inst in portfolio.tickers
        }
        values = portfolio_value_paths(paths, portfolio.tickers, portfolio.total_capital)
        stats = calculate_portfolio_stats(
            paths,
            portfolio.tickers,
            portfolio.total_capital,
            instrument_stats=instrument_stats,
            risk_free_rate=self.settings.risk_free_rate,
            values=values,
        )
        return SimulationResult(stats=stats, paths=paths, portfolio_values=values)


def run_simulation(
    config: SimulationConfig,
    settings: Settings | None = None,
    max_workers: int | None = None,
) -> SimulationResult:
    """Run a full simulation and return stats plus every generated path.

    Raises:
        ConfigValidationError: invalid weights, barriers, or model parameters.
        InvalidCorrelation: invalid or non-PSD correlation matrix.
        ShapeMismatch: correlation matrix size differs from instrument count.
        NumericInstability: a path produced NaN or infinity.
    """
    return SimulationRunner(config, settings=settings, max_workers=max_workers).run()
