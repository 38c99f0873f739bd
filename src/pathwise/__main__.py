import json
import logging
import sys

import click

from pathwise.config import Settings
from pathwise.errors import SimulationError
from pathwise.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _fmt(value: float | None, spec: str = ".4f") -> str:
    return "n/a" if value is None else format(value, spec)


RETURNS_OPTION = click.option(
    "--returns", "returns_path", type=click.Path(exists=True, dir_okay=False), default=None,
    help="JSON object of symbol -> historical log returns, for version 1 Bootstrap configs",
)


def _load(config_path: str, returns_path: str | None):
    from pathwise.schemas import load_config, load_returns

    historical_returns = load_returns(returns_path) if returns_path else None
    return load_config(config_path, historical_returns)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool):
    """Pathwise - correlated multi-asset Monte Carlo simulation"""
    setup_logging()
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--workers", "-w", type=int, default=None,
              help="Worker processes (default: PW_MAX_WORKERS)")
@click.option("--json", "as_json", is_flag=True, help="Print full statistics as JSON")
@RETURNS_OPTION
def run(config_path: str, workers: int | None, as_json: bool, returns_path: str | None):
    """Run a simulation from a JSON configuration file."""
    from pathwise.analysis.simulation import run_simulation

    settings = Settings()
    try:
        config = _load(config_path, returns_path)
        result = run_simulation(config, settings=settings, max_workers=workers)
    except SimulationError as e:
        logger.debug("Run failed", exc_info=True)
        click.echo(f"Simulation failed: {e}", err=True)
        sys.exit(1)

    stats = result.stats
    if as_json:
        click.echo(json.dumps(stats.to_dict(), indent=2))
        return

    click.echo(f"Paths: {stats.num_paths}  Horizon: {stats.horizon} steps")
    for symbol, inst in stats.instruments.items():
        click.echo(f"\n[{symbol}]")
        click.echo(f"  final price  mean {inst.mean_final_price:.4f}  "
                   f"median {inst.median_final_price:.4f}  std {inst.std_final_price:.4f}")
        click.echo(f"  stop-loss    prob {inst.prob_stop_loss:.4f}  "
                   f"mean step {_fmt(inst.mean_time_to_stop_loss, '.1f')}")
        click.echo(f"  target       prob {inst.prob_target:.4f}  "
                   f"mean step {_fmt(inst.mean_time_to_target, '.1f')}")
        click.echo(f"  paths        best #{inst.best_path_index}  worst #{inst.worst_path_index}  "
                   f"median #{inst.median_path_index}")

    click.echo("\n[portfolio]")
    click.echo(f"  return       mean {stats.mean_return:.4f}  median {stats.median_return:.4f}  "
               f"std {stats.std_return:.4f}  sharpe {stats.sharpe_ratio:.4f}")
    click.echo(f"  profit/loss  P(profit) {stats.prob_profit:.4f}  P(loss) {stats.prob_loss:.4f}  "
               f"mean profit {_fmt(stats.mean_profit)}  mean loss {_fmt(stats.mean_loss)}")
    click.echo(f"  tail risk    VaR95 {stats.var_95:.4f}  CVaR95 {stats.cvar_95:.4f}")


@cli.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@RETURNS_OPTION
def validate(config_path: str, returns_path: str | None):
    """Validate a configuration and its correlation matrix without simulating."""
    from pathwise.analysis.simulation import SimulationRunner

    try:
        config = _load(config_path, returns_path)
        SimulationRunner(config, settings=Settings()).prepare()
    except SimulationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"Configuration valid: {len(config.portfolio.tickers)} instruments, "
        f"{config.num_paths} paths x {config.horizon} steps."
    )


if __name__ == "__main__":
    cli()
