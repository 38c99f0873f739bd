"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from pathwise.schemas import parse_simulation_config


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def gbm_model():
    return {"model": "gbm", "drift": 0.05, "volatility": 0.2}


@pytest.fixture
def make_config(gbm_model):
    """Factory for validated-schema configs; overrides patch the defaults."""

    def _make(tickers=None, correlation_matrix=None, total_capital=100_000.0, **run):
        if tickers is None:
            tickers = [
                {"symbol": "AAA", "initial_price": 100.0, "weight": 0.5, "model_params": gbm_model},
                {"symbol": "BBB", "initial_price": 50.0, "weight": 0.5, "model_params": gbm_model},
            ]
        raw = {
            "version": 2,
            "horizon": 20,
            "num_paths": 200,
            "seed": 42,
            "use_antithetic": False,
            "dt": 1 / 252,
            "portfolio": {
                "tickers": tickers,
                "correlation_matrix": correlation_matrix,
                "total_capital": total_capital,
            },
        }
        raw.update(run)
        return parse_simulation_config(raw)

    return _make
