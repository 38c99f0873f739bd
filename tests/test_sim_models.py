"""Unit tests for individual path generation models."""

import numpy as np
import pytest

from pathwise.analysis.sim_models import AuxDraws, SimModel, draw_aux
from pathwise.analysis.sim_models.garch import garch_recursion, unconditional_variance
from pathwise.analysis.sim_models.generator import generate_path, needs_aux, validate_model_params
from pathwise.analysis.sim_models.merton import poisson_from_uniform
from pathwise.analysis.sim_models.resample import resample_indices
from pathwise.errors import InvalidParameter, ShapeMismatch
from pathwise.schemas import (
    GarchParams,
    GbmParams,
    HistoricalResampleParams,
    JumpDiffusionParams,
    MeanReversionParams,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

STEPS = 252
DT = 1 / 252
S0 = 100.0


@pytest.fixture
def shocks(rng):
    return rng.standard_normal(STEPS)


@pytest.fixture
def aux(rng):
    return draw_aux(rng, STEPS)


# ---------------------------------------------------------------------------
# Contract shared by every model
# ---------------------------------------------------------------------------

ALL_PARAMS = [
    GbmParams(drift=0.05, volatility=0.2),
    HistoricalResampleParams(returns=[0.01, -0.02, 0.005, 0.0, -0.01]),
    MeanReversionParams(speed=2.0, long_run_mean=110.0, volatility=5.0),
    JumpDiffusionParams(drift=0.05, volatility=0.2, jump_intensity=3.0,
                        jump_mean=-0.02, jump_volatility=0.05),
    GarchParams(omega=1e-5, alpha=0.08, beta=0.9),
]


class TestPathContract:
    @pytest.mark.parametrize("params", ALL_PARAMS, ids=lambda p: p.model)
    def test_path_length_and_initial_price(self, params, shocks, aux):
        path = generate_path(params, S0, STEPS, DT, shocks, aux=aux)
        assert path.shape == (STEPS + 1,)
        assert path[0] == S0
        assert np.all(np.isfinite(path))

    @pytest.mark.parametrize("params", ALL_PARAMS, ids=lambda p: p.model)
    def test_identical_shocks_reproduce_identical_paths(self, params, shocks, aux):
        p1 = generate_path(params, S0, STEPS, DT, shocks, aux=aux)
        p2 = generate_path(params, S0, STEPS, DT, shocks.copy(), aux=aux)
        np.testing.assert_array_equal(p1, p2)

    @pytest.mark.parametrize("params", ALL_PARAMS, ids=lambda p: p.model)
    def test_shock_length_mismatch(self, params, shocks, aux):
        with pytest.raises(ShapeMismatch):
            generate_path(params, S0, STEPS + 1, DT, shocks, aux=aux)

    def test_shocks_are_not_mutated(self, shocks):
        before = shocks.copy()
        generate_path(GbmParams(drift=0.1, volatility=0.3), S0, STEPS, DT, shocks)
        np.testing.assert_array_equal(shocks, before)

    def test_missing_aux_for_resample(self, shocks):
        with pytest.raises(ShapeMismatch):
            generate_path(ALL_PARAMS[1], S0, STEPS, DT, shocks)

    def test_aux_shape_mismatch(self, shocks, rng):
        bad = AuxDraws(uniform=rng.random(STEPS - 1), normal=rng.standard_normal(STEPS))
        with pytest.raises(ShapeMismatch):
            generate_path(ALL_PARAMS[3], S0, STEPS, DT, shocks, aux=bad)

    def test_batched_shocks(self, rng):
        z = rng.standard_normal((7, STEPS))
        paths = generate_path(GbmParams(drift=0.05, volatility=0.2), S0, STEPS, DT, z)
        assert paths.shape == (7, STEPS + 1)
        np.testing.assert_array_equal(paths[:, 0], S0)


# ---------------------------------------------------------------------------
# GBM Tests
# ---------------------------------------------------------------------------

class TestGBM:
    def test_zero_volatility_is_deterministic_growth(self, shocks):
        drift = 0.07
        path = generate_path(GbmParams(drift=drift, volatility=0.0), S0, STEPS, DT, shocks)
        t = np.arange(STEPS + 1) * DT
        np.testing.assert_allclose(path, S0 * np.exp(drift * t), rtol=1e-12)

    def test_single_step_formula(self):
        drift, vol, z = 0.1, 0.3, 1.5
        path = generate_path(GbmParams(drift=drift, volatility=vol), S0, 1, DT, [z])
        expected = S0 * np.exp((drift - 0.5 * vol**2) * DT + vol * np.sqrt(DT) * z)
        assert path[1] == pytest.approx(expected, rel=1e-14)

    def test_negative_volatility_rejected(self, shocks):
        with pytest.raises(InvalidParameter):
            generate_path(GbmParams(drift=0.05, volatility=-0.1), S0, STEPS, DT, shocks)

    def test_mean_terminal_price_matches_drift(self):
        rng = np.random.default_rng(7)
        z = rng.standard_normal((20000, STEPS))
        paths = generate_path(GbmParams(drift=0.05, volatility=0.2), S0, STEPS, DT, z)
        assert paths[:, -1].mean() / S0 == pytest.approx(np.exp(0.05), rel=0.01)


# ---------------------------------------------------------------------------
# Historical resample Tests
# ---------------------------------------------------------------------------

class TestHistoricalResample:
    def test_steps_are_drawn_from_series(self, shocks, aux):
        series = [0.01, -0.02, 0.03]
        path = generate_path(HistoricalResampleParams(returns=series), S0, STEPS, DT, shocks, aux=aux)
        log_steps = np.diff(np.log(path))
        for r in log_steps:
            assert min(abs(r - s) for s in series) < 1e-12

    def test_shocks_ignored_without_antithetic(self, shocks, aux):
        params = HistoricalResampleParams(returns=[0.01, -0.02, 0.03, 0.0])
        p1 = generate_path(params, S0, STEPS, DT, shocks, aux=aux)
        p2 = generate_path(params, S0, STEPS, DT, -shocks, aux=aux)
        np.testing.assert_array_equal(p1, p2)

    def test_antithetic_pair_mirrors_order_statistics(self, aux):
        series = [0.03, -0.02, 0.01, -0.04, 0.0]
        params = HistoricalResampleParams(returns=series)
        z = np.ones(STEPS)
        up = generate_path(params, S0, STEPS, DT, z, aux=aux, antithetic=True)
        down = generate_path(params, S0, STEPS, DT, -z, aux=aux, antithetic=True)
        ordered = np.sort(series)
        # mirrored picks k and n-1-k sum to ordered[k] + ordered[n-1-k] each step
        idx = resample_indices(aux.uniform, len(series))
        expected = ordered[idx] + ordered[len(series) - 1 - idx]
        np.testing.assert_allclose(np.diff(np.log(up)) + np.diff(np.log(down)), expected, atol=1e-12)

    def test_resample_indices_in_range(self):
        idx = resample_indices(np.array([0.0, 0.5, 0.999999999]), 4)
        np.testing.assert_array_equal(idx, [0, 2, 3])

    def test_empty_series_rejected(self, shocks, aux):
        with pytest.raises(InvalidParameter):
            generate_path(HistoricalResampleParams(returns=[]), S0, STEPS, DT, shocks, aux=aux)


# ---------------------------------------------------------------------------
# Mean reversion Tests
# ---------------------------------------------------------------------------

class TestMeanReversion:
    def test_zero_volatility_converges_to_mean(self, shocks):
        params = MeanReversionParams(speed=5.0, long_run_mean=120.0, volatility=0.0)
        path = generate_path(params, S0, STEPS, DT, shocks)
        assert np.all(np.diff(path) > 0)
        assert path[-1] == pytest.approx(120.0 - 20.0 * (1 - 5.0 * DT) ** STEPS, rel=1e-12)

    def test_euler_step(self):
        params = MeanReversionParams(speed=2.0, long_run_mean=90.0, volatility=4.0)
        path = generate_path(params, S0, 1, DT, [0.5])
        expected = S0 + 2.0 * (90.0 - S0) * DT + 4.0 * np.sqrt(DT) * 0.5
        assert path[1] == pytest.approx(expected, rel=1e-14)

    def test_non_positive_speed_rejected(self, shocks):
        with pytest.raises(InvalidParameter):
            generate_path(MeanReversionParams(speed=0.0, long_run_mean=100.0, volatility=1.0),
                          S0, STEPS, DT, shocks)


# ---------------------------------------------------------------------------
# Merton Tests
# ---------------------------------------------------------------------------

class TestJumpDiffusion:
    def test_zero_intensity_identical_to_gbm(self, shocks, aux):
        gbm = generate_path(GbmParams(drift=0.05, volatility=0.2), S0, STEPS, DT, shocks)
        merton = generate_path(
            JumpDiffusionParams(drift=0.05, volatility=0.2, jump_intensity=0.0,
                                jump_mean=-0.1, jump_volatility=0.3),
            S0, STEPS, DT, shocks, aux=aux,
        )
        np.testing.assert_array_equal(gbm, merton)

    def test_zero_intensity_needs_no_aux(self):
        params = JumpDiffusionParams(drift=0.05, volatility=0.2, jump_intensity=0.0,
                                     jump_mean=0.0, jump_volatility=0.1)
        assert not needs_aux(params)

    def test_jumps_shift_path_away_from_gbm(self, shocks, aux):
        gbm = generate_path(GbmParams(drift=0.05, volatility=0.2), S0, STEPS, DT, shocks)
        merton = generate_path(
            JumpDiffusionParams(drift=0.05, volatility=0.2, jump_intensity=50.0,
                                jump_mean=-0.05, jump_volatility=0.02),
            S0, STEPS, DT, shocks, aux=aux,
        )
        assert merton[-1] < gbm[-1]

    def test_poisson_from_uniform_inverse_cdf(self):
        rate = 0.5
        p0 = np.exp(-rate)
        p1 = p0 + rate * p0
        counts = poisson_from_uniform(np.array([0.0, p0 - 1e-9, p0 + 1e-9, p1 + 1e-9]), rate)
        np.testing.assert_array_equal(counts, [0, 0, 1, 2])

    def test_poisson_mean(self):
        u = np.random.default_rng(3).random(200_000)
        assert poisson_from_uniform(u, 0.3).mean() == pytest.approx(0.3, rel=0.02)

    def test_negative_intensity_rejected(self, shocks, aux):
        with pytest.raises(InvalidParameter):
            generate_path(
                JumpDiffusionParams(drift=0.0, volatility=0.2, jump_intensity=-1.0,
                                    jump_mean=0.0, jump_volatility=0.1),
                S0, STEPS, DT, shocks, aux=aux,
            )


# ---------------------------------------------------------------------------
# GARCH Tests
# ---------------------------------------------------------------------------

class TestGARCH:
    def test_constant_variance_without_arch_and_garch_terms(self, shocks):
        omega = 2e-4
        _, variances = garch_recursion(shocks, omega, 0.0, 0.0)
        np.testing.assert_array_equal(variances, np.full(STEPS, omega))

    def test_initial_variance_is_unconditional(self, shocks):
        _, variances = garch_recursion(shocks, 1e-5, 0.1, 0.85)
        assert variances[0] == pytest.approx(unconditional_variance(1e-5, 0.1, 0.85))

    def test_configured_initial_variance(self, shocks):
        _, variances = garch_recursion(shocks, 1e-5, 0.1, 0.85, initial_variance=4e-4)
        assert variances[0] == 4e-4

    def test_price_uses_conditional_returns(self, shocks):
        params = GarchParams(omega=1e-5, alpha=0.1, beta=0.85)
        path = generate_path(params, S0, STEPS, DT, shocks)
        log_returns, _ = garch_recursion(shocks, 1e-5, 0.1, 0.85)
        np.testing.assert_allclose(np.diff(np.log(path)), log_returns, atol=1e-12)

    @pytest.mark.parametrize("omega,alpha,beta", [
        (1e-5, 0.5, 0.5),      # alpha + beta == 1
        (1e-5, 0.3, 0.8),      # non-stationary
        (0.0, 0.1, 0.8),       # omega must be positive
        (1e-5, -0.1, 0.8),
        (1e-5, 0.1, -0.8),
    ])
    def test_invalid_parameters(self, omega, alpha, beta):
        with pytest.raises(InvalidParameter):
            validate_model_params(GarchParams(omega=omega, alpha=alpha, beta=beta))


class TestSimModelEnum:
    def test_every_variant_has_a_tag(self):
        assert {p.model for p in ALL_PARAMS} == {m.value for m in SimModel}
