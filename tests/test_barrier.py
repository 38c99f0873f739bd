"""Unit tests for stop-loss / target barrier detection."""

import numpy as np
import pytest

from pathwise.analysis.barrier import (
    BarrierEvent,
    ExitReason,
    check_barriers,
    first_exit,
    first_exit_masks,
    scan_barriers,
)


class TestCheckBarriers:
    def test_reports_first_crossings(self):
        path = [100, 98, 94, 96, 111, 90, 120]
        stop, target = check_barriers(path, stop_loss=95, target=110)
        assert stop == BarrierEvent(hit=True, step=2, price=94.0)
        assert target == BarrierEvent(hit=True, step=4, price=111.0)

    def test_thresholds_are_inclusive(self):
        stop, target = check_barriers([100, 95, 110], stop_loss=95, target=110)
        assert stop.step == 1
        assert target.step == 2

    def test_unset_thresholds_are_absent(self):
        assert check_barriers([100, 50, 200]) == (None, None)

    def test_configured_but_not_hit(self):
        stop, target = check_barriers([100, 101, 102], stop_loss=90, target=150)
        assert stop == BarrierEvent(hit=False)
        assert target == BarrierEvent(hit=False)

    def test_rising_path_never_hits_stop_below_start(self):
        rng = np.random.default_rng(5)
        for _ in range(50):
            start = rng.uniform(10, 1000)
            path = start + np.cumsum(np.concatenate([[0.0], rng.uniform(0.01, 5, 100)]))
            stop_loss = start * rng.uniform(0.1, 0.999)
            stop, _ = check_barriers(path, stop_loss=stop_loss)
            assert stop.hit is False

    def test_path_is_not_modified(self):
        path = np.array([100.0, 90.0, 120.0])
        check_barriers(path, stop_loss=95, target=110)
        np.testing.assert_array_equal(path, [100.0, 90.0, 120.0])


class TestScanBarriers:
    def test_matches_single_path_check(self):
        rng = np.random.default_rng(17)
        paths = 100 * np.exp(np.cumsum(rng.normal(0, 0.03, (40, 60)), axis=1))
        scan = scan_barriers(paths, stop_loss=90, target=112)
        for row in range(len(paths)):
            assert scan.events(row, paths) == check_barriers(paths[row], 90, 112)

    def test_unset_barrier_never_hits(self):
        scan = scan_barriers(np.array([[100, 1, 1000]]), stop_loss=None, target=None)
        assert not scan.stop_hit.any()
        assert not scan.target_hit.any()


class TestFirstExit:
    def test_no_hits(self):
        assert first_exit(BarrierEvent(hit=False), BarrierEvent(hit=False)) is None
        assert first_exit(None, None) is None

    def test_earlier_barrier_wins(self):
        assert first_exit(BarrierEvent(True, 3, 90.0), BarrierEvent(True, 7, 110.0)) == ExitReason.STOP_LOSS
        assert first_exit(BarrierEvent(True, 9, 90.0), BarrierEvent(True, 2, 110.0)) == ExitReason.TARGET

    def test_only_one_barrier_hit(self):
        assert first_exit(None, BarrierEvent(True, 4, 110.0)) == ExitReason.TARGET
        assert first_exit(BarrierEvent(True, 4, 90.0), BarrierEvent(False)) == ExitReason.STOP_LOSS

    @pytest.mark.parametrize("step", [0, 1, 17, 251])
    def test_stop_loss_wins_ties(self, step):
        stop = BarrierEvent(True, step, 90.0)
        target = BarrierEvent(True, step, 110.0)
        assert first_exit(stop, target) == ExitReason.STOP_LOSS

    def test_vectorised_rule_matches_scalar_rule(self):
        rng = np.random.default_rng(23)
        paths = 100 * np.exp(np.cumsum(rng.normal(0, 0.05, (300, 40)), axis=1))
        paths = np.vstack([paths, np.full(40, 100.0)])  # breaches both at step 0 when barriers meet
        for stop_loss, target in [(92, 108), (100, 100), (80, 130)]:
            scan = scan_barriers(paths, stop_loss, target)
            stop_first, target_first = first_exit_masks(scan)
            for row in range(len(paths)):
                reason = first_exit(*scan.events(row, paths))
                assert stop_first[row] == (reason == ExitReason.STOP_LOSS)
                assert target_first[row] == (reason == ExitReason.TARGET)
            assert not np.any(stop_first & target_first)
