"""Stop-loss / target barrier detection.

Pure computation on price paths; paths are never modified.

First-exit rule: when a path breaches both barriers, the barrier with the
lower step index is the exit. If both are breached at the same step the
stop-loss is the exit. ``first_exit`` and ``first_exit_masks`` are the only
places this rule is applied.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np


class ExitReason(str, Enum):
    STOP_LOSS = "stop_loss"
    TARGET = "target"


@dataclass(frozen=True)
class BarrierEvent:
    """Outcome of scanning one path against one barrier."""

    hit: bool
    step: int | None = None
    price: float | None = None


@dataclass
class BarrierScan:
    """Barrier outcomes for a batch of paths (one row per path)."""

    stop_hit: np.ndarray     # bool
    stop_step: np.ndarray    # int, meaningful where stop_hit
    target_hit: np.ndarray   # bool
    target_step: np.ndarray  # int, meaningful where target_hit
    has_stop_loss: bool
    has_target: bool

    def events(self, row: int, paths: np.ndarray) -> tuple[BarrierEvent | None, BarrierEvent | None]:
        """BarrierEvent pair for one row, matching ``check_barriers``."""
        return (
            _event(self.has_stop_loss, self.stop_hit[row], self.stop_step[row], paths[row]),
            _event(self.has_target, self.target_hit[row], self.target_step[row], paths[row]),
        )


def _event(configured: bool, hit: bool, step: int, path: np.ndarray) -> BarrierEvent | None:
    if not configured:
        return None
    if not hit:
        return BarrierEvent(hit=False)
    return BarrierEvent(hit=True, step=int(step), price=float(path[step]))


def _first_true(mask: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    hit = mask.any(axis=-1)
    step = np.where(hit, mask.argmax(axis=-1), 0)
    return hit, step


def scan_barriers(
    paths,
    stop_loss: float | None = None,
    target: float | None = None,
) -> BarrierScan:
    """Find the first index where price ≤ stop_loss and, independently, ≥ target.

    Args:
        paths: 2-D array, one path per row (index 0 is the initial price).
        stop_loss: Lower barrier, or None.
        target: Upper barrier, or None.
    """
    p = np.atleast_2d(np.asarray(paths, dtype=float))
    n = p.shape[0]
    no_hit = np.zeros(n, dtype=bool)
    no_step = np.zeros(n, dtype=np.int64)

    if stop_loss is not None:
        stop_hit, stop_step = _first_true(p <= stop_loss)
    else:
        stop_hit, stop_step = no_hit, no_step

    if target is not None:
        target_hit, target_step = _first_true(p >= target)
    else:
        target_hit, target_step = no_hit.copy(), no_step.copy()

    return BarrierScan(
        stop_hit=stop_hit,
        stop_step=stop_step,
        target_hit=target_hit,
        target_step=target_step,
        has_stop_loss=stop_loss is not None,
        has_target=target is not None,
    )


def check_barriers(
    path,
    stop_loss: float | None = None,
    target: float | None = None,
) -> tuple[BarrierEvent | None, BarrierEvent | None]:
    """Scan a single path for its first stop-loss and first target crossing.

    Both events are reported even when both barriers are breached; an unset
    barrier yields None rather than an event.

    Returns:
        (stop_loss_event, target_event)
    """
    p = np.asarray(path, dtype=float)
    scan = scan_barriers(p[np.newaxis, :], stop_loss, target)
    return scan.events(0, p[np.newaxis, :])


def first_exit(
    stop_event: BarrierEvent | None,
    target_event: BarrierEvent | None,
) -> ExitReason | None:
    """Which barrier ends the position first; stop-loss wins ties."""
    stop_step = stop_event.step if stop_event is not None and stop_event.hit else None
    target_step = target_event.step if target_event is not None and target_event.hit else None

    if stop_step is None and target_step is None:
        return None
    if target_step is None or (stop_step is not None and stop_step <= target_step):
        return ExitReason.STOP_LOSS
    return ExitReason.TARGET


def first_exit_masks(scan: BarrierScan) -> tuple[np.ndarray, np.ndarray]:
    """Vectorised ``first_exit``: (exited_on_stop_loss, exited_on_target)."""
    stop_first = scan.stop_hit & (~scan.target_hit | (scan.stop_step <= scan.target_step))
    target_first = scan.target_hit & (~scan.stop_hit | (scan.target_step < scan.stop_step))
    return stop_first, target_first
