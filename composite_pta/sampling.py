"""Log-time sampling of observed series.

Fitting cost grows with the number of observations, so the fitter works on
a log-spaced subset: either a fixed point budget over the whole record, or
explicit per-interval counts that emphasise chosen time regions.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TARGET_COUNT = 200
DUPLICATE_EPS = 1e-9


@dataclass(frozen=True)
class SamplingInterval:
    """Time window and number of log-spaced targets inside it."""

    start: float
    end: float
    count: int


def _log_targets(t_min: float, t_max: float, count: int) -> np.ndarray:
    if t_min <= 1e-10:
        t_min = 1e-4
    if count == 1:
        return np.array([t_min])
    return np.logspace(np.log10(t_min), np.log10(t_max), count)


def _closest_scan(t: np.ndarray, targets: np.ndarray, start: int, stop: int) -> List[int]:
    """Indices of the closest samples, walking [start, stop) only forward."""
    picked = []
    current = start
    for target in targets:
        best = current
        min_diff = np.inf
        while current < stop:
            diff = abs(t[current] - target)
            if diff < min_diff:
                min_diff = diff
                best = current
            else:
                break
            current += 1
        current = best
        picked.append(best)
    return picked


def _sort_and_merge(t: np.ndarray, indices: List[int]) -> np.ndarray:
    order = sorted(indices, key=lambda i: t[i])
    kept: List[int] = []
    for i in order:
        if kept and abs(t[i] - t[kept[-1]]) < DUPLICATE_EPS:
            continue
        kept.append(i)
    return np.asarray(kept, dtype=int)


def log_sample(
    time,
    pressure,
    derivative,
    intervals: Optional[Sequence[SamplingInterval]] = None,
    target_count: int = DEFAULT_TARGET_COUNT,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Reduce a sorted observed series to a log-spaced subset.

    For each log-uniform target time the closest sample is picked with a
    monotonic scan; the picks are then sorted and samples closer than 1e-9
    are merged. The result is deterministic for the same inputs.

    Args:
        time: Sorted observation times
        pressure: Pressure drop per time
        derivative: Derivative per time
        intervals: Custom intervals; None selects the default budget mode
        target_count: Point budget of the default mode

    Returns:
        (time, pressure, derivative) arrays of the subset
    """
    t = np.asarray(time, dtype=float)
    p = np.asarray(pressure, dtype=float)
    d = np.asarray(derivative, dtype=float)
    if not (len(t) == len(p) == len(d)):
        raise ValueError(
            f"Observed arrays differ in length: {len(t)}, {len(p)}, {len(d)}"
        )

    picked: List[int] = []
    if intervals is None:
        if len(t) <= target_count:
            return t.copy(), p.copy(), d.copy()
        targets = _log_targets(t[0], t[-1], target_count)
        picked = _closest_scan(t, targets, 0, len(t))
    else:
        active = [iv for iv in intervals if iv.count > 0]
        if not active:
            return t.copy(), p.copy(), d.copy()
        for interval in active:
            lo = int(np.searchsorted(t, interval.start, side="left"))
            hi = int(np.searchsorted(t, interval.end, side="right"))
            if lo >= len(t) or lo >= hi:
                logger.debug(f"No samples in interval [{interval.start}, {interval.end}]")
                continue
            targets = _log_targets(t[lo], t[hi - 1], int(interval.count))
            picked.extend(_closest_scan(t, targets, lo, hi))

    kept = _sort_and_merge(t, picked)
    if kept.size == 0:
        return np.zeros(0), np.zeros(0), np.zeros(0)
    return t[kept], p[kept], d[kept]


def default_intervals(
    t_min: float, t_max: float, n: int = 3, count: int = DEFAULT_TARGET_COUNT // 3
) -> List[SamplingInterval]:
    """Split [t_min, t_max] into ``n`` log-uniform intervals of ``count`` targets."""
    if t_min <= 1e-10:
        t_min = 1e-4
    if n < 1 or t_max <= t_min:
        return [SamplingInterval(t_min, max(t_min, t_max), count)]
    edges = np.logspace(np.log10(t_min), np.log10(t_max), n + 1)
    return [SamplingInterval(float(a), float(b), count) for a, b in zip(edges[:-1], edges[1:])]
