"""Bourdet pressure derivative and derivative smoothing.

References:
- Bourdet, D., Ayoub, J.A. and Pirard, Y.M., "Use of Pressure Derivative in
  Well-Test Interpretation," SPE Formation Evaluation, 1989.
"""

from typing import Optional

import numpy as np

from .logging_config import get_logger

logger = get_logger(__name__)


def log_slope(t1: float, t2: float, p1: float, p2: float) -> float:
    """(p1 - p2) / (ln t1 - ln t2), or 0 for non-positive or coincident times."""
    if t1 <= 0 or t2 <= 0:
        return 0.0
    delta = np.log(t1) - np.log(t2)
    if abs(delta) < 1e-10:
        return 0.0
    return (p1 - p2) / delta


def _left_neighbour(log_t: np.ndarray, valid: np.ndarray, i: int, spacing: float) -> Optional[int]:
    if i <= 0 or not valid[i]:
        return None
    for j in range(i - 1, -1, -1):
        if valid[j] and log_t[i] - log_t[j] >= spacing:
            return j
    return None


def _right_neighbour(log_t: np.ndarray, valid: np.ndarray, i: int, spacing: float) -> Optional[int]:
    if i >= len(log_t) - 1 or not valid[i]:
        return None
    for k in range(i + 1, len(log_t)):
        if valid[k] and log_t[k] - log_t[i] >= spacing:
            return k
    return None


def bourdet_derivative(time, pressure, l_spacing: float = 0.1) -> np.ndarray:
    """Bourdet semi-log derivative dp / d(ln t).

    For each point the nearest neighbours at least ``l_spacing`` away in
    ln(t) on both sides are used, and the two slopes are averaged with
    weights given by the opposite log-distance. With a single neighbour the
    one-sided slope is used, and with none the adjacent-point difference.

    Args:
        time: Time values (non-positive times are never used as neighbours)
        pressure: Pressure (or pressure drop) values
        l_spacing: Smoothing window in natural-log units

    Returns:
        Non-negative derivative array, same length as ``time``

    Example:
        >>> t = np.logspace(-2, 2, 50)
        >>> d = bourdet_derivative(t, 2.0 * np.log(t))   # ~2.0 everywhere
    """
    t = np.asarray(time, dtype=float)
    p = np.asarray(pressure, dtype=float)
    if t.shape != p.shape:
        raise ValueError(f"time and pressure lengths differ: {t.shape} vs {p.shape}")

    n = len(t)
    derivative = np.zeros(n)
    valid = t > 0
    log_t = np.log(np.where(valid, t, 1.0))

    for i in range(n):
        left = _left_neighbour(log_t, valid, i, l_spacing)
        right = _right_neighbour(log_t, valid, i, l_spacing)

        if left is not None and right is not None:
            dx_left = log_t[i] - log_t[left]
            dx_right = log_t[right] - log_t[i]
            m_left = log_slope(t[i], t[left], p[i], p[left])
            m_right = log_slope(t[right], t[i], p[right], p[i])
            total = dx_left + dx_right
            value = (m_left * dx_right + m_right * dx_left) / total if total > 1e-12 else 0.0
        elif left is not None:
            value = log_slope(t[i], t[left], p[i], p[left])
        elif right is not None:
            value = log_slope(t[right], t[i], p[right], p[i])
        elif i > 0:
            value = log_slope(t[i], t[i - 1], p[i], p[i - 1])
        elif i < n - 1:
            value = log_slope(t[i + 1], t[i], p[i + 1], p[i])
        else:
            value = 0.0

        derivative[i] = abs(value)

    return derivative


def smooth_derivative(values, span: int = 1) -> np.ndarray:
    """Centred moving average; even spans are bumped to the next odd span.

    Windows shrink at the ends of the series.
    """
    data = np.asarray(values, dtype=float)
    if data.size == 0 or span <= 1:
        return data.copy()
    if span % 2 == 0:
        span += 1
    half = (span - 1) // 2

    cumulative = np.concatenate([[0.0], np.cumsum(data)])
    idx = np.arange(len(data))
    start = np.maximum(0, idx - half)
    end = np.minimum(len(data) - 1, idx + half)
    return (cumulative[end + 1] - cumulative[start]) / (end - start + 1)
