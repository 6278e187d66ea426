"""Observed pressure series and their preparation for fitting."""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .derivative import bourdet_derivative, smooth_derivative
from .logging_config import get_logger

logger = get_logger(__name__)

DRAWDOWN = "drawdown"
BUILDUP = "buildup"
TEST_TYPES = (DRAWDOWN, BUILDUP)


@dataclass
class ObservedSeries:
    """Observed time, pressure drop and derivative.

    Samples are kept in ascending time order.

    Attributes:
        time: Elapsed time (h), positive
        pressure: Pressure drop (MPa)
        derivative: Bourdet derivative of the pressure drop (MPa)
    """

    time: np.ndarray
    pressure: np.ndarray
    derivative: Optional[np.ndarray] = None

    def __post_init__(self):
        self.time = np.asarray(self.time, dtype=float)
        self.pressure = np.asarray(self.pressure, dtype=float)
        if self.derivative is None:
            self.derivative = np.zeros_like(self.time)
        self.derivative = np.asarray(self.derivative, dtype=float)
        if not (len(self.time) == len(self.pressure) == len(self.derivative)):
            raise ValueError(
                "Observed time, pressure and derivative must have equal lengths, got "
                f"{len(self.time)}, {len(self.pressure)}, {len(self.derivative)}"
            )
        if np.any(np.diff(self.time) < 0):
            order = np.argsort(self.time, kind="stable")
            self.time = self.time[order]
            self.pressure = self.pressure[order]
            self.derivative = self.derivative[order]

    def __len__(self) -> int:
        return len(self.time)

    @property
    def is_empty(self) -> bool:
        return len(self.time) == 0

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        time_col: str = "time",
        pressure_col: str = "pressure",
        derivative_col: Optional[str] = "derivative",
    ) -> "ObservedSeries":
        """Build a series from DataFrame columns.

        A missing derivative column is computed with the Bourdet method.
        """
        for col in (time_col, pressure_col):
            if col not in df.columns:
                raise ValueError(f"Column '{col}' not found in data")
        df = df.sort_values(time_col)
        t = df[time_col].to_numpy(dtype=float)
        p = df[pressure_col].to_numpy(dtype=float)
        if derivative_col is not None and derivative_col in df.columns:
            d = df[derivative_col].to_numpy(dtype=float)
        else:
            d = bourdet_derivative(t, p, 0.15)
        return cls(t, p, d)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"time": self.time, "pressure": self.pressure, "derivative": self.derivative}
        )


def compute_pressure_drop(
    pressure, test_type: str = DRAWDOWN, initial_pressure: float = 0.0
) -> np.ndarray:
    """Pressure drop of a drawdown (|pi - p|) or buildup (|p - p[0]|) test."""
    p = np.asarray(pressure, dtype=float)
    if test_type == DRAWDOWN:
        return np.abs(initial_pressure - p)
    if test_type == BUILDUP:
        if p.size == 0:
            return p.copy()
        return np.abs(p - p[0])
    raise ValueError(f"Unknown test type: {test_type}. Use one of {TEST_TYPES}")


def time_offset(time, auto: bool = True, offset: float = 1e-4) -> float:
    """Shift that makes every time positive on a log axis.

    In auto mode the shift is applied only when some time is <= 0: 10% of
    the smallest positive time, or ``offset`` when none is positive.
    """
    t = np.asarray(time, dtype=float)
    if not auto:
        return offset
    if t.size == 0 or np.all(t > 0):
        return 0.0
    positive = t[t > 0]
    if positive.size:
        return 0.1 * float(positive.min())
    return offset


def prepare_observed_series(
    time,
    pressure,
    test_type: str = DRAWDOWN,
    initial_pressure: float = 0.0,
    l_spacing: float = 0.15,
    smooth_span: int = 1,
    auto_offset: bool = True,
    offset: float = 1e-4,
) -> ObservedSeries:
    """Turn raw gauge time/pressure into a fit-ready ObservedSeries.

    Args:
        time: Elapsed time; negative values are rejected
        pressure: Gauge pressure
        test_type: 'drawdown' or 'buildup'
        initial_pressure: Initial reservoir pressure (drawdown only)
        l_spacing: Bourdet window
        smooth_span: Moving-average span applied to the derivative
        auto_offset: Shift times only when some are <= 0
        offset: Fixed shift (auto fallback, or the shift when not auto)

    Returns:
        ObservedSeries of shifted time, pressure drop and derivative
    """
    t = np.asarray(time, dtype=float)
    p = np.asarray(pressure, dtype=float)
    if t.shape != p.shape:
        raise ValueError(f"time and pressure lengths differ: {t.shape} vs {p.shape}")
    if np.any(t < 0):
        raise ValueError("Negative time values are not allowed")

    shift = time_offset(t, auto=auto_offset, offset=offset)
    if shift:
        logger.info(f"Shifting observed times by {shift:.4g}")
    t = t + shift

    drop = compute_pressure_drop(p, test_type, initial_pressure)
    if len(t) < 3:
        logger.warning(f"Only {len(t)} observed points; derivative may be meaningless")
    derivative = bourdet_derivative(t, drop, l_spacing)
    if smooth_span > 1:
        derivative = smooth_derivative(derivative, smooth_span)
    return ObservedSeries(t, drop, derivative)
