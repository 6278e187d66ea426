"""Stehfest numerical Laplace inversion.

References:
- Stehfest, H., "Algorithm 368: Numerical Inversion of Laplace Transforms,"
  Communications of the ACM, 1970.
"""

from functools import lru_cache
from math import factorial, log
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed

from .logging_config import get_logger

logger = get_logger(__name__)

LN2 = log(2.0)
DEFAULT_N = 10
MIN_N = 4
MAX_N = 18

LaplaceFunction = Callable[[float], float]


def validate_order(n: int, max_n: int = MAX_N) -> int:
    """Return ``n`` if it is an even order in [4, max_n], otherwise 10."""
    n = int(n)
    if n < MIN_N or n > max_n or n % 2 != 0:
        logger.debug(f"Stehfest order {n} outside [{MIN_N}, {max_n}], using {DEFAULT_N}")
        return DEFAULT_N
    return n


@lru_cache(maxsize=None)
def stehfest_coefficients(n: int) -> Tuple[float, ...]:
    """Stehfest weights V_1..V_n for an even order ``n``."""
    half = n // 2
    coeffs = []
    for i in range(1, n + 1):
        s = 0.0
        for k in range((i + 1) // 2, min(i, half) + 1):
            num = float(k) ** half * factorial(2 * k)
            den = (
                factorial(half - k)
                * factorial(k)
                * factorial(k - 1)
                * factorial(i - k)
                * factorial(2 * k - i)
            )
            s += num / den
        sign = 1.0 if (i + half) % 2 == 0 else -1.0
        coeffs.append(sign * s)
    return tuple(coeffs)


def pressure_sensitivity_correction(pd: float, gamma_d: float) -> float:
    """Permeability-modulus correction p = -ln(1 - gammaD p) / gammaD."""
    if abs(gamma_d) <= 1e-9:
        return pd
    arg = 1.0 - gamma_d * pd
    if arg > 1e-12:
        return -log(arg) / gamma_d
    return pd


class StehfestInverter:
    """Invert a Laplace-space function at a set of real times.

    Args:
        n: Stehfest order (even, 4-18; anything else falls back to 10)
        max_n: Upper bound accepted for ``n``
    """

    def __init__(self, n: int = DEFAULT_N, max_n: int = MAX_N):
        self.n = validate_order(n, max_n)
        self.coefficients = np.asarray(stehfest_coefficients(self.n))

    def invert_point(self, func: LaplaceFunction, t: float, gamma_d: float = 0.0) -> float:
        """Real-time value at a single time ``t``."""
        if t <= 1e-10:
            return 0.0
        total = 0.0
        for i, coeff in enumerate(self.coefficients, start=1):
            value = func(i * LN2 / t)
            if not np.isfinite(value):
                value = 0.0
            total += coeff * value
        return pressure_sensitivity_correction(total * LN2 / t, gamma_d)

    def invert(
        self,
        func: LaplaceFunction,
        times: Sequence[float],
        gamma_d: float = 0.0,
        n_jobs: Optional[int] = 1,
    ) -> np.ndarray:
        """Real-time values at every time in ``times``.

        Time points are independent; with ``n_jobs != 1`` they are evaluated
        on joblib worker threads.
        """
        times = np.asarray(times, dtype=float)
        if times.size == 0:
            return np.zeros(0)
        if n_jobs is None or n_jobs == 1 or times.size == 1:
            values = [self.invert_point(func, t, gamma_d) for t in times]
        else:
            values = Parallel(n_jobs=n_jobs, prefer="threads")(
                delayed(self.invert_point)(func, t, gamma_d) for t in times
            )
        return np.asarray(values, dtype=float)
