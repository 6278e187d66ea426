"""Adaptive Gauss-Legendre quadrature for segment influence integrals.

The integrands are vectorised: ``f`` receives an array of abscissae and
returns an array of values, so one 15-point rule costs one numpy call.
"""

from typing import Callable, Optional

import numpy as np

GAUSS_ORDER = 15
_NODES, _WEIGHTS = np.polynomial.legendre.leggauss(GAUSS_ORDER)

Integrand = Callable[[np.ndarray], np.ndarray]


def gauss15(f: Integrand, a: float, b: float) -> float:
    """Integrate ``f`` over [a, b] with a single 15-point Gauss-Legendre rule."""
    half = 0.5 * (b - a)
    center = 0.5 * (a + b)
    values = np.asarray(f(center + half * _NODES), dtype=float)
    return float(half * np.dot(_WEIGHTS, values))


def adaptive_gauss(
    f: Integrand,
    a: float,
    b: float,
    eps: float = 1e-6,
    max_depth: int = 8,
    depth: int = 0,
    whole: Optional[float] = None,
) -> float:
    """Recursive bisection on top of :func:`gauss15`.

    The interval is accepted once the one-panel and two-panel estimates agree
    to ``eps`` relative to ``|I| + 1``, or when ``max_depth`` is reached. The
    tolerance is halved at each bisection.

    Args:
        f: Vectorised integrand
        a: Lower limit
        b: Upper limit
        eps: Relative tolerance
        max_depth: Maximum bisection depth
        depth: Current depth (internal)
        whole: One-panel estimate over [a, b] already computed by the caller

    Returns:
        Integral estimate
    """
    if b == a:
        return 0.0
    c = 0.5 * (a + b)
    if whole is None:
        whole = gauss15(f, a, b)
    left = gauss15(f, a, c)
    right = gauss15(f, c, b)
    halves = left + right
    if depth >= max_depth or abs(whole - halves) < eps * (abs(halves) + 1.0):
        return halves
    return adaptive_gauss(f, a, c, eps / 2.0, max_depth, depth + 1, left) + adaptive_gauss(
        f, c, b, eps / 2.0, max_depth, depth + 1, right
    )
