"""Overflow-guarded modified Bessel functions.

The boundary-element kernel evaluates K0/K1 and exponentially scaled I0/I1
over arguments that span many orders of magnitude. Large arguments are
mapped to their limiting values instead of letting scipy over/underflow:

- K_v(x) for x > 700 is returned as 0
- I_v(x) * exp(-x) for x > 600 uses the asymptotic 1 / sqrt(2 pi x)
"""

import numpy as np
from scipy import special

K_UNDERFLOW_ARG = 700.0
I_ASYMPTOTIC_ARG = 600.0
MIN_ARG = 1e-15


def bessel_k(order: int, x):
    """Modified Bessel function of the second kind, K_order(x).

    Arguments below 1e-15 are lifted to 1e-15 so that K0/K1 stay finite at
    the segment self-point. Arguments above 700 return 0.

    Args:
        order: Bessel order (0 or 1)
        x: Scalar or array argument

    Returns:
        float for scalar input, ndarray otherwise
    """
    x_arr = np.maximum(np.asarray(x, dtype=float), MIN_ARG)
    with np.errstate(over="ignore", under="ignore", invalid="ignore"):
        value = np.where(
            x_arr > K_UNDERFLOW_ARG,
            0.0,
            special.kv(order, np.minimum(x_arr, K_UNDERFLOW_ARG)),
        )
    value = np.where(np.isfinite(value), value, 0.0)
    if value.ndim == 0:
        return float(value)
    return value


def bessel_i_scaled(order: int, x):
    """Exponentially scaled modified Bessel function, I_order(|x|) * exp(-|x|).

    Args:
        order: Bessel order (0 or 1)
        x: Scalar or array argument

    Returns:
        float for scalar input, ndarray otherwise
    """
    x_arr = np.abs(np.asarray(x, dtype=float))
    with np.errstate(over="ignore", under="ignore", invalid="ignore", divide="ignore"):
        asymptotic = 1.0 / np.sqrt(2.0 * np.pi * np.maximum(x_arr, I_ASYMPTOTIC_ARG))
        value = np.where(
            x_arr > I_ASYMPTOTIC_ARG,
            asymptotic,
            special.ive(order, np.minimum(x_arr, I_ASYMPTOTIC_ARG)),
        )
    value = np.where(np.isfinite(value), value, 0.0)
    if value.ndim == 0:
        return float(value)
    return value


def safe_exp(exponent, floor: float = -700.0):
    """exp(exponent), or 0 where the exponent is at or below ``floor``."""
    e = np.asarray(exponent, dtype=float)
    with np.errstate(over="ignore"):
        value = np.where(e > floor, np.exp(np.maximum(e, floor)), 0.0)
    if value.ndim == 0:
        return float(value)
    return value
