"""Interporosity transfer functions for the inner and outer zones.

References:
- Warren, J.E. and Root, P.J., "The Behavior of Naturally Fractured
  Reservoirs," SPE Journal, 1963.
- Satman, A., Eggenschwiler, M. and Ramey, H.J., "Interpretation of
  Injection Well Pressure Transient Data in Thermal Oil Recovery," 1980.
"""

from dataclasses import dataclass
from typing import Mapping, Tuple

from .variants import Medium, ModelVariant

DEFAULT_OMEGA1 = 0.4
DEFAULT_LAMBDA1 = 1e-3
DEFAULT_OMEGA2 = 0.08
DEFAULT_LAMBDA2 = 1e-4
DEFAULT_ETA12 = 0.2


def dual_porosity_response(u: float, omega: float, lam: float) -> float:
    """Pseudo-steady-state dual-porosity transfer function f(u).

    Returns 0 when the denominator vanishes.
    """
    one_minus = 1.0 - omega
    den = one_minus * u + lam
    if abs(den) < 1e-20:
        return 0.0
    return (omega * one_minus * u + lam) / den


def interlayer_response(u: float, omega: float, lam: float) -> float:
    return u * dual_porosity_response(u, omega, lam)


def medium_response(medium: Medium, u: float, omega: float, lam: float) -> float:
    """Transfer multiplier of one medium at Laplace variable ``u``."""
    if medium is Medium.DUAL_POROSITY:
        return dual_porosity_response(u, omega, lam)
    if medium is Medium.INTERLAYER:
        return interlayer_response(u, omega, lam)
    return 1.0


def _lookup(params: Mapping[str, float], key: str, legacy: str, default: float) -> float:
    if key in params:
        return float(params[key])
    return float(params.get(legacy, default))


@dataclass(frozen=True)
class ZoneProperties:
    """Storativity ratios, interporosity coefficients and diffusivity ratio."""

    omega1: float = DEFAULT_OMEGA1
    lambda1: float = DEFAULT_LAMBDA1
    omega2: float = DEFAULT_OMEGA2
    lambda2: float = DEFAULT_LAMBDA2
    eta12: float = DEFAULT_ETA12

    @classmethod
    def from_parameters(cls, params: Mapping[str, float]) -> "ZoneProperties":
        """Read zone properties, accepting the ``remda*`` and ``eta`` spellings."""
        return cls(
            omega1=float(params.get("omega1", DEFAULT_OMEGA1)),
            lambda1=_lookup(params, "lambda1", "remda1", DEFAULT_LAMBDA1),
            omega2=float(params.get("omega2", DEFAULT_OMEGA2)),
            lambda2=_lookup(params, "lambda2", "remda2", DEFAULT_LAMBDA2),
            eta12=_lookup(params, "eta12", "eta", DEFAULT_ETA12),
        )


def zone_responses(
    variant: ModelVariant, zones: ZoneProperties, z: float
) -> Tuple[float, float]:
    """Inner and outer transfer multipliers (fs1, fs2) at Laplace variable ``z``.

    The outer zone is evaluated at ``eta12 * z`` and rescaled by ``eta12``, so
    a homogeneous outer zone gives ``fs2 = eta12``.
    """
    fs1 = medium_response(variant.inner_medium, z, zones.omega1, zones.lambda1)
    fs2 = zones.eta12 * medium_response(
        variant.outer_medium, zones.eta12 * z, zones.omega2, zones.lambda2
    )
    return fs1, fs2
