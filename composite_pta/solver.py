"""Theoretical pressure and derivative curves for composite-reservoir models.

The solver chains the zone transfer functions, the boundary-element
bottom-hole pressure, the wellbore storage/skin transform and Stehfest
inversion, then converts dimensionless results to field units:

    tD = 14.4 kf t / (phi mu Ct L^2)
    dp = 1.842e-3 q mu B / (kf h) * pD

Units: kf in D, t in h, mu in mPa.s, Ct in 1/MPa, L and h in m, q in m3/d,
pressure in MPa.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .boundary_element import BoundaryElementSolver, CompositeGeometry
from .config import SolverConfig
from .derivative import bourdet_derivative
from .logging_config import get_logger
from .media import ZoneProperties, zone_responses
from .stehfest import MAX_N, StehfestInverter
from .variants import ModelVariant
from .wellbore import apply_storage_and_skin

logger = get_logger(__name__)

TIME_FACTOR = 14.4
PRESSURE_FACTOR = 1.842e-3

SOLVER_DEFAULTS = {
    "phi": 0.05,
    "mu": 0.5,
    "B": 1.05,
    "Ct": 5e-4,
    "q": 5.0,
    "h": 20.0,
    "kf": 1e-3,
    "L": 1000.0,
    "Lf": 100.0,
    "rm": 500.0,
    "re": 20000.0,
    "M12": 1.0,
    "nf": 1.0,
}


@dataclass(frozen=True)
class CurveResult:
    """Theoretical (or fitted) curve.

    Attributes:
        time: Time (h)
        pressure: Pressure drop (MPa)
        derivative: Bourdet derivative (MPa)
    """

    time: np.ndarray
    pressure: np.ndarray
    derivative: np.ndarray

    def __len__(self) -> int:
        return len(self.time)

    @classmethod
    def zeros(cls, time) -> "CurveResult":
        t = np.asarray(time, dtype=float)
        return cls(t, np.zeros_like(t), np.zeros_like(t))

    def to_frame(self) -> pd.DataFrame:
        """Curve as a DataFrame with time, pressure and derivative columns."""
        return pd.DataFrame(
            {"time": self.time, "pressure": self.pressure, "derivative": self.derivative}
        )


def generate_log_time_steps(
    count: int = 100, start_exp: float = -3.0, end_exp: float = 3.0
) -> np.ndarray:
    """``count`` times spaced uniformly in log10 between 10^start and 10^end."""
    if count <= 0:
        return np.zeros(0)
    if count == 1:
        return np.array([10.0**start_exp])
    return np.logspace(start_exp, end_exp, count)


def _value(params: Mapping[str, float], key: str) -> float:
    return float(params.get(key, SOLVER_DEFAULTS[key]))


class ModelSolver:
    """Theoretical curves for any ModelVariant.

    Args:
        config: Numerical solver constants (default: SolverConfig())

    Example:
        >>> from composite_pta import ModelSolver, ModelVariant
        >>> solver = ModelSolver()
        >>> curve = solver.calculate_theoretical_curve(
        ...     ModelVariant(), {"kf": 1e-2, "Lf": 20.0, "nf": 2}, [0.1, 1.0, 10.0])
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config or SolverConfig()
        self.element_solver = BoundaryElementSolver(self.config)

    def geometry(self, params: Mapping[str, float]) -> CompositeGeometry:
        L = _value(params, "L")
        if L < 1e-9:
            L = 1000.0
        return CompositeGeometry(
            LfD=_value(params, "Lf") / L,
            rmD=_value(params, "rm") / L,
            reD=_value(params, "re") / L,
            M12=_value(params, "M12"),
            n_fracs=max(1, int(_value(params, "nf"))),
            n_seg=max(1, int(params.get("n_seg", self.config.default_n_seg))),
        )

    def laplace_function(
        self, variant: ModelVariant, params: Mapping[str, float]
    ) -> Callable[[float], float]:
        """Laplace-space wellbore pressure pwD(z) for a variant and parameters."""
        geometry = self.geometry(params)
        zones = ZoneProperties.from_parameters(params)
        cD = float(params.get("cD", 0.0))
        skin = float(params.get("S", 0.0))

        def pwd(z: float) -> float:
            fs1, fs2 = zone_responses(variant, zones, z)
            pf = self.element_solver.bottomhole_pressure(
                z, fs1, fs2, geometry, variant.boundary
            )
            if variant.has_storage:
                pf = apply_storage_and_skin(pf, z, cD, skin)
            return pf

        return pwd

    def inverter(self, variant: ModelVariant, params: Mapping[str, float]) -> StehfestInverter:
        max_n = self.config.max_stehfest_n_interlayer if variant.uses_interlayer else MAX_N
        return StehfestInverter(int(params.get("N", self.config.stehfest_n)), max_n=max_n)

    def dimensionless_pressure(
        self,
        variant: ModelVariant,
        params: Mapping[str, float],
        tD: Sequence[float],
        n_jobs: Optional[int] = None,
    ) -> np.ndarray:
        """pD at dimensionless times ``tD``."""
        gamma_d = float(params.get("gammaD", params.get("gamaD", 0.0)))
        return self.inverter(variant, params).invert(
            self.laplace_function(variant, params),
            tD,
            gamma_d=gamma_d,
            n_jobs=self.config.n_jobs if n_jobs is None else n_jobs,
        )

    def calculate_theoretical_curve(
        self,
        variant: ModelVariant,
        params: Mapping[str, float],
        time: Optional[Iterable[float]] = None,
        n_jobs: Optional[int] = None,
    ) -> CurveResult:
        """Pressure drop and derivative at ``time`` (default: 100 log steps).

        Invalid physical parameters give an all-zero curve instead of an
        error.

        Args:
            variant: Model variant
            params: Preprocessed parameter set
            time: Times (h), strictly increasing
            n_jobs: Worker threads for per-time inversion (default: config)

        Returns:
            CurveResult aligned with ``time``
        """
        t = generate_log_time_steps() if time is None else np.asarray(list(time), dtype=float)
        if t.size == 0:
            return CurveResult.zeros(t)

        phi, mu, Ct, kf = (_value(params, k) for k in ("phi", "mu", "Ct", "kf"))
        if min(phi, mu, Ct, kf) < 1e-12:
            logger.warning(
                f"Invalid physical parameters (phi={phi}, mu={mu}, Ct={Ct}, kf={kf}); "
                "returning zero curve"
            )
            return CurveResult.zeros(t)
        if _value(params, "Lf") <= 0 or _value(params, "M12") <= 0:
            logger.warning("Fracture half-length and mobility ratio must be positive")
            return CurveResult.zeros(t)

        geometry = self.geometry(params)
        if not geometry.fractures_inside_inner_zone:
            logger.warning(
                f"Outermost fracture tip at {geometry.fracture_reach:.4g} L lies outside "
                f"the composite radius {geometry.rmD:.4g} L; the curve may be unreliable"
            )

        L = _value(params, "L")
        if L < 1e-9:
            L = 1000.0
        tD = TIME_FACTOR * kf / (phi * mu * Ct * L**2) * t

        pD = self.dimensionless_pressure(variant, params, tD, n_jobs)
        if len(tD) > 2:
            dD = bourdet_derivative(tD, pD, self.config.derivative_l_spacing)
        else:
            dD = np.zeros_like(pD)

        scale = PRESSURE_FACTOR * _value(params, "q") * mu * _value(params, "B") / (
            kf * _value(params, "h")
        )
        return CurveResult(t, scale * pD, scale * dD)

    def sensitivity_curves(
        self,
        variant: ModelVariant,
        params: Mapping[str, float],
        key: str,
        values: Iterable[float],
        time: Optional[Iterable[float]] = None,
    ) -> List[CurveResult]:
        """One curve per value of parameter ``key``, all else held fixed."""
        t = None if time is None else np.asarray(list(time), dtype=float)
        curves = []
        for value in values:
            varied = dict(params)
            varied[key] = float(value)
            if key in ("L", "Lf") and "Lf" in varied:
                varied["LfD"] = varied["Lf"] / (varied.get("L") or 1000.0)
            logger.debug(f"Sensitivity run {key}={value}")
            curves.append(self.calculate_theoretical_curve(variant, varied, t))
        return curves


def calculate_theoretical_curve(
    variant: ModelVariant,
    params: Mapping[str, float],
    time: Optional[Iterable[float]] = None,
    config: Optional[SolverConfig] = None,
) -> CurveResult:
    """Convenience wrapper around :meth:`ModelSolver.calculate_theoretical_curve`."""
    return ModelSolver(config).calculate_theoretical_curve(variant, params, time)
