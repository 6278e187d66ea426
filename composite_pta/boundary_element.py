"""Boundary-element solution for a multiply-fractured horizontal well in a
two-zone radial composite reservoir, in Laplace space.

Each fracture is split into ``n_seg`` equal segments. Every segment row of
the linear system states that the pressure at the segment centre, built from
the line-source influence of all segments, equals the (unknown) bottom-hole
pressure. The last row is the rate constraint: the segment fluxes sum to the
unit well rate.

The inner-zone kernel is ``K0(g1 d) + Ac I0(g1 d)``, where ``Ac`` couples the
inner zone to the outer zone and the outer boundary through the composite
radius. ``I0`` is carried in exponentially scaled form to avoid overflow.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .config import SolverConfig
from .logging_config import get_logger
from .quadrature import adaptive_gauss
from .special_functions import bessel_i_scaled, bessel_k, safe_exp
from .variants import Boundary

logger = get_logger(__name__)

FRACTURE_SPAN = 0.9


@dataclass(frozen=True)
class CompositeGeometry:
    """Dimensionless geometry of the fractured well and the composite zones.

    Attributes:
        LfD: Fracture half-length over well length
        rmD: Composite radius over well length
        reD: Outer radius over well length
        M12: Inner/outer mobility ratio
        n_fracs: Number of fractures
        n_seg: Segments per fracture
    """

    LfD: float
    rmD: float
    reD: float
    M12: float = 1.0
    n_fracs: int = 1
    n_seg: int = 5

    @property
    def segment_length(self) -> float:
        return 2.0 * self.LfD / self.n_seg

    @property
    def spacing(self) -> float:
        return FRACTURE_SPAN / (self.n_fracs - 1) if self.n_fracs > 1 else 0.0

    @property
    def fracture_reach(self) -> float:
        """Distance from the well centre to the outermost fracture tip."""
        return float(np.hypot((self.n_fracs - 1) * self.spacing / 2.0, self.LfD))

    @property
    def fractures_inside_inner_zone(self) -> bool:
        return self.fracture_reach <= self.rmD

    def segment_centres(self) -> np.ndarray:
        """(n_fracs * n_seg, 2) array of segment centres, fracture-major."""
        start_x = -(self.n_fracs - 1) * self.spacing / 2.0
        seg_len = self.segment_length
        centres = [
            (start_x + k * self.spacing, -self.LfD + (i + 0.5) * seg_len)
            for k in range(self.n_fracs)
            for i in range(self.n_seg)
        ]
        return np.asarray(centres, dtype=float).reshape(-1, 2)


def boundary_correction(
    gamma2: float, rmD: float, reD: float, boundary: Boundary
) -> Tuple[float, float]:
    """Outer-boundary terms folded into the composite-radius coupling.

    Returns the pair multiplying the scaled ``I0`` and ``I1`` of the outer
    zone at the composite radius. Closed boundaries give a positive pair,
    constant-pressure boundaries a negative one, and an infinite boundary (or
    a vanishing outer radius) gives exactly (0, 0).
    """
    if boundary is Boundary.INFINITE or reD <= 1e-5:
        return 0.0, 0.0

    arg_re = gamma2 * reD
    arg_rm = gamma2 * rmD
    exp_factor = safe_exp(arg_rm - arg_re)
    i0_rm = bessel_i_scaled(0, arg_rm)
    i1_rm = bessel_i_scaled(1, arg_rm)

    if boundary is Boundary.CLOSED:
        i1_re = bessel_i_scaled(1, arg_re)
        if i1_re <= 1e-100:
            return 0.0, 0.0
        ratio = bessel_k(1, arg_re) / i1_re
    else:
        i0_re = bessel_i_scaled(0, arg_re)
        if i0_re <= 1e-100:
            return 0.0, 0.0
        ratio = -bessel_k(0, arg_re) / i0_re

    return ratio * i0_rm * exp_factor, ratio * i1_rm * exp_factor


def composite_coupling(
    gamma1: float, gamma2: float, geometry: CompositeGeometry, boundary: Boundary
) -> float:
    """Scaled coefficient ``Ac`` of the inner-zone ``I0`` kernel term."""
    arg_g1 = gamma1 * geometry.rmD
    arg_g2 = gamma2 * geometry.rmD
    corr_i0, corr_i1 = boundary_correction(gamma2, geometry.rmD, geometry.reD, boundary)

    term1 = corr_i0 + bessel_k(0, arg_g2)
    term2 = corr_i1 - bessel_k(1, arg_g2)

    m12 = geometry.M12
    up = m12 * gamma1 * bessel_k(1, arg_g1) * term1 + gamma2 * bessel_k(0, arg_g1) * term2
    down = (
        m12 * gamma1 * bessel_i_scaled(1, arg_g1) * term1
        - gamma2 * bessel_i_scaled(0, arg_g1) * term2
    )
    if abs(down) < 1e-100:
        down = 1e-100 if down >= 0 else -1e-100
    return up / down


class BoundaryElementSolver:
    """Dense boundary-element system for the bottom-hole pressure.

    Integrals depend only on the absolute centre offsets ``(|dx|, |dy|)``,
    so each distinct offset is integrated once per solve.

    Args:
        config: Quadrature tolerances, truncation factor and conditioning limit

    Attributes:
        ill_conditioned_count: Solves whose condition number exceeded
            ``config.max_condition``
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config or SolverConfig()
        self.ill_conditioned_count = 0
        self._lock = threading.Lock()

    def _kernel(self, gamma1: float, arg_g1_rm: float, ac: float, dx2: float, dy: float):
        def integrand(a: np.ndarray) -> np.ndarray:
            dist = np.sqrt(dx2 + (dy - a) ** 2)
            arg = gamma1 * dist
            return bessel_k(0, arg) + ac * bessel_i_scaled(0, arg) * safe_exp(arg - arg_g1_rm)

        return integrand

    def influence_matrix(
        self, gamma1: float, ac: float, geometry: CompositeGeometry
    ) -> np.ndarray:
        """Segment-to-segment influence block of the system matrix."""
        cfg = self.config
        centres = geometry.segment_centres()
        n = len(centres)
        seg_len = geometry.segment_length
        half_len = seg_len / 2.0
        effective_radius = cfg.effective_radius_factor / max(gamma1, 1e-10)
        self_limit = min(half_len, effective_radius)
        arg_g1_rm = gamma1 * geometry.rmD
        scale = geometry.M12 * 2.0 * geometry.LfD

        cache: Dict[Tuple[float, float], float] = {}
        block = np.zeros((n, n))

        for i in range(n):
            for j in range(i, n):
                dx = abs(centres[i, 0] - centres[j, 0])
                dy = abs(centres[i, 1] - centres[j, 1])
                if i != j and np.hypot(dx, dy) > effective_radius + half_len:
                    continue

                key = (round(dx, 12), round(dy, 12)) if i != j else (-1.0, -1.0)
                if key not in cache:
                    f = self._kernel(gamma1, arg_g1_rm, ac, dx * dx, dy)
                    if i == j:
                        val = 2.0 * adaptive_gauss(
                            f, 0.0, self_limit, cfg.self_tolerance, cfg.self_max_depth
                        )
                    elif dx < 1e-9 and dy < 1.5 * seg_len:
                        val = adaptive_gauss(
                            f, -half_len, half_len, cfg.near_tolerance, cfg.near_max_depth
                        )
                    else:
                        val = adaptive_gauss(
                            f, -half_len, half_len, cfg.far_tolerance, cfg.far_max_depth
                        )
                    cache[key] = val / scale

                block[i, j] = block[j, i] = cache[key]
        return block

    def assemble_system(
        self,
        z: float,
        fs1: float,
        fs2: float,
        geometry: CompositeGeometry,
        boundary: Boundary,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """System matrix and right-hand side at transform variable ``z``.

        The unknowns are the segment fluxes followed by the bottom-hole
        pressure.
        """
        gamma1 = np.sqrt(z * fs1)
        gamma2 = np.sqrt(z * fs2)
        ac = composite_coupling(gamma1, gamma2, geometry, boundary)

        n = geometry.n_fracs * geometry.n_seg
        a_mat = np.zeros((n + 1, n + 1))
        a_mat[:n, :n] = self.influence_matrix(gamma1, ac, geometry)
        a_mat[:n, n] = -1.0
        a_mat[n, :n] = z
        b_vec = np.zeros(n + 1)
        b_vec[n] = 1.0
        return a_mat, b_vec

    def bottomhole_pressure(
        self,
        z: float,
        fs1: float,
        fs2: float,
        geometry: CompositeGeometry,
        boundary: Boundary,
    ) -> float:
        """Laplace-space bottom-hole pressure at transform variable ``z``.

        Returns NaN when the system is non-finite or singular.
        """
        if not (np.isfinite(z * fs1) and np.isfinite(z * fs2)):
            logger.debug(f"Non-finite zone response at z={z:.4g}")
            return float("nan")

        a_mat, b_vec = self.assemble_system(z, fs1, fs2, geometry, boundary)

        if not np.all(np.isfinite(a_mat)):
            logger.debug(f"Non-finite boundary-element matrix at z={z:.4g}")
            return float("nan")

        try:
            solution = np.linalg.solve(a_mat, b_vec)
        except np.linalg.LinAlgError as e:
            logger.debug(f"Singular boundary-element matrix at z={z:.4g}: {e}")
            return float("nan")

        condition = np.linalg.cond(a_mat)
        if not condition < self.config.max_condition:
            with self._lock:
                self.ill_conditioned_count += 1
            logger.debug(
                f"Ill-conditioned boundary-element matrix at z={z:.4g} (cond={condition:.3g})"
            )

        return float(solution[-1])
