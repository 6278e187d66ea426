"""Model parameters: preprocessing, fit parameter descriptors and defaults.

Parameter sets are plain ``Dict[str, float]`` keyed by symbol:

- phi, h, mu, B, Ct, q, rw: base reservoir/fluid properties
- kf, L, Lf, nf: permeability, well length, fracture half-length and count
- C, cD, S: wellbore storage (physical and dimensionless) and skin
- omega1, omega2, lambda1, lambda2, eta12, M12, rm, re: composite zones
- LfD, gammaD, n_seg, N: derived and numerical controls
"""

import math
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional

from .config import AnalysisDefaults
from .logging_config import get_logger
from .variants import Medium, ModelVariant

logger = get_logger(__name__)

ParameterSet = Dict[str, float]

BASE_FALLBACKS = {
    "phi": 0.05,
    "h": 20.0,
    "Ct": 5e-4,
    "mu": 0.5,
    "B": 1.05,
    "q": 5.0,
    "rw": 0.1,
}

DISPLAY_NAMES = {
    "phi": "Porosity",
    "h": "Thickness",
    "rw": "Wellbore radius",
    "mu": "Viscosity",
    "B": "Formation volume factor",
    "Ct": "Total compressibility",
    "q": "Rate",
    "kf": "Permeability",
    "M12": "Mobility ratio",
    "eta12": "Diffusivity ratio",
    "L": "Well length",
    "Lf": "Fracture half-length",
    "nf": "Fracture count",
    "rm": "Composite radius",
    "re": "Outer radius",
    "omega1": "Inner storativity ratio",
    "omega2": "Outer storativity ratio",
    "lambda1": "Inner interporosity coefficient",
    "lambda2": "Outer interporosity coefficient",
    "C": "Wellbore storage",
    "S": "Skin",
    "gammaD": "Permeability modulus",
    "LfD": "Dimensionless fracture length",
}

FRACTION_PARAMETERS = ("phi", "omega1", "omega2", "eta12")
POSITIVE_PARAMETERS = (
    "kf", "M12", "L", "Lf", "rm", "re", "lambda1", "lambda2",
    "h", "rw", "mu", "B", "Ct", "C", "q",
)


@dataclass
class FitParameter:
    """One parameter as seen by the fitter.

    Attributes:
        name: Parameter symbol
        value: Current value
        min: Lower bound (enforced while fitting)
        max: Upper bound (enforced while fitting)
        step: Suggested manual adjustment step
        is_fit: Whether the fitter varies this parameter
        is_visible: Whether the parameter is shown to the user
        display_name: Human-readable name
    """

    name: str
    value: float
    min: float = 0.0
    max: float = 0.0
    step: float = 0.0
    is_fit: bool = False
    is_visible: bool = True
    display_name: str = ""

    def __post_init__(self):
        if not self.display_name:
            self.display_name = DISPLAY_NAMES.get(self.name, self.name)

    @property
    def is_free(self) -> bool:
        """Fit flag set and not the display-only dimensionless length."""
        return self.is_fit and self.name != "LfD"

    def clamped(self, value: float) -> float:
        return min(max(value, self.min), self.max)


def parameter_map(params: List[FitParameter]) -> ParameterSet:
    """Name -> value mapping of a fit parameter list."""
    return {p.name: p.value for p in params}


def preprocess_parameters(
    raw: Mapping[str, float],
    variant: ModelVariant,
    defaults: Optional[AnalysisDefaults] = None,
) -> ParameterSet:
    """Map raw parameters to the solver's parameter set.

    Never fails on missing keys: base properties come from ``raw``, then
    ``defaults`` (if non-zero), then built-in fallbacks.

    Args:
        raw: Raw parameter mapping
        variant: Model variant (storage and boundary decide derived values)
        defaults: Session defaults

    Returns:
        New parameter set with LfD, cD, M12, re and nf filled in
    """
    defaults = defaults or AnalysisDefaults()
    processed: ParameterSet = dict(raw)

    for key, fallback in BASE_FALLBACKS.items():
        if key in raw:
            processed[key] = float(raw[key])
        elif abs(defaults.get(key)) > 1e-15:
            processed[key] = defaults.get(key)
        else:
            processed[key] = fallback

    L = float(processed.get("L", 0.0))
    if L < 1e-9:
        L = 1000.0
        processed["L"] = L
    processed["LfD"] = float(processed["Lf"]) / L if "Lf" in processed else 0.0

    if "M12" not in processed and "km" in processed:
        processed["M12"] = processed["km"]

    if variant.has_storage:
        if "C" in processed:
            denom = processed["phi"] * processed["h"] * processed["Ct"] * L * L
            processed["cD"] = 0.159 * processed["C"] / denom if denom > 1e-20 else 0.0
    else:
        processed["cD"] = 0.0
        processed["S"] = 0.0

    if not variant.is_infinite and "re" not in processed:
        processed["re"] = 20000.0

    if "nf" in processed:
        processed["nf"] = float(max(1, int(round(processed["nf"]))))

    return processed


def _zone_parameters(variant: ModelVariant) -> ParameterSet:
    values: ParameterSet = {}
    if variant.inner_medium is not Medium.HOMOGENEOUS:
        values.update(omega1=0.4, lambda1=1e-3)
    if variant.outer_medium is not Medium.HOMOGENEOUS:
        values.update(omega2=0.08, lambda2=1e-4)
    return values


def default_parameters(
    variant: ModelVariant, defaults: Optional[AnalysisDefaults] = None
) -> ParameterSet:
    """Solver-ready starting parameters for a variant."""
    defaults = defaults or AnalysisDefaults()
    params: ParameterSet = {
        key: defaults.get(key) or fallback for key, fallback in BASE_FALLBACKS.items()
    }
    params.update(
        L=defaults.L or 1000.0,
        nf=defaults.nf or 4.0,
        kf=1e-3,
        M12=10.0,
        eta12=1.0,
        Lf=10.0,
        rm=1500.0,
        gammaD=0.006,
    )
    params.update(_zone_parameters(variant))
    if variant.has_storage:
        params.update(cD=10.0, S=0.1)
    else:
        params.update(cD=0.0, S=0.0)
    if not variant.is_infinite:
        params["re"] = 20000.0
    params["LfD"] = params["Lf"] / params["L"]
    return params


def default_fit_keys(variant: ModelVariant) -> List[str]:
    """Names of the parameters fitted by default for a variant."""
    keys = ["kf", "M12", "eta12", "L", "Lf", "rm"]
    if not variant.is_infinite:
        keys.append("re")
    keys.extend(_zone_parameters(variant))
    if variant.has_storage:
        keys.extend(["C", "S"])
    return keys


def default_fit_parameters(variant: ModelVariant) -> List[FitParameter]:
    """Fit parameter list used to seed a fit, with limits already set."""
    params = [FitParameter(name, value) for name, value in BASE_FALLBACKS.items()]

    fitted: ParameterSet = {
        "kf": 1e-2,
        "M12": 10.0,
        "eta12": 0.2,
        "L": 1000.0,
        "Lf": 20.0,
        "rm": 1000.0,
    }
    if not variant.is_infinite:
        fitted["re"] = 20000.0
    fitted.update(_zone_parameters(variant))
    if variant.has_storage:
        fitted.update(C=0.01, S=0.01)
    params.extend(FitParameter(name, value, is_fit=True) for name, value in fitted.items())

    # Rounded during preprocessing, so it has no usable sensitivity.
    params.append(FitParameter("nf", 4.0))

    params.append(FitParameter("gammaD", 0.02))
    params.append(FitParameter("LfD", 0.02))
    return adjust_limits(params)


def _nice_step(lower: float, upper: float) -> float:
    span = upper - lower
    if span <= 1e-20:
        return 0.1
    raw_step = span / 20.0
    magnitude = 10.0 ** math.floor(math.log10(raw_step))
    normalized = max(round(raw_step / magnitude * 10.0) / 10.0, 0.1)
    return normalized * magnitude


def adjust_limits(params: List[FitParameter]) -> List[FitParameter]:
    """Derive min/max/step for every parameter from its current value.

    The range is [0.1x, 10x] of the value ([0, 1] for zero). Fractions are
    capped at 1, positive physical quantities keep a positive minimum, the
    fracture count gets integer bounds and zero skin gets [-5, 20].

    Returns:
        New list of FitParameter objects; ``LfD`` is passed through unchanged
    """
    adjusted = []
    for p in params:
        if p.name == "LfD":
            adjusted.append(replace(p))
            continue

        val = p.value
        if abs(val) > 1e-15:
            lower, upper = (val * 0.1, val * 10.0) if val > 0 else (val * 10.0, val * 0.1)
        else:
            lower, upper = 0.0, 1.0

        if p.name in FRACTION_PARAMETERS:
            upper = min(upper, 1.0)
            if lower < 0.0:
                lower = 1e-4

        if p.name in POSITIVE_PARAMETERS:
            if lower <= 0.0:
                lower = abs(val) * 0.01
            if lower <= 1e-20:
                lower = 1e-6

        if p.name == "nf":
            lower = math.ceil(max(lower, 1.0))
            upper = math.floor(upper)

        if p.name == "S" and abs(val) < 1e-9:
            lower, upper = -5.0, 20.0

        step = 1.0 if p.name == "nf" else _nice_step(lower, upper)
        adjusted.append(replace(p, min=float(lower), max=float(upper), step=step))
    return adjusted
