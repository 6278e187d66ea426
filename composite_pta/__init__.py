"""Pressure-transient analysis for fractured horizontal wells in radial
composite reservoirs.

Keep top-level imports lightweight; the solver and fitter are loaded on
first access.
"""

from .logging_config import configure_logging, get_logger
from .variants import Boundary, Medium, ModelVariant, Storage, all_variants

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "configure_logging",
    "get_logger",
    "Boundary",
    "Medium",
    "ModelVariant",
    "Storage",
    "all_variants",
    "ModelSolver",
    "CurveResult",
    "calculate_theoretical_curve",
    "LevenbergMarquardtFitter",
    "FitParameter",
    "bourdet_derivative",
    "log_sample",
]

_LAZY = {
    "ModelSolver": "solver",
    "CurveResult": "solver",
    "calculate_theoretical_curve": "solver",
    "LevenbergMarquardtFitter": "fitting",
    "FitParameter": "parameters",
    "bourdet_derivative": "derivative",
    "log_sample": "sampling",
}


def __getattr__(name: str):
    """Lazily expose the engine entry points."""
    if name in _LAZY:
        from importlib import import_module

        module = import_module(f".{_LAZY[name]}", __name__)
        return getattr(module, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
