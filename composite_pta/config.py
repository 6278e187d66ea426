"""Configuration file support for analysis sessions.

This module provides TOML and YAML configuration file parsing for
pressure-transient analysis sessions: project-wide default parameters,
numerical solver constants, fitting controls and sampling intervals.
"""

import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli_w
import yaml

from .logging_config import get_logger

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = get_logger(__name__)


@dataclass
class AnalysisDefaults:
    """Project-wide physical defaults used to fill missing parameters.

    Attributes:
        phi: Porosity (fraction)
        h: Net thickness (m)
        mu: Viscosity (mPa.s)
        B: Formation volume factor
        Ct: Total compressibility (1/MPa)
        q: Test rate (m3/d)
        rw: Wellbore radius (m)
        L: Horizontal well length (m)
        nf: Number of fractures
    """

    phi: float = 0.05
    h: float = 20.0
    mu: float = 0.5
    B: float = 1.05
    Ct: float = 5e-4
    q: float = 5.0
    rw: float = 0.1
    L: float = 1000.0
    nf: float = 4.0

    def get(self, key: str, default: float = 0.0) -> float:
        """Value of ``key`` or ``default`` when this object has no such field."""
        return float(getattr(self, key, default))


@dataclass
class SolverConfig:
    """Numerical constants of the Laplace-domain solver.

    The effective-radius factor and quadrature tolerances are empirical; they
    are exposed here rather than derived.

    Attributes:
        stehfest_n: Stehfest order (even, 4-18)
        max_stehfest_n_interlayer: Upper Stehfest order for interlayer variants
        derivative_l_spacing: Bourdet smoothing window for model curves
        default_n_seg: Segments per fracture when not given
        effective_radius_factor: Integration cut-off radius is factor / gamma1
        self_tolerance: Quadrature tolerance of segment self-influence
        self_max_depth: Bisection depth of segment self-influence
        near_tolerance: Tolerance for neighbouring segments of one fracture
        near_max_depth: Depth for neighbouring segments of one fracture
        far_tolerance: Tolerance for all other segment pairs
        far_max_depth: Depth for all other segment pairs
        max_condition: Condition number above which a solve is flagged
        n_jobs: Parallel workers for per-time-point inversion (-1: all cores)
    """

    stehfest_n: int = 10
    max_stehfest_n_interlayer: int = 12
    derivative_l_spacing: float = 0.1
    default_n_seg: int = 5
    effective_radius_factor: float = 15.0
    self_tolerance: float = 1e-7
    self_max_depth: int = 10
    near_tolerance: float = 1e-6
    near_max_depth: int = 6
    far_tolerance: float = 1e-5
    far_max_depth: int = 4
    max_condition: float = 1e12
    n_jobs: int = -1


@dataclass
class FitConfig:
    """Levenberg-Marquardt controls.

    Attributes:
        tolerance: Stop once the mean squared residual drops below this
        max_iterations: Outer iteration cap
        initial_lambda: Starting damping factor
        max_trials: Damped trial steps per iteration
        max_lambda: Give up once no trial improves and lambda exceeds this
        log_step: Central-difference step in log10 space
        linear_step: Absolute central-difference step
        target_count: Point budget of the default log sampling
        n_jobs: Parallel workers for Jacobian columns (-1: all cores)
    """

    tolerance: float = 3e-3
    max_iterations: int = 50
    initial_lambda: float = 0.01
    max_trials: int = 5
    max_lambda: float = 1e10
    log_step: float = 0.01
    linear_step: float = 1e-4
    target_count: int = 200
    n_jobs: int = -1


@dataclass
class SamplingConfig:
    """Observed-data sampling configuration.

    Attributes:
        enabled: Use the custom intervals instead of the default budget
        intervals: List of {start, end, count} mappings
    """

    enabled: bool = False
    intervals: List[Dict[str, float]] = field(default_factory=list)


def _from_mapping(cls, data: Optional[Dict[str, Any]]):
    """Build a dataclass from a mapping, ignoring unknown keys."""
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {sorted(unknown)}")
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class SessionConfig:
    """Complete analysis session configuration.

    Attributes:
        model_id: Legacy model id (1-36)
        defaults: Physical defaults for the preprocessor
        solver: Solver constants
        fitting: Fitter controls
        sampling: Sampling intervals
        parameters: Parameter overrides (name -> value)
        weight: Pressure/derivative balance of the fit residual (0-1)
        log_level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
        log_file: Optional log file path
    """

    model_id: int = 7
    defaults: AnalysisDefaults = field(default_factory=AnalysisDefaults)
    solver: SolverConfig = field(default_factory=SolverConfig)
    fitting: FitConfig = field(default_factory=FitConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    parameters: Dict[str, float] = field(default_factory=dict)
    weight: float = 0.5
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "SessionConfig":
        """Create SessionConfig from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            SessionConfig instance
        """
        weight = float(config_dict.get("weight", 0.5))
        if not 0.0 <= weight <= 1.0:
            raise ValueError(f"weight must be in [0, 1], got {weight}")

        return cls(
            model_id=int(config_dict.get("model_id", 7)),
            defaults=_from_mapping(AnalysisDefaults, config_dict.get("defaults")),
            solver=_from_mapping(SolverConfig, config_dict.get("solver")),
            fitting=_from_mapping(FitConfig, config_dict.get("fitting")),
            sampling=_from_mapping(SamplingConfig, config_dict.get("sampling")),
            parameters={
                k: float(v) for k, v in (config_dict.get("parameters") or {}).items()
            },
            weight=weight,
            log_level=config_dict.get("log_level", "INFO"),
            log_file=config_dict.get("log_file"),
        )

    @classmethod
    def from_toml(cls, config_path: str | Path) -> "SessionConfig":
        """Load configuration from TOML file.

        Example:
            >>> from composite_pta.config import SessionConfig
            >>> config = SessionConfig.from_toml('session.toml')
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            config_dict = tomllib.load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "SessionConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f) or {}
        return cls.from_dict(config_dict)

    @classmethod
    def from_file(cls, config_path: str | Path) -> "SessionConfig":
        """Load configuration from file (auto-detect format).

        Args:
            config_path: Path to configuration file

        Returns:
            SessionConfig instance
        """
        config_path = Path(config_path)
        suffix = config_path.suffix.lower()

        format_loaders = {
            ".toml": cls.from_toml,
            ".yaml": cls.from_yaml,
            ".yml": cls.from_yaml,
        }

        loader = format_loaders.get(suffix)
        if loader is None:
            raise ValueError(
                f"Unknown configuration file format: {suffix}. "
                f"Supported formats: {list(format_loaders.keys())}"
            )

        return loader(config_path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (None values dropped)."""
        config_dict = {
            "model_id": self.model_id,
            "defaults": asdict(self.defaults),
            "solver": asdict(self.solver),
            "fitting": asdict(self.fitting),
            "sampling": asdict(self.sampling),
            "parameters": dict(self.parameters),
            "weight": self.weight,
            "log_level": self.log_level,
        }
        if self.log_file is not None:
            config_dict["log_file"] = self.log_file
        return config_dict


def create_example_config(output_path: str | Path, format: str = "toml") -> None:
    """Create an example session configuration file.

    Args:
        output_path: Path to save example configuration
        format: Configuration format ('toml' or 'yaml')

    Example:
        >>> from composite_pta.config import create_example_config
        >>> create_example_config('session.toml')
    """
    example = SessionConfig(
        model_id=7,
        parameters={"kf": 1e-2, "Lf": 20.0, "nf": 4.0, "M12": 10.0, "eta12": 0.2},
        sampling=SamplingConfig(
            enabled=False,
            intervals=[
                {"start": 1e-3, "end": 1e-1, "count": 40},
                {"start": 1e-1, "end": 1e1, "count": 80},
                {"start": 1e1, "end": 1e3, "count": 80},
            ],
        ),
        log_file="fit_session.log",
    ).to_dict()

    output_path = Path(output_path)

    if format == "toml":
        with open(output_path, "wb") as f:
            tomli_w.dump(example, f)
    elif format in ["yaml", "yml"]:
        with open(output_path, "w") as f:
            yaml.dump(example, f, default_flow_style=False, sort_keys=False)
    else:
        raise ValueError(f"Unknown format: {format}")

    logger.info(f"Example configuration saved to {output_path}")
