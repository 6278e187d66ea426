"""Command-line interface for composite-reservoir well-test analysis."""

import argparse
import logging
import sys
from typing import Dict, List, Optional

import pandas as pd

from .config import SessionConfig
from .logging_config import configure_logging, get_logger
from .variants import ModelVariant, all_variants

logger = get_logger(__name__)


def _parse_assignments(items: List[str]) -> Dict[str, float]:
    values = {}
    for item in items:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got '{item}'")
        values[key.strip()] = float(raw)
    return values


def _load_config(path: Optional[str]) -> SessionConfig:
    if path is None:
        return SessionConfig()
    return SessionConfig.from_file(path)


def _cmd_variants(args) -> int:
    for variant in all_variants():
        print(f"{variant.model_id:>3}  {variant.name()}")
    return 0


def _cmd_curve(args, config: SessionConfig) -> int:
    from .parameters import default_parameters, preprocess_parameters
    from .solver import ModelSolver, generate_log_time_steps

    variant = ModelVariant.from_model_id(args.model_id or config.model_id)
    params = default_parameters(variant, config.defaults)
    params.update(config.parameters)
    params.update(_parse_assignments(args.set or []))
    solver_params = preprocess_parameters(params, variant, config.defaults)

    time = generate_log_time_steps(args.points, args.start_exp, args.end_exp)
    logger.info(f"Computing {variant} at {len(time)} times")
    curve = ModelSolver(config.solver).calculate_theoretical_curve(
        variant, solver_params, time
    )
    frame = curve.to_frame()
    if args.output:
        frame.to_csv(args.output, index=False)
        logger.info(f"Curve saved to {args.output}")
    else:
        print(frame.to_string(index=False))
    return 0


def _cmd_fit(args, config: SessionConfig) -> int:
    from .fitting import LevenbergMarquardtFitter
    from .observed import ObservedSeries
    from .parameters import FitParameter, adjust_limits, default_fit_parameters
    from .sampling import SamplingInterval
    from .solver import ModelSolver

    variant = ModelVariant.from_model_id(args.model_id or config.model_id)
    observed = ObservedSeries.from_frame(pd.read_csv(args.csv))
    intervals = None
    if config.sampling.enabled:
        intervals = [SamplingInterval(**iv) for iv in config.sampling.intervals]

    params = default_fit_parameters(variant)
    overrides = dict(config.parameters)
    overrides.update(_parse_assignments(args.set or []))
    if overrides:
        known = {p.name for p in params}
        for p in params:
            if p.name in overrides:
                p.value = overrides[p.name]
        params = adjust_limits(params)
        # Numerical controls such as n_seg or N pass through unfitted
        params.extend(
            FitParameter(name, value, is_visible=False)
            for name, value in overrides.items()
            if name not in known
        )

    weight = config.weight if args.weight is None else args.weight
    fitter = LevenbergMarquardtFitter(
        observed,
        solver=ModelSolver(config.solver),
        config=config.fitting,
        defaults=config.defaults,
        intervals=intervals,
    )
    result = fitter.fit(variant, params, weight=weight)

    print(f"State: {result.state.value} ({result.message})")
    print(f"Iterations: {result.iterations}  MSE: {result.error:.6g}")
    for p in result.fit_parameters:
        flag = "*" if p.is_free else " "
        print(f" {flag} {p.name:<8} {result.parameters.get(p.name, p.value):.6g}")

    if args.output:
        result.curve.to_frame().to_csv(args.output, index=False)
        logger.info(f"Fitted curve saved to {args.output}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Composite-reservoir well-test analysis tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List catalogued model variants
  python -m composite_pta variants

  # Theoretical curve for model 8 with custom parameters
  python -m composite_pta curve --model-id 8 --set kf=0.01 --set nf=4 --output curve.csv

  # Fit observed data (columns: time, pressure[, derivative])
  python -m composite_pta fit observed.csv --model-id 8 --config session.toml
        """,
    )
    parser.add_argument("--config", help="Path to TOML/YAML session config")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument(
        "--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"]
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("variants", help="List model variants")

    curve = sub.add_parser("curve", help="Compute a theoretical curve")
    curve.add_argument("--model-id", type=int)
    curve.add_argument("--set", action="append", metavar="KEY=VALUE")
    curve.add_argument("--points", type=int, default=100)
    curve.add_argument("--start-exp", type=float, default=-3.0)
    curve.add_argument("--end-exp", type=float, default=3.0)
    curve.add_argument("--output", help="Output CSV path")

    fit = sub.add_parser("fit", help="Fit a model to observed data")
    fit.add_argument("csv", help="Observed data CSV")
    fit.add_argument("--model-id", type=int)
    fit.add_argument("--weight", type=float, help="Pressure weight in [0, 1]")
    fit.add_argument("--set", action="append", metavar="KEY=VALUE")
    fit.add_argument("--output", help="Output CSV path for the fitted curve")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = _load_config(args.config)
        log_level = getattr(logging, args.log_level or config.log_level.upper())
        if args.verbose:
            log_level = logging.DEBUG
        configure_logging(level=log_level, log_file=config.log_file)
        if args.command == "variants":
            return _cmd_variants(args)
        if args.command == "curve":
            return _cmd_curve(args, config)
        return _cmd_fit(args, config)
    except (ValueError, FileNotFoundError) as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
