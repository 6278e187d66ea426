"""Example: Fit a composite-reservoir model from a session configuration.

This example loads (or creates) a session configuration, builds a synthetic
buildup record from a known model, prepares it like gauge data and fits it
on a background worker while streaming progress events.
"""

import logging
import sys
from pathlib import Path

import numpy as np

from composite_pta.config import SessionConfig, create_example_config
from composite_pta.fitting import Finished, IterationUpdate, LevenbergMarquardtFitter, Progress
from composite_pta.logging_config import configure_logging
from composite_pta.observed import BUILDUP, prepare_observed_series
from composite_pta.parameters import (
    adjust_limits,
    default_fit_parameters,
    preprocess_parameters,
)
from composite_pta.solver import ModelSolver
from composite_pta.variants import ModelVariant

# Step 1: Load configuration
config_path = sys.argv[1] if len(sys.argv) > 1 else "examples/session_example.toml"

if not Path(config_path).exists():
    print(f"Configuration file not found: {config_path}")
    print("Creating example configuration...")
    create_example_config(config_path, format="toml")
    print(f"Example config created at {config_path}")

print(f"Loading configuration from: {config_path}")
config = SessionConfig.from_file(config_path)

# Step 2: Configure logging
configure_logging(level=getattr(logging, config.log_level.upper()), log_file=config.log_file)

# Step 3: Synthetic buildup from a known model
variant = ModelVariant.from_model_id(config.model_id)
print(f"\nModel: {variant.name()}")

fitter = LevenbergMarquardtFitter(
    solver=ModelSolver(config.solver), config=config.fitting, defaults=config.defaults
)
truth = {p.name: p.value for p in default_fit_parameters(variant)}
truth.update(config.parameters)
truth.update(n_seg=2.0, nf=2.0)

time = np.concatenate([[0.0], np.logspace(-2, 2, 60)])
curve = fitter.model_curve(variant, truth, time + 1e-3)
rng = np.random.default_rng(7)
gauge = 25.0 + curve.pressure * (1.0 + 0.01 * rng.standard_normal(len(time)))

observed = prepare_observed_series(time, gauge, test_type=BUILDUP, smooth_span=3)
fitter.observed = observed
print(f"  Prepared {len(observed)} points, t = {observed.time[0]:.3g} to {observed.time[-1]:.3g} h")

# Step 4: Start from a perturbed guess
params = default_fit_parameters(variant)
for p in params:
    if p.name in truth:
        p.value = truth[p.name] * (1.5 if p.name == "kf" else 1.0)
params = adjust_limits(params)
for p in params:
    p.is_fit = p.name == "kf"

# Step 5: Fit on a background worker
task = fitter.start_fit(variant, params, weight=config.weight)
for event in task.events():
    if isinstance(event, Progress):
        print(f"  {event.percent:3d}%")
    elif isinstance(event, IterationUpdate):
        print(f"  iteration {event.iteration}: mse={event.error:.4g}, kf={event.parameters['kf']:.4g}")
    elif isinstance(event, Finished):
        result = event.result

print(f"\nState: {result.state.value} ({result.message})")
print(f"kf: fitted {result.parameters['kf']:.4g}, true {truth['kf']:.4g}")

# Step 6: Sensitivity of the fitted model to the composite radius
radii = (500.0, 1000.0, 2000.0)
fitted = preprocess_parameters(result.parameters, variant, config.defaults)
curves = ModelSolver(config.solver).sensitivity_curves(
    variant, fitted, "rm", radii, observed.time[::10]
)
for rm, sens in zip(radii, curves):
    print(f"  rm={rm:6.0f} m: late derivative {sens.derivative[-1]:.4g} MPa")
