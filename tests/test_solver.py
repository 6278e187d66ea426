"""Tests for theoretical curve generation."""

import logging
from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

import composite_pta.stehfest
from composite_pta.config import SolverConfig
from composite_pta.parameters import default_parameters
from composite_pta.solver import (
    PRESSURE_FACTOR,
    CurveResult,
    ModelSolver,
    calculate_theoretical_curve,
    generate_log_time_steps,
)
from composite_pta.variants import ModelVariant, all_variants


@pytest.fixture
def params():
    """Small, fast homogeneous case: one fracture split into two segments."""
    return {
        "phi": 0.05,
        "mu": 0.5,
        "B": 1.05,
        "Ct": 5e-4,
        "q": 5.0,
        "h": 20.0,
        "kf": 0.01,
        "L": 1000.0,
        "Lf": 20.0,
        "nf": 1,
        "n_seg": 2,
        "rm": 1000.0,
        "M12": 1.0,
        "eta12": 1.0,
        "N": 8,
    }


@pytest.fixture
def solver():
    return ModelSolver()


TIMES = [0.1, 1.0, 10.0, 100.0]


class TestTimeSteps:
    def test_default_grid(self):
        t = generate_log_time_steps()
        assert len(t) == 100
        assert t[0] == pytest.approx(1e-3)
        assert t[-1] == pytest.approx(1e3)

    def test_degenerate_counts(self):
        assert generate_log_time_steps(0).size == 0
        np.testing.assert_allclose(generate_log_time_steps(1, -2.0), [0.01])


class TestCurveResult:
    def test_zeros_and_frame(self):
        curve = CurveResult.zeros([1.0, 2.0])
        assert len(curve) == 2
        frame = curve.to_frame()
        assert isinstance(frame, pd.DataFrame)
        assert list(frame.columns) == ["time", "pressure", "derivative"]
        assert (frame["pressure"] == 0.0).all()


class TestTheoreticalCurve:
    """Test pressure and derivative curves."""

    def test_radial_flow_scenario(self, solver, params):
        """Test pressure rises while the log slope flattens toward radial flow."""
        curve = solver.calculate_theoretical_curve(ModelVariant.from_model_id(8), params, TIMES)
        p, d = curve.pressure, curve.derivative
        assert np.all(np.isfinite(p))
        assert np.all(np.diff(p) > 0)
        assert np.all(d > 0)
        assert d[-1] / p[-1] < d[1] / p[1]
        assert d[-1] / p[-1] < 0.5

    def test_published_scenario(self, solver):
        """Test the four-fracture homogeneous case rises and flattens."""
        params = {
            "phi": 0.05, "h": 10.0, "mu": 5.0, "B": 1.2, "Ct": 0.05, "q": 10.0,
            "kf": 1e-2, "L": 1000.0, "Lf": 20.0, "nf": 4, "rw": 0.1,
        }
        variant = ModelVariant.from_model_id(8)
        curve = solver.calculate_theoretical_curve(variant, params, TIMES)
        assert len(curve.time) == len(curve.pressure) == len(curve.derivative) == 4
        assert np.all(np.diff(curve.pressure) > 0)
        slope = curve.derivative / curve.pressure
        assert slope[-1] < slope[1] < 0.55

    def test_invalid_physical_parameters_give_zeros(self, solver, params):
        params["phi"] = 0.0
        curve = solver.calculate_theoretical_curve(ModelVariant(), params, TIMES)
        np.testing.assert_array_equal(curve.pressure, 0.0)
        np.testing.assert_array_equal(curve.derivative, 0.0)
        np.testing.assert_array_equal(curve.time, TIMES)

    def test_non_positive_fracture_length_gives_zeros(self, solver, params):
        params["Lf"] = 0.0
        curve = solver.calculate_theoretical_curve(ModelVariant(), params, TIMES)
        np.testing.assert_array_equal(curve.pressure, 0.0)

    def test_empty_time(self, solver, params):
        assert len(solver.calculate_theoretical_curve(ModelVariant(), params, [])) == 0

    def test_two_points_have_zero_derivative(self, solver, params):
        curve = solver.calculate_theoretical_curve(ModelVariant(), params, [1.0, 10.0])
        assert np.all(curve.pressure > 0)
        np.testing.assert_array_equal(curve.derivative, 0.0)

    def test_pressure_proportional_to_rate(self, solver, params):
        base = solver.calculate_theoretical_curve(ModelVariant(), params, TIMES)
        params["q"] = 10.0
        doubled = solver.calculate_theoretical_curve(ModelVariant(), params, TIMES)
        np.testing.assert_allclose(doubled.pressure, 2.0 * base.pressure, rtol=1e-12)

    def test_permeability_scaling(self, solver, params):
        """Test p(2 kf, t) = p(kf, 2 t) / 2 from the unit conversions."""
        t = np.array(TIMES)
        low = solver.calculate_theoretical_curve(ModelVariant(), params, 2.0 * t)
        params["kf"] = 0.02
        high = solver.calculate_theoretical_curve(ModelVariant(), params, t)
        np.testing.assert_allclose(high.pressure, 0.5 * low.pressure, rtol=1e-6)

    def test_skin_adds_constant(self, solver, params):
        """Test skin without storage shifts pressure by the scaled skin."""
        variant = ModelVariant.from_model_id(7)
        params.update(cD=0.0, S=0.0)
        plain = solver.calculate_theoretical_curve(variant, params, TIMES)
        params["S"] = 2.0
        skinned = solver.calculate_theoretical_curve(variant, params, TIMES)
        scale = PRESSURE_FACTOR * params["q"] * params["mu"] * params["B"] / (
            params["kf"] * params["h"]
        )
        np.testing.assert_allclose(skinned.pressure - plain.pressure, 2.0 * scale, rtol=1e-6)

    def test_storage_lowers_early_pressure(self, solver, params):
        variant = ModelVariant.from_model_id(7)
        params.update(cD=100.0, S=0.0)
        stored = solver.calculate_theoretical_curve(variant, params, TIMES)
        plain = solver.calculate_theoretical_curve(ModelVariant.from_model_id(8), params, TIMES)
        assert stored.pressure[0] < plain.pressure[0]

    def test_storage_ignored_for_variant_without_storage(self, solver, params):
        plain = solver.calculate_theoretical_curve(ModelVariant.from_model_id(8), params, TIMES)
        params.update(cD=100.0, S=5.0)
        again = solver.calculate_theoretical_curve(ModelVariant.from_model_id(8), params, TIMES)
        np.testing.assert_array_equal(again.pressure, plain.pressure)

    def test_pressure_sensitivity_raises_pressure(self, solver, params):
        plain = solver.calculate_theoretical_curve(ModelVariant(), params, TIMES)
        params["gamaD"] = 0.05
        corrected = solver.calculate_theoretical_curve(ModelVariant(), params, TIMES)
        assert np.all(corrected.pressure > plain.pressure)

    def test_outer_boundaries(self, solver, params):
        """Test closed boundaries raise and constant-pressure ones lower late pressure."""
        params.update(rm=300.0, re=600.0)
        late = {}
        for model_id in (8, 10, 12):
            curve = solver.calculate_theoretical_curve(
                ModelVariant.from_model_id(model_id), params, TIMES
            )
            late[model_id] = curve.pressure[-1]
        assert late[10] > late[8] > late[12]

    def test_threaded_matches_serial(self, params):
        variant = ModelVariant()
        serial = ModelSolver().calculate_theoretical_curve(variant, params, TIMES, n_jobs=1)
        threaded = ModelSolver(SolverConfig(n_jobs=2)).calculate_theoretical_curve(
            variant, params, TIMES
        )
        np.testing.assert_allclose(threaded.pressure, serial.pressure)

    def test_default_config_inverts_in_parallel(self, params):
        """Test the default solver fans time points out to joblib threads."""
        with patch.object(
            composite_pta.stehfest, "Parallel", wraps=composite_pta.stehfest.Parallel
        ) as parallel:
            curve = ModelSolver().calculate_theoretical_curve(ModelVariant(), params, TIMES)
        parallel.assert_called_once_with(n_jobs=-1, prefer="threads")
        serial = ModelSolver().calculate_theoretical_curve(
            ModelVariant(), params, TIMES, n_jobs=1
        )
        np.testing.assert_allclose(curve.pressure, serial.pressure)

    def test_fractures_outside_composite_radius_warn(self, solver, params, caplog):
        params.update(nf=2, rm=300.0)
        with caplog.at_level(logging.WARNING, logger="composite_pta"):
            solver.calculate_theoretical_curve(ModelVariant(), params, TIMES)
        assert "outside the composite radius" in caplog.text

    def test_fractures_inside_composite_radius_quiet(self, solver, params, caplog):
        with caplog.at_level(logging.WARNING, logger="composite_pta"):
            solver.calculate_theoretical_curve(ModelVariant(), params, TIMES)
        assert "composite radius" not in caplog.text

    def test_module_level_wrapper(self, solver, params):
        curve = calculate_theoretical_curve(ModelVariant(), params, TIMES)
        expected = solver.calculate_theoretical_curve(ModelVariant(), params, TIMES)
        np.testing.assert_allclose(curve.pressure, expected.pressure)


class TestAllVariants:
    """Test every catalogued variant produces a usable curve."""

    @pytest.mark.parametrize("variant", all_variants(), ids=lambda v: str(v.model_id))
    def test_curve_is_well_formed(self, solver, variant):
        params = default_parameters(variant)
        params.update(nf=2.0, n_seg=3, kf=1e-2, Lf=20.0)
        curve = solver.calculate_theoretical_curve(variant, params, TIMES)

        assert len(curve.time) == len(curve.pressure) == len(curve.derivative) == len(TIMES)
        assert np.all(np.isfinite(curve.pressure))
        assert np.all(curve.pressure > 0)
        assert np.all(np.isfinite(curve.derivative))
        assert np.all(curve.derivative >= 0)

class TestSolverConfiguration:
    def test_interlayer_order_capped(self, solver):
        assert solver.inverter(ModelVariant.from_model_id(25), {"N": 16}).n == 10
        assert solver.inverter(ModelVariant.from_model_id(25), {"N": 12}).n == 12
        assert solver.inverter(ModelVariant.from_model_id(8), {"N": 16}).n == 16

    def test_geometry(self, solver):
        geo = solver.geometry({"L": 0.0, "Lf": 50.0, "rm": 500.0, "nf": 3.0})
        assert geo.LfD == pytest.approx(0.05)
        assert geo.rmD == pytest.approx(0.5)
        assert geo.n_fracs == 3
        assert geo.n_seg == SolverConfig().default_n_seg


class TestSensitivity:
    def test_curve_per_value(self, solver, params):
        curves = solver.sensitivity_curves(
            ModelVariant(), params, "kf", [0.005, 0.01, 0.02], TIMES
        )
        assert len(curves) == 3
        late = [c.pressure[-1] for c in curves]
        assert late[0] > late[1] > late[2]
        assert params["kf"] == 0.01
