"""Tests for Stehfest Laplace inversion."""

import math

import numpy as np
import pytest

from composite_pta.stehfest import (
    DEFAULT_N,
    StehfestInverter,
    pressure_sensitivity_correction,
    stehfest_coefficients,
    validate_order,
)


class TestCoefficients:
    """Test Stehfest weights."""

    def test_order_four(self):
        assert stehfest_coefficients(4) == pytest.approx((-2.0, 26.0, -48.0, 24.0))

    @pytest.mark.parametrize("n", [4, 8, 10, 12])
    def test_moment_identities(self, n):
        """Test sum(V) = 0 and sum(V/i) = 1."""
        coeffs = np.asarray(stehfest_coefficients(n))
        i = np.arange(1, n + 1)
        assert coeffs.sum() == pytest.approx(0.0, abs=1e-6 * np.abs(coeffs).max())
        assert (coeffs / i).sum() == pytest.approx(1.0, rel=1e-6)

    def test_cached(self):
        assert stehfest_coefficients(10) is stehfest_coefficients(10)


class TestValidateOrder:
    @pytest.mark.parametrize("n", [2, 3, 7, 20, 0, -4])
    def test_invalid_falls_back(self, n):
        assert validate_order(n) == DEFAULT_N

    def test_valid_kept(self):
        assert validate_order(8) == 8
        assert validate_order(18) == 18

    def test_custom_upper_bound(self):
        """Test interlayer-style bounds reject orders above 12."""
        assert validate_order(12, max_n=12) == 12
        assert validate_order(14, max_n=12) == DEFAULT_N


class TestInversion:
    """Test inversion of transforms with known originals."""

    def test_unit_step(self):
        """Test 1/z inverts to 1 at every time."""
        inverter = StehfestInverter(12)
        values = inverter.invert(lambda z: 1.0 / z, [0.01, 1.0, 100.0])
        np.testing.assert_allclose(values, 1.0, rtol=1e-7)

    def test_exponential_error_decreases_with_order(self):
        """Test the error on 1/(z+1) -> exp(-t) shrinks as N rises to 18.

        Past the best order round-off may win, so high orders only have to
        beat N=12 at their best and stay well ahead of low orders.
        """
        times = np.array([0.5, 1.0, 2.0])
        exact = np.exp(-times)
        errors = {}
        for n in range(4, 20, 2):
            values = StehfestInverter(n).invert(lambda z: 1.0 / (z + 1.0), times)
            errors[n] = np.max(np.abs(values - exact))
        assert errors[4] > errors[8] > errors[12]
        assert errors[12] < 5e-3
        assert min(errors[n] for n in (14, 16, 18)) < errors[12]
        assert errors[18] < errors[8]

    def test_non_positive_time_is_zero(self):
        inverter = StehfestInverter()
        assert inverter.invert_point(lambda z: 1.0 / z, 0.0) == 0.0
        assert inverter.invert_point(lambda z: 1.0 / z, -1.0) == 0.0

    def test_non_finite_samples_ignored(self):
        """Test NaN transform values contribute zero instead of poisoning the sum."""
        inverter = StehfestInverter(4)
        value = inverter.invert_point(lambda z: float("nan"), 1.0)
        assert value == 0.0

    def test_empty_times(self):
        assert StehfestInverter().invert(lambda z: 1.0 / z, []).shape == (0,)

    def test_threaded_matches_serial(self):
        """Test joblib threads give the same values as the serial loop."""
        inverter = StehfestInverter(10)
        times = np.logspace(-1, 1, 7)
        func = lambda z: 1.0 / (z * (z + 1.0))  # noqa: E731
        serial = inverter.invert(func, times, n_jobs=1)
        threaded = inverter.invert(func, times, n_jobs=2)
        np.testing.assert_allclose(threaded, serial)
        np.testing.assert_allclose(serial, 1.0 - np.exp(-times), atol=1e-3)

    def test_invalid_order_falls_back(self):
        assert StehfestInverter(5).n == DEFAULT_N
        assert len(StehfestInverter(5).coefficients) == DEFAULT_N


class TestPressureSensitivity:
    """Test the permeability-modulus correction."""

    def test_zero_gamma_unchanged(self):
        assert pressure_sensitivity_correction(1.5, 0.0) == 1.5

    def test_correction_value(self):
        assert pressure_sensitivity_correction(1.0, 0.1) == pytest.approx(
            -math.log(0.9) / 0.1
        )

    def test_increases_pressure(self):
        assert pressure_sensitivity_correction(2.0, 0.05) > 2.0

    def test_invalid_log_argument_unchanged(self):
        assert pressure_sensitivity_correction(20.0, 0.1) == 20.0

    def test_applied_by_inverter(self):
        inverter = StehfestInverter(12)
        plain = inverter.invert_point(lambda z: 1.0 / z, 1.0)
        corrected = inverter.invert_point(lambda z: 1.0 / z, 1.0, gamma_d=0.1)
        assert corrected == pytest.approx(pressure_sensitivity_correction(plain, 0.1))
