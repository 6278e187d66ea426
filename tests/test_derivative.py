"""Tests for the Bourdet derivative and smoothing."""

import numpy as np
import pytest

from composite_pta.derivative import bourdet_derivative, log_slope, smooth_derivative


class TestLogSlope:
    def test_slope(self):
        assert log_slope(np.e, 1.0, 3.0, 1.0) == pytest.approx(2.0)

    def test_degenerate_times(self):
        assert log_slope(0.0, 1.0, 1.0, 2.0) == 0.0
        assert log_slope(1.0, 1.0, 1.0, 2.0) == 0.0


class TestBourdetDerivative:
    """Test the semi-log derivative."""

    def test_radial_flow_is_constant(self):
        """Test p = k ln t gives derivative k at every point."""
        t = np.logspace(-2, 2, 41)
        d = bourdet_derivative(t, 1.7 * np.log(t) + 3.0)
        np.testing.assert_allclose(d, 1.7, rtol=1e-9)

    def test_half_slope(self):
        """Test p = sqrt(t) gives d/p = 0.5 in the interior."""
        t = np.logspace(-2, 2, 81)
        p = np.sqrt(t)
        d = bourdet_derivative(t, p, 0.1)
        np.testing.assert_allclose(d[2:-2] / p[2:-2], 0.5, rtol=1e-2)

    def test_window_skips_close_points(self):
        """Test points closer than the window are not used as neighbours."""
        t = np.array([1.0, 1.01, 1.02, 2.0, 4.0])
        p = np.log(t)
        d = bourdet_derivative(t, p, l_spacing=0.5)
        np.testing.assert_allclose(d, 1.0, rtol=1e-9)

    def test_non_negative(self):
        t = np.logspace(0, 2, 10)
        d = bourdet_derivative(t, -np.log(t))
        assert np.all(d >= 0.0)
        np.testing.assert_allclose(d, 1.0, rtol=1e-9)

    def test_non_positive_time_ignored(self):
        t = np.array([0.0, 1.0, 2.0, 4.0])
        d = bourdet_derivative(t, np.array([5.0, 0.0, np.log(2.0), np.log(4.0)]))
        assert d[0] == 0.0
        np.testing.assert_allclose(d[1:], 1.0, rtol=1e-9)

    def test_short_series(self):
        assert bourdet_derivative([1.0], [2.0]).tolist() == [0.0]
        d = bourdet_derivative([1.0, np.e], [0.0, 1.0], l_spacing=5.0)
        np.testing.assert_allclose(d, [1.0, 1.0])

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            bourdet_derivative([1.0, 2.0], [1.0])


class TestSmoothDerivative:
    """Test the centred moving average."""

    def test_span_three(self):
        np.testing.assert_allclose(
            smooth_derivative([1.0, 2.0, 3.0, 4.0, 5.0], 3), [1.5, 2.0, 3.0, 4.0, 4.5]
        )

    def test_even_span_bumped(self):
        np.testing.assert_allclose(
            smooth_derivative([1.0, 2.0, 3.0, 4.0, 5.0], 2), [1.5, 2.0, 3.0, 4.0, 4.5]
        )

    def test_span_one_is_copy(self):
        values = np.array([1.0, 5.0, 2.0])
        smoothed = smooth_derivative(values, 1)
        np.testing.assert_array_equal(smoothed, values)
        assert smoothed is not values

    def test_constant_unchanged(self):
        np.testing.assert_allclose(smooth_derivative(np.full(7, 2.5), 5), 2.5)

    def test_empty(self):
        assert smooth_derivative([], 3).size == 0
