"""
Tests for the curve fitting primitives.
"""

import numpy as np
import pytest

from wave_analysis.curve_fitting import (
    LocalRegressionCurve,
    PolynomialCurve,
    SingularMatrixError,
    fit_local_regression,
    fit_polynomial,
    median_absolute_deviation,
    moving_average_curve,
    polynomial_least_squares,
    r_squared,
    rms_error,
    sliding_cubic_curve,
    solve_linear_system,
    tricube_weight,
)
from wave_analysis.types import PointKind, WavePoint


class TestLinearSystem:
    """Gaussian elimination with partial pivoting."""

    def test_solves_two_by_two(self):
        x = solve_linear_system([[2.0, 1.0], [1.0, 3.0]], [3.0, 5.0])
        assert x == pytest.approx([0.8, 1.4])

    def test_needs_pivoting(self):
        x = solve_linear_system([[0.0, 1.0], [1.0, 0.0]], [2.0, 3.0])
        assert x == pytest.approx([3.0, 2.0])

    def test_singular(self):
        with pytest.raises(SingularMatrixError):
            solve_linear_system([[1.0, 2.0], [2.0, 4.0]], [1.0, 2.0])

    def test_singular_is_arithmetic_error(self):
        assert issubclass(SingularMatrixError, ArithmeticError)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            solve_linear_system([[1.0, 2.0, 3.0]], [1.0])

    def test_least_squares_exact_line(self):
        coefficients = polynomial_least_squares([0.0, 0.5, 1.0], [1.0, 2.0, 3.0], 1)
        assert coefficients == pytest.approx([1.0, 2.0])


class TestFitPolynomial:
    """Degree-adaptive polynomial fitting."""

    def test_quadratic_on_large_timestamps(self):
        t = np.arange(10, dtype=float)
        x = 1700000000.0 + t * 60.0
        y = 2.0 + 3.0 * t + t ** 2
        curve = fit_polynomial(x, y, 2)
        assert curve.evaluate(x) == pytest.approx(y, abs=1e-6)
        assert curve.degree == 2

    def test_cubic_request_with_three_points_reduces_to_line(self):
        curve = fit_polynomial([0.0, 1.0, 2.0], [1.0, 3.0, 5.0], 3)
        assert len(curve.coefficients) == 4
        assert curve.coefficients[2:] == (0.0, 0.0)
        assert curve.degree == 1
        assert float(curve.evaluate(3.0)) == pytest.approx(7.0)

    def test_constant_abscissa_fits_mean(self):
        curve = fit_polynomial([5.0, 5.0, 5.0], [1.0, 2.0, 3.0], 2)
        assert float(curve.evaluate(5.0)) == pytest.approx(2.0)

    def test_single_sample(self):
        curve = fit_polynomial([10.0], [4.0], 2)
        assert float(curve.evaluate(10.0)) == pytest.approx(4.0)

    def test_empty(self):
        curve = fit_polynomial([], [], 2)
        assert curve == PolynomialCurve((0.0, 0.0, 0.0))


class TestLocalRegression:
    """Tri-cube weighted local averaging."""

    def test_tricube_weight(self):
        assert tricube_weight(0.0) == pytest.approx(1.0)
        assert tricube_weight(0.5) == pytest.approx(0.669921875)
        assert tricube_weight(1.0) == 0.0
        assert tricube_weight(-2.0) == 0.0

    def test_constant_series(self):
        curve = fit_local_regression([0.0, 10.0, 20.0, 30.0], [5.0] * 4)
        assert curve.evaluate([0.0, 15.0, 30.0]) == pytest.approx([5.0, 5.0, 5.0])

    def test_bandwidth_is_fraction_of_span(self):
        curve = fit_local_regression([100.0, 200.0, 300.0], [1.0, 2.0, 3.0], 0.3)
        assert curve.bandwidth == pytest.approx(60.0)

    def test_clamps_outside_range(self):
        curve = LocalRegressionCurve(1.0, ((0.0, 1.0), (1.0, 3.0)))
        assert curve.evaluate([-5.0, 0.5, 9.0]) == pytest.approx([1.0, 2.0, 3.0])

    def test_narrow_bandwidth_reproduces_samples(self):
        # Each kernel covers only its own sample.
        x = [0.0, 100.0, 200.0]
        curve = fit_local_regression(x, [1.0, 9.0, 4.0], 0.1)
        assert curve.evaluate(x) == pytest.approx([1.0, 9.0, 4.0])


class TestStatistics:
    """Error metrics."""

    def test_rms_error(self):
        curve = PolynomialCurve((1.0,))
        assert rms_error(curve, [0.0, 1.0], [2.0, 0.0]) == pytest.approx(1.0)

    def test_mad(self):
        assert median_absolute_deviation([1.0, 2.0, 3.0, 4.0, 100.0]) == pytest.approx(1.0)
        assert median_absolute_deviation([]) == 0.0

    def test_r_squared(self):
        assert r_squared([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)
        assert r_squared([1.0, 2.0, 3.0], [2.0, 2.0, 2.0]) == pytest.approx(0.0)
        assert r_squared([2.0, 2.0], [2.0, 2.0]) == 1.0
        assert r_squared([2.0, 2.0], [1.0, 2.0]) == 0.0


def indexed_points(prices):
    return [WavePoint(1700000000 + i * 60, p, PointKind.HIGH, i) for i, p in enumerate(prices)]


class TestOverviewCurves:
    """Moving-average and sliding cubic overview curves."""

    def test_moving_average_needs_full_window(self):
        assert moving_average_curve(indexed_points([1.0, 2.0]), window=3) == []

    def test_moving_average_window_shifted_at_edges(self):
        curve = moving_average_curve(indexed_points([1.0, 3.0, 5.0]), window=2, blend=0.0)
        assert [p.price for p in curve] == pytest.approx([2.0, 2.0, 4.0])

    def test_moving_average_blend(self):
        curve = moving_average_curve(indexed_points([1.0, 3.0]), window=2, blend=0.5)
        assert [p.price for p in curve] == pytest.approx([1.5, 2.5])

    def test_sliding_cubic_recovers_cubic(self):
        prices = [0.01 * i ** 3 - 0.2 * i ** 2 + i + 100.0 for i in range(10)]
        result = sliding_cubic_curve(indexed_points(prices))
        assert [p.price for p in result.points] == pytest.approx(prices, abs=1e-6)
        assert result.r_squared == pytest.approx(1.0, abs=1e-9)

    def test_sliding_cubic_short_support_keeps_prices(self):
        points = indexed_points([1.0, 5.0, 2.0])
        result = sliding_cubic_curve(points)
        assert result.points == tuple(points)

    def test_sliding_cubic_empty(self):
        result = sliding_cubic_curve([])
        assert result.points == ()
        assert result.r_squared == 0.0
