# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Tests for Chebyshev series evaluation, Newhall fitting and messages."""

import math

import numpy as np
import pytest

from orbis.domain.chebyshev_series import (
    ChebyshevSeries,
    chebyshev_derivative,
    chebyshev_evaluate,
    derivative_coefficients,
)


def _samples(function, derivative, t_min, t_max, count=9):
    times = np.linspace(t_min, t_max, count)
    return times, [function(t) for t in times], [derivative(t) for t in times]


class TestClenshaw:

    def test_scalar_series(self):
        # 1 + 2x + 3(2x² - 1) at x = 0.5
        assert chebyshev_evaluate([1.0, 2.0, 3.0], 0.5) == pytest.approx(0.5)

    def test_single_coefficient(self):
        assert chebyshev_evaluate([4.0], 0.3) == 4.0

    def test_vector_series(self):
        coeffs = np.array([[1.0, 0.0, 2.0], [0.0, 1.0, 0.0]])
        np.testing.assert_allclose(chebyshev_evaluate(coeffs, -0.5), [1.0, -0.5, 2.0])

    def test_derivative_coefficients(self):
        # d/dx (T0 + 2T1 + 3T2) = 2 + 12x = 2T0 + 12T1
        np.testing.assert_allclose(derivative_coefficients(np.array([1.0, 2.0, 3.0])), [2.0, 12.0])

    def test_derivative_of_cubic(self):
        # d/dx T3 = 12x² - 3 = 3T0 + 6T2
        np.testing.assert_allclose(
            derivative_coefficients(np.array([0.0, 0.0, 0.0, 1.0])), [3.0, 0.0, 6.0],
        )

    def test_time_derivative_scaling(self):
        assert chebyshev_derivative([0.0, 1.0], 0.2, 4.0) == pytest.approx(0.25)


class TestSeries:

    @pytest.fixture
    def series(self):
        return ChebyshevSeries([1.0, 2.0, 3.0], 0.0, 2.0)

    def test_evaluate(self, series):
        assert series.evaluate(1.5) == pytest.approx(0.5)

    def test_evaluate_derivative(self, series):
        assert series.evaluate_derivative(1.5) == pytest.approx(8.0)

    def test_accessors(self, series):
        assert series.t_min == 0.0
        assert series.t_max == 2.0
        assert series.degree == 2
        assert series.element == "double"
        assert series.last_coefficient() == 3.0

    def test_slack_outside_domain(self, series):
        series.evaluate(2.05)
        series.evaluate(-0.05)

    def test_far_outside_domain_raises(self, series):
        with pytest.raises(ValueError, match="outside"):
            series.evaluate(10.0)
        with pytest.raises(ValueError, match="outside"):
            series.evaluate_derivative(-1.0)

    def test_empty_coefficients_raise(self):
        with pytest.raises(ValueError):
            ChebyshevSeries([], 0.0, 1.0)

    def test_bad_interval_raises(self):
        with pytest.raises(ValueError):
            ChebyshevSeries([1.0], 1.0, 1.0)

    def test_coefficients_are_read_only(self, series):
        with pytest.raises(ValueError):
            series.coefficients[0] = 5.0


class TestNewhall:

    def test_reproduces_polynomial(self):
        def p(t):
            return t ** 7 / 100.0 - t ** 3 + 2.0

        def dp(t):
            return 7.0 * t ** 6 / 100.0 - 3.0 * t ** 2

        _, q, v = _samples(p, dp, -1.0, 3.0)
        for degree in (7, 10, 17):
            series = ChebyshevSeries.newhall_approximation(degree, q, v, -1.0, 3.0)
            for t in np.linspace(-1.0, 3.0, 33):
                assert series.evaluate(t) == pytest.approx(p(t), abs=1e-7)

    @pytest.mark.parametrize("degree", range(3, 18))
    def test_boundary_values_reproduced(self, degree):
        _, q, v = _samples(math.sin, math.cos, -1.0, 3.0)
        series = ChebyshevSeries.newhall_approximation(degree, q, v, -1.0, 3.0)
        assert series.evaluate(-1.0) == pytest.approx(q[0], abs=1e-11)
        assert series.evaluate(3.0) == pytest.approx(q[-1], abs=1e-11)
        assert series.evaluate_derivative(-1.0) == pytest.approx(v[0], abs=1e-10)
        assert series.evaluate_derivative(3.0) == pytest.approx(v[-1], abs=1e-10)

    def test_error_decreases_with_degree(self):
        _, q, v = _samples(math.sin, math.cos, -1.0, 3.0)
        grid = np.linspace(-1.0, 3.0, 101)
        errors = {}
        for degree in range(3, 18):
            series = ChebyshevSeries.newhall_approximation(degree, q, v, -1.0, 3.0)
            errors[degree] = max(abs(series.evaluate(t) - math.sin(t)) for t in grid)
        assert errors[17] < 1e-4 * errors[3]
        assert errors[9] < errors[5] < errors[3]

    def test_vector_samples(self):
        times = np.linspace(0.0, 1.0, 9)
        q = np.array([[math.cos(t), math.sin(t), t] for t in times])
        v = np.array([[-math.sin(t), math.cos(t), 1.0] for t in times])
        series = ChebyshevSeries.newhall_approximation(8, q, v, 0.0, 1.0)
        assert series.element == "vector"
        np.testing.assert_allclose(
            series.evaluate(0.3), [math.cos(0.3), math.sin(0.3), 0.3], atol=1e-10,
        )
        np.testing.assert_allclose(
            series.evaluate_derivative(0.3), [-math.sin(0.3), math.cos(0.3), 1.0], atol=1e-8,
        )

    def test_degree_out_of_range(self):
        _, q, v = _samples(math.sin, math.cos, 0.0, 1.0)
        with pytest.raises(ValueError, match="degree"):
            ChebyshevSeries.newhall_approximation(2, q, v, 0.0, 1.0)
        with pytest.raises(ValueError, match="degree"):
            ChebyshevSeries.newhall_approximation(18, q, v, 0.0, 1.0)

    def test_mismatched_samples(self):
        with pytest.raises(ValueError, match="same length"):
            ChebyshevSeries.newhall_approximation(3, [0.0, 1.0, 2.0], [0.0, 1.0], 0.0, 1.0)


class TestMessages:

    def test_scalar_round_trip(self):
        series = ChebyshevSeries([1.0, -2.5, 3.25], 10.0, 20.0)
        message = series.write_to_message()
        assert message["coefficient"][1] == {"double": -2.5}
        assert ChebyshevSeries.read_from_message(message) == series

    def test_vector_round_trip(self):
        series = ChebyshevSeries([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], -1.0, 1.0)
        message = series.write_to_message()
        restored = ChebyshevSeries.read_from_message(message, element="vector")
        assert restored == series
        assert hash(restored) == hash(series)

    def test_kind_mismatch_raises(self):
        message = ChebyshevSeries([[1.0, 2.0, 3.0]], 0.0, 1.0).write_to_message()
        with pytest.raises(ValueError, match="double"):
            ChebyshevSeries.read_from_message(message, element="double")

    def test_unknown_kind_raises(self):
        message = ChebyshevSeries([1.0], 0.0, 1.0).write_to_message()
        with pytest.raises(ValueError, match="Unknown element kind"):
            ChebyshevSeries.read_from_message(message, element="quaternion")
