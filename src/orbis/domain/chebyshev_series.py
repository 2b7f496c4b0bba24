# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Chebyshev series over a bounded time interval.

A series approximates a scalar or 3-vector function of time on
[t_min, t_max] as sum(c_k T_k(x)) with x = (t - t_mid) / half_span in
[-1, 1]. Series are built either from explicit coefficients or from
equally spaced position/velocity samples with Newhall's method.

References:
    Newhall, X X (1989). "Numerical Representation of Planetary Ephemerides."
    Celestial Mechanics 45, 305-310.
"""

from functools import lru_cache
from typing import Any, Optional, Sequence

import numpy as np
from numpy.polynomial import chebyshev as _cheb

# Queries are allowed slightly outside the domain to absorb round-off in
# the computation of interval bounds; anything further is a caller bug.
_DOMAIN_SLACK = 1.1

# Newhall's weight of the velocity residuals relative to the positions.
_NEWHALL_VELOCITY_WEIGHT = 0.4

_ELEMENT_DOUBLE = "double"
_ELEMENT_VECTOR = "vector"


# --------------------------------------------------------------------------- #
# Chebyshev evaluation (Clenshaw recurrence)
# --------------------------------------------------------------------------- #


def chebyshev_evaluate(coeffs: Any, t_norm: float) -> Any:
    """Evaluate a Chebyshev series at normalized point t_norm ∈ [-1, 1].

    Uses the Clenshaw recurrence: O(n), numerically stable. ``coeffs`` may
    hold scalars or vectors (a sequence of floats or an (n, 3) array).

    Parameters
    ----------
    coeffs : sequence
        Chebyshev coefficients [c0, c1, ..., cn].
    t_norm : float
        Normalized argument in [-1, 1].

    Returns
    -------
    Value of the Chebyshev series at t_norm.
    """
    n = len(coeffs)
    if n == 0:
        return 0.0
    if n == 1:
        return coeffs[0]

    b_kp2 = 0.0
    b_kp1 = 0.0
    two_t = 2.0 * t_norm
    for k in range(n - 1, 0, -1):
        b_k = coeffs[k] + two_t * b_kp1 - b_kp2
        b_kp2 = b_kp1
        b_kp1 = b_k

    return coeffs[0] + t_norm * b_kp1 - b_kp2


def derivative_coefficients(coeffs: np.ndarray) -> np.ndarray:
    """Chebyshev coefficients of d/dx of the series with ``coeffs``.

    Backward recurrence:
        d'_{n-2} = 2(n-1) c_{n-1}
        d'_k = d'_{k+2} + 2(k+1) c_{k+1}  for k = n-3 ... 0
    followed by halving d'_0.
    """
    n = len(coeffs)
    if n <= 1:
        return np.zeros_like(coeffs[:1])

    dp = np.zeros_like(coeffs[:n - 1])
    dp[n - 2] = 2.0 * (n - 1) * coeffs[n - 1]
    for k in range(n - 3, -1, -1):
        dp[k] = (dp[k + 2] if k + 2 < n - 1 else 0.0) + 2.0 * (k + 1) * coeffs[k + 1]
    dp[0] = dp[0] / 2.0
    return dp


def chebyshev_derivative(coeffs: Any, t_norm: float, half_span: float) -> Any:
    """Evaluate the time derivative of a Chebyshev series.

    The derivative series is evaluated at t_norm and scaled by 1/half_span.
    """
    dp = derivative_coefficients(np.asarray(coeffs, dtype=float))
    return chebyshev_evaluate(dp, t_norm) / half_span


# --------------------------------------------------------------------------- #
# Newhall approximation
# --------------------------------------------------------------------------- #


@lru_cache(maxsize=None)
def newhall_matrix(degree: int, samples: int) -> np.ndarray:
    """Linear map from equally spaced samples to Chebyshev coefficients.

    The input vector is [q_0 .. q_{n-1}, q'_0 .. q'_{n-1}] where q'_i is the
    derivative with respect to the normalized variable. The returned matrix
    has shape (degree + 1, 2 * samples).

    The fit minimizes sum (p(x_i) - q_i)^2 + w^2 sum (p'(x_i) - q'_i)^2
    subject to matching position and derivative exactly at both ends; the
    constrained problem is solved through its KKT system.
    """
    m = degree + 1
    x = np.linspace(-1.0, 1.0, samples)
    identity = np.eye(m)
    t_values = _cheb.chebvander(x, degree)
    t_derivatives = np.column_stack(
        [_cheb.chebval(x, _cheb.chebder(identity[k])) for k in range(m)]
    )

    w = _NEWHALL_VELOCITY_WEIGHT
    a = np.vstack([t_values, w * t_derivatives])
    weights = np.concatenate([np.ones(samples), np.full(samples, w)])

    # Endpoint constraints, expressed on the same input vector.
    c = np.vstack([
        t_values[0], t_values[-1], t_derivatives[0], t_derivatives[-1],
    ])
    selection = np.zeros((4, 2 * samples))
    selection[0, 0] = 1.0
    selection[1, samples - 1] = 1.0
    selection[2, samples] = 1.0
    selection[3, 2 * samples - 1] = 1.0

    kkt = np.zeros((m + 4, m + 4))
    kkt[:m, :m] = 2.0 * a.T @ a
    kkt[:m, m:] = c.T
    kkt[m:, :m] = c
    rhs = np.vstack([2.0 * a.T * weights, selection])

    solution = np.linalg.solve(kkt, rhs)
    matrix = solution[:m]
    matrix.setflags(write=False)
    return matrix


# --------------------------------------------------------------------------- #
# Series
# --------------------------------------------------------------------------- #


class ChebyshevSeries:
    """Immutable Chebyshev approximation of a function on [t_min, t_max].

    Coefficients are either scalars (element kind "double") or 3-vectors
    (element kind "vector"), one per degree, lowest degree first.
    """

    def __init__(self, coefficients: Sequence[Any], t_min: float, t_max: float) -> None:
        coeffs = np.array(coefficients, dtype=float)
        if coeffs.size == 0:
            raise ValueError("coefficients must not be empty")
        if coeffs.ndim not in (1, 2):
            raise ValueError(f"coefficients must be scalars or vectors, got shape {coeffs.shape}")
        if not t_min < t_max:
            raise ValueError(f"t_min must be before t_max, got [{t_min}, {t_max}]")
        coeffs.setflags(write=False)
        self._coefficients = coeffs
        self._t_min = float(t_min)
        self._t_max = float(t_max)
        self._t_mid = 0.5 * (self._t_min + self._t_max)
        self._half_span = 0.5 * (self._t_max - self._t_min)
        self._derivative = derivative_coefficients(coeffs)

    @classmethod
    def newhall_approximation(
        cls,
        degree: int,
        positions: Sequence[Any],
        velocities: Sequence[Any],
        t_min: float,
        t_max: float,
    ) -> "ChebyshevSeries":
        """Fit a series of the given degree to equally spaced samples.

        Args:
            degree: Polynomial degree, in [3, 2 * len(positions) - 1].
            positions: Values at t_min, ..., t_max (equally spaced).
            velocities: Time derivatives at the same instants.
            t_min: Time of the first sample.
            t_max: Time of the last sample.
        """
        samples = len(positions)
        if samples != len(velocities):
            raise ValueError(
                f"positions and velocities must have the same length, "
                f"got {samples} and {len(velocities)}"
            )
        if samples < 2:
            raise ValueError(f"at least 2 samples are required, got {samples}")
        if degree < 3 or degree > 2 * samples - 1:
            raise ValueError(
                f"degree must be in [3, {2 * samples - 1}] for {samples} samples, got {degree}"
            )
        if not t_min < t_max:
            raise ValueError(f"t_min must be before t_max, got [{t_min}, {t_max}]")

        half_span = 0.5 * (t_max - t_min)
        q = np.asarray(positions, dtype=float)
        v = np.asarray(velocities, dtype=float) * half_span
        data = np.concatenate([q, v])
        coefficients = newhall_matrix(degree, samples) @ data
        return cls(coefficients, t_min, t_max)

    # --- Accessors ---

    @property
    def t_min(self) -> float:
        return self._t_min

    @property
    def t_max(self) -> float:
        return self._t_max

    @property
    def degree(self) -> int:
        return len(self._coefficients) - 1

    @property
    def coefficients(self) -> np.ndarray:
        return self._coefficients

    @property
    def element(self) -> str:
        return _ELEMENT_DOUBLE if self._coefficients.ndim == 1 else _ELEMENT_VECTOR

    def last_coefficient(self) -> Any:
        return self._coefficients[-1]

    # --- Evaluation ---

    def _normalize(self, t: float) -> float:
        x = (t - self._t_mid) / self._half_span
        if not -_DOMAIN_SLACK <= x <= _DOMAIN_SLACK:
            raise ValueError(
                f"time {t} is outside the series domain [{self._t_min}, {self._t_max}] "
                f"(normalized {x}, must be within ±{_DOMAIN_SLACK})"
            )
        return x

    def evaluate(self, t: float) -> Any:
        """Value of the series at time t."""
        return chebyshev_evaluate(self._coefficients, self._normalize(t))

    def evaluate_derivative(self, t: float) -> Any:
        """Time derivative of the series at time t."""
        return chebyshev_evaluate(self._derivative, self._normalize(t)) / self._half_span

    # --- Serialization ---

    def write_to_message(self) -> dict:
        """JSON-compatible message holding the coefficients and the domain."""
        if self._coefficients.ndim == 1:
            coefficient = [{_ELEMENT_DOUBLE: float(c)} for c in self._coefficients]
        else:
            coefficient = [{_ELEMENT_VECTOR: [float(x) for x in c]} for c in self._coefficients]
        return {
            "coefficient": coefficient,
            "t_min": self._t_min,
            "t_max": self._t_max,
        }

    @classmethod
    def read_from_message(cls, message: dict, element: Optional[str] = None) -> "ChebyshevSeries":
        """Rebuild a series from ``write_to_message`` output.

        Args:
            message: The message.
            element: Expected element kind ("double" or "vector"). If given,
                every coefficient must carry that kind.
        """
        if element not in (None, _ELEMENT_DOUBLE, _ELEMENT_VECTOR):
            raise ValueError(f"Unknown element kind: {element!r}")
        entries = message["coefficient"]
        if not entries:
            raise ValueError("coefficients must not be empty")
        kind = element if element is not None else next(iter(entries[0]))
        coefficients = []
        for entry in entries:
            if kind not in entry:
                raise ValueError(f"coefficient has no {kind!r} value: {entry}")
            coefficients.append(entry[kind])
        return cls(coefficients, message["t_min"], message["t_max"])

    # --- Comparison ---

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChebyshevSeries):
            return NotImplemented
        return (
            self._t_min == other._t_min
            and self._t_max == other._t_max
            and self._coefficients.shape == other._coefficients.shape
            and bool(np.array_equal(self._coefficients, other._coefficients))
        )

    def __hash__(self) -> int:
        return hash((self._t_min, self._t_max, self._coefficients.tobytes()))

    def __repr__(self) -> str:
        return (
            f"ChebyshevSeries(degree={self.degree}, element={self.element!r}, "
            f"t_min={self._t_min}, t_max={self._t_max})"
        )
