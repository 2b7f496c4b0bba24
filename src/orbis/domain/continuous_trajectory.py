# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Continuous trajectory: a piecewise Chebyshev stand-in for sampled states.

Samples arrive at equally spaced instants. Every 8 intervals the buffered
9 samples are compressed into one Chebyshev series whose degree adapts to
the requested accuracy. Queries locate the covering series by binary search
or, for sequential scans, through a caller-held ``Hint``.
"""

import bisect
import logging
import sys
from typing import Optional

import numpy as np

from orbis.domain.bodies import DegreesOfFreedom
from orbis.domain.chebyshev_series import ChebyshevSeries
from orbis.domain.double_precision import ulp_distance

logger = logging.getLogger(__name__)

MIN_DEGREE = 3
MAX_DEGREE = 17

# Number of intervals compressed into one series.
DIVISIONS = 8


class Hint:
    """Caller-owned cache of the index of the last series used.

    Only an accelerator: a stale hint, or one used with another trajectory,
    never changes a result.
    """

    __slots__ = ("index",)

    def __init__(self) -> None:
        self.index = sys.maxsize


class ContinuousTrajectory:
    """Gap-free sequence of Chebyshev series fitted to sampled positions.

    Args:
        step: Spacing of the appended samples (seconds).
        low_tolerance: Below this error estimate the degree is lowered.
        high_tolerance: Above this error estimate the degree is raised.
    """

    def __init__(self, step: float, low_tolerance: float, high_tolerance: float) -> None:
        if not step > 0.0:
            raise ValueError(f"step must be positive, got {step}")
        if not low_tolerance < high_tolerance:
            raise ValueError(
                f"low_tolerance must be less than high_tolerance, "
                f"got {low_tolerance} and {high_tolerance}"
            )
        self._step = float(step)
        self._low_tolerance = float(low_tolerance)
        self._high_tolerance = float(high_tolerance)
        self._degree = (MIN_DEGREE + MAX_DEGREE) // 2
        self._series: list[ChebyshevSeries] = []
        # Upper bounds of the series, kept in sync for bisection.
        self._t_maxes: list[float] = []
        self._first_time: Optional[float] = None
        self._last_points: list[tuple[float, DegreesOfFreedom]] = []

    # --- Accessors ---

    @property
    def step(self) -> float:
        return self._step

    @property
    def degree(self) -> int:
        """Current target degree of the fits."""
        return self._degree

    @property
    def number_of_series(self) -> int:
        return len(self._series)

    def empty(self) -> bool:
        return not self._series

    def t_min(self) -> float:
        if self.empty():
            raise RuntimeError("Empty trajectory")
        return self._first_time

    def t_max(self) -> float:
        if self.empty():
            raise RuntimeError("Empty trajectory")
        return self._series[-1].t_max

    # --- Mutation ---

    def append(self, time: float, degrees_of_freedom: DegreesOfFreedom) -> None:
        """Record the state at ``time``, one step after the previous sample."""
        if self._first_time is None:
            self._first_time = time
        elif self._last_points:
            expected = self._last_points[-1][0] + self._step
            if ulp_distance(expected, time) > 1:
                raise ValueError(
                    f"Append at times that are not equally spaced: "
                    f"expected {expected!r}, got {time!r}"
                )

        if len(self._last_points) == DIVISIONS:
            q = np.empty((DIVISIONS + 1, 3))
            v = np.empty((DIVISIONS + 1, 3))
            for i, (_, dof) in enumerate(self._last_points):
                q[i] = dof.position
                v[i] = dof.velocity
            q[DIVISIONS] = degrees_of_freedom.position
            v[DIVISIONS] = degrees_of_freedom.velocity
            self._append_series(self._fit(q, v, self._last_points[0][0], time))
            self._last_points.clear()

        # The block's last sample is also the first of the next block.
        self._last_points.append((time, degrees_of_freedom))

    def _fit(self, q: np.ndarray, v: np.ndarray, t_min: float, t_max: float) -> ChebyshevSeries:
        """Fit one block, adapting the degree between the two tolerances."""
        series = ChebyshevSeries.newhall_approximation(self._degree, q, v, t_min, t_max)
        error_estimate = float(np.linalg.norm(series.last_coefficient()))

        # Increase the degree while the approximation is not accurate enough.
        while error_estimate > self._high_tolerance:
            if self._degree >= MAX_DEGREE:
                raise RuntimeError(
                    f"Cannot reach fitting tolerance {self._high_tolerance} on "
                    f"[{t_min}, {t_max}] with degree {MAX_DEGREE}: "
                    f"error estimate {error_estimate}"
                )
            self._degree += 1
            logger.debug(
                "Increasing degree for %s to %d because error estimate was %g",
                id(self), self._degree, error_estimate,
            )
            series = ChebyshevSeries.newhall_approximation(self._degree, q, v, t_min, t_max)
            error_estimate = float(np.linalg.norm(series.last_coefficient()))

        # Decrease the degree while the approximation is too accurate, unless
        # that would break the high tolerance.
        while error_estimate < self._low_tolerance and self._degree > MIN_DEGREE:
            tentative_degree = self._degree - 1
            logger.debug(
                "Tentatively decreasing degree for %s to %d because error estimate was %g",
                id(self), tentative_degree, error_estimate,
            )
            tentative_series = ChebyshevSeries.newhall_approximation(
                tentative_degree, q, v, t_min, t_max,
            )
            tentative_error_estimate = float(np.linalg.norm(tentative_series.last_coefficient()))
            if tentative_error_estimate > self._high_tolerance:
                break
            self._degree = tentative_degree
            error_estimate = tentative_error_estimate
            series = tentative_series

        logger.debug(
            "Using degree %d for %s with error estimate %g",
            self._degree, id(self), error_estimate,
        )
        return series

    def _append_series(self, series: ChebyshevSeries) -> None:
        self._series.append(series)
        self._t_maxes.append(series.t_max)

    def forget_before(self, time: float) -> None:
        """Drop the series that end before ``time``.

        If nothing is left the trajectory returns to its freshly constructed
        state; otherwise ``t_min()`` becomes ``time``.
        """
        first_kept = bisect.bisect_left(self._t_maxes, time)
        del self._series[:first_kept]
        del self._t_maxes[:first_kept]

        if not self._series:
            self._degree = (MIN_DEGREE + MAX_DEGREE) // 2
            self._first_time = None
            self._last_points.clear()
        else:
            self._first_time = max(self._first_time, time)

    # --- Evaluation ---

    def evaluate_position(self, time: float, hint: Optional[Hint] = None) -> np.ndarray:
        """Position at ``time`` as an array of shape (3,)."""
        return np.asarray(self._series_for(time, hint).evaluate(time))

    def evaluate_velocity(self, time: float, hint: Optional[Hint] = None) -> np.ndarray:
        """Velocity at ``time`` as an array of shape (3,)."""
        return np.asarray(self._series_for(time, hint).evaluate_derivative(time))

    def evaluate_degrees_of_freedom(self, time: float, hint: Optional[Hint] = None) -> DegreesOfFreedom:
        series = self._series_for(time, hint)
        return DegreesOfFreedom.from_arrays(series.evaluate(time), series.evaluate_derivative(time))

    def _series_for(self, time: float, hint: Optional[Hint]) -> ChebyshevSeries:
        if not self.t_min() <= time <= self.t_max():
            raise ValueError(
                f"time {time} is outside [{self.t_min()}, {self.t_max()}]"
            )
        if self._may_use_hint(time, hint):
            return self._series[hint.index]
        index = self._find_series_index(time)
        if hint is not None:
            hint.index = index
        return self._series[index]

    def _find_series_index(self, time: float) -> int:
        """Index of the first series whose t_max is not before ``time``."""
        index = bisect.bisect_left(self._t_maxes, time)
        if index == len(self._series):
            raise ValueError(f"No series covers time {time}")
        return index

    def _may_use_hint(self, time: float, hint: Optional[Hint]) -> bool:
        if hint is None:
            return False
        index = hint.index
        if index < len(self._series) and self._series[index].t_min <= time:
            if time <= self._series[index].t_max:
                return True
            if index < len(self._series) - 1 and time <= self._series[index + 1].t_max:
                hint.index = index + 1
                return True
        return False

    # --- Serialization ---

    def write_to_message(self) -> dict:
        return {
            "step": self._step,
            "low_tolerance": self._low_tolerance,
            "high_tolerance": self._high_tolerance,
            "degree": self._degree,
            "first_time": self._first_time,
            "series": [series.write_to_message() for series in self._series],
            "last_points": [
                {
                    "time": time,
                    "position": list(dof.position),
                    "velocity": list(dof.velocity),
                }
                for time, dof in self._last_points
            ],
        }

    @classmethod
    def read_from_message(cls, message: dict) -> "ContinuousTrajectory":
        trajectory = cls(message["step"], message["low_tolerance"], message["high_tolerance"])
        degree = int(message["degree"])
        if not MIN_DEGREE <= degree <= MAX_DEGREE:
            raise ValueError(f"degree must be in [{MIN_DEGREE}, {MAX_DEGREE}], got {degree}")
        trajectory._degree = degree
        trajectory._first_time = message["first_time"]
        for series_message in message["series"]:
            trajectory._append_series(
                ChebyshevSeries.read_from_message(series_message, element="vector")
            )
        for point in message["last_points"]:
            trajectory._last_points.append((
                point["time"],
                DegreesOfFreedom(tuple(point["position"]), tuple(point["velocity"])),
            ))
        return trajectory

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContinuousTrajectory):
            return NotImplemented
        return (
            self._step == other._step
            and self._low_tolerance == other._low_tolerance
            and self._high_tolerance == other._high_tolerance
            and self._degree == other._degree
            and self._first_time == other._first_time
            and self._series == other._series
            and self._last_points == other._last_points
        )

    # Mutable; not usable as a dict key.
    __hash__ = None
