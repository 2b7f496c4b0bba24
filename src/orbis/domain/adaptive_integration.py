# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Embedded explicit Runge-Kutta-Nyström integrator with adaptive steps.

Solves q'' = f(q, t) with an embedded pair: the higher-order solution is
propagated, the difference with the lower-order one estimates the local
error. A caller-supplied ``tolerance_to_error_ratio`` turns that estimate
into a ratio; steps with a ratio below 1 are rejected and retried with a
smaller step.

References:
    Dormand, J. R., El-Mikkawy, M. E. A. & Prince, P. J. (1987).
    "Families of Runge-Kutta-Nyström formulae." IMA Journal of Numerical
    Analysis 7, 235-250. Table 3 (RKN 4(3)4FM).
"""

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Sequence

import numpy as np

from orbis.domain.symplectic_integration import ComputeAcceleration, SystemState

logger = logging.getLogger(__name__)


# --- Types ---

@dataclass(frozen=True)
class SystemStateError:
    """Local error estimate of one step, arrays of shape (n, 3)."""
    position_error: np.ndarray
    velocity_error: np.ndarray


ToleranceToErrorRatio = Callable[[float, SystemStateError], float]


@dataclass(frozen=True)
class AdaptiveStepSize:
    """Step size control of one adaptive integration.

    Attributes:
        first_time_step: Trial size of the first step; its sign sets the
            direction of integration.
        safety_factor: Factor in (0, 1) applied to every new step estimate.
        tolerance_to_error_ratio: Maps (h, error) to tolerance / error; the
            step is accepted when the result is at least 1.
        max_steps: Budget of attempted steps (accepted and rejected).
        max_growth: Largest factor by which a step may grow.
    """
    first_time_step: float
    safety_factor: float
    tolerance_to_error_ratio: ToleranceToErrorRatio
    max_steps: int = 1_000_000
    max_growth: float = 5.0

    def __post_init__(self) -> None:
        if self.first_time_step == 0.0 or math.isnan(self.first_time_step):
            raise ValueError(f"first_time_step must be nonzero, got {self.first_time_step}")
        if not 0.0 < self.safety_factor < 1.0:
            raise ValueError(f"safety_factor must be in (0, 1), got {self.safety_factor}")
        if self.max_steps <= 0:
            raise ValueError(f"max_steps must be positive, got {self.max_steps}")
        if not self.max_growth > 1.0:
            raise ValueError(f"max_growth must be greater than 1, got {self.max_growth}")


@dataclass
class IntegrationProblem:
    """What to integrate and where accepted states go."""
    compute_acceleration: ComputeAcceleration
    initial_state: SystemState
    t_final: float
    append_state: Callable[[SystemState], None]


@dataclass(frozen=True)
class AdaptiveSolveStatistics:
    """Outcome of an adaptive integration."""
    accepted_steps: int
    rejected_steps: int
    final_time: float
    last_step: float


# --- Integrator ---

class EmbeddedExplicitRungeKuttaNystromIntegrator:
    """Embedded explicit RKN pair given by its Butcher-Nyström tableau.

    ``a`` is the strictly lower triangular matrix, one row per stage, the
    first row empty. ``b_hat``/``b_prime_hat`` are the position/velocity
    weights of the propagated solution, ``b``/``b_prime`` those of the
    embedded one. With ``first_same_as_last`` the last stage is evaluated at
    the new position and reused as the first stage of the next step.
    """

    def __init__(
        self,
        c: Sequence[float],
        a: Sequence[Sequence[float]],
        b_hat: Sequence[float],
        b_prime_hat: Sequence[float],
        b: Sequence[float],
        b_prime: Sequence[float],
        higher_order: int,
        lower_order: int,
        first_same_as_last: bool,
        name: str = "",
    ) -> None:
        stages = len(c)
        if stages == 0:
            raise ValueError("tableau must have at least one stage")
        for weights_name, weights in (("b_hat", b_hat), ("b_prime_hat", b_prime_hat),
                                      ("b", b), ("b_prime", b_prime)):
            if len(weights) != stages:
                raise ValueError(f"{weights_name} must have {stages} entries, got {len(weights)}")
        if len(a) != stages or any(len(row) != i for i, row in enumerate(a)):
            raise ValueError("a must be strictly lower triangular with one row per stage")
        if c[0] != 0.0:
            raise ValueError(f"first node must be 0, got {c[0]}")
        if not lower_order < higher_order:
            raise ValueError(
                f"lower_order must be less than higher_order, got {lower_order} and {higher_order}"
            )
        if first_same_as_last and (c[-1] != 1.0 or b_hat[-1] != 0.0):
            raise ValueError("first-same-as-last requires c[-1] == 1 and b_hat[-1] == 0")

        self.name = name
        self.stages = stages
        self.higher_order = higher_order
        self.lower_order = lower_order
        self.first_same_as_last = first_same_as_last
        self._c = np.array(c, dtype=float)
        self._a = tuple(np.array(row, dtype=float) for row in a)
        self._b_hat = np.array(b_hat, dtype=float)
        self._b_prime_hat = np.array(b_prime_hat, dtype=float)
        self._position_error_weights = self._b_hat - np.array(b, dtype=float)
        self._velocity_error_weights = self._b_prime_hat - np.array(b_prime, dtype=float)

    def __repr__(self) -> str:
        return (
            f"EmbeddedExplicitRungeKuttaNystromIntegrator({self.name!r}, "
            f"order {self.higher_order}({self.lower_order}), stages={self.stages})"
        )

    def solve(
        self,
        problem: IntegrationProblem,
        adaptive_step_size: AdaptiveStepSize,
    ) -> AdaptiveSolveStatistics:
        """Integrate from the initial state to exactly ``problem.t_final``.

        Every accepted step is handed to ``problem.append_state``; the initial
        state is not.
        """
        f = problem.compute_acceleration
        t_final = problem.t_final
        stages = self.stages
        c = self._c

        q = problem.initial_state.positions.copy()
        v = problem.initial_state.velocities.copy()
        t = problem.initial_state.time.copy()

        h = adaptive_step_size.first_time_step
        direction = 1.0 if h > 0.0 else -1.0
        time_to_end = (t_final - t.value) - t.error
        if time_to_end == 0.0:
            return AdaptiveSolveStatistics(0, 0, t.value, 0.0)
        if direction * time_to_end < 0.0:
            raise ValueError(
                f"first_time_step {h} points away from t_final {t_final} "
                f"(initial time {t.value})"
            )

        g = np.zeros((stages,) + q.value.shape)
        if self.first_same_as_last:
            g[0] = f(t.value, q.value)

        accepted = 0
        rejected = 0
        exponent = 1.0 / (self.lower_order + 1)
        ratio = None
        at_end = False
        while not at_end:
            while True:
                if accepted + rejected >= adaptive_step_size.max_steps:
                    raise RuntimeError(
                        f"{self.name or 'RKN'}: step budget of {adaptive_step_size.max_steps} "
                        f"exhausted at t={t.value} before reaching {t_final}"
                    )
                if ratio is not None:
                    factor = adaptive_step_size.safety_factor * ratio ** exponent
                    h *= min(adaptive_step_size.max_growth, factor)
                    if h == 0.0:
                        raise RuntimeError(f"step size underflow at t={t.value}")

                # Land exactly on t_final.
                time_to_end = (t_final - t.value) - t.error
                at_end = direction * h >= direction * time_to_end
                if at_end:
                    h = time_to_end

                first_stage = 1 if self.first_same_as_last else 0
                for i in range(first_stage, stages):
                    q_stage = q.value + c[i] * h * v.value
                    if i > 0:
                        q_stage = q_stage + (h * h) * np.tensordot(self._a[i], g[:i], axes=1)
                    g[i] = f(t.value + (t.error + c[i] * h), q_stage)

                dq_hat = h * v.value + (h * h) * np.tensordot(self._b_hat, g, axes=1)
                dv_hat = h * np.tensordot(self._b_prime_hat, g, axes=1)
                error = SystemStateError(
                    position_error=(h * h) * np.tensordot(self._position_error_weights, g, axes=1),
                    velocity_error=h * np.tensordot(self._velocity_error_weights, g, axes=1),
                )
                ratio = adaptive_step_size.tolerance_to_error_ratio(h, error)
                if math.isnan(ratio):
                    raise RuntimeError(
                        f"{self.name or 'RKN'}: error ratio is NaN at t={t.value}, h={h}"
                    )
                if ratio >= 1.0:
                    break
                rejected += 1

            accepted += 1
            q.increment(dq_hat)
            v.increment(dv_hat)
            t.increment(h)
            if self.first_same_as_last:
                g[0] = g[stages - 1]
            problem.append_state(SystemState(t.copy(), q.copy(), v.copy()))

        logger.debug(
            "%s: reached %s in %d steps (%d rejected)",
            self.name or "RKN", t.value, accepted, rejected,
        )
        return AdaptiveSolveStatistics(
            accepted_steps=accepted,
            rejected_steps=rejected,
            final_time=t.value,
            last_step=h,
        )


# --- Tableaux ---

@lru_cache(maxsize=None)
def dormand_el_mikkawy_prince_1986_rkn_434fm() -> EmbeddedExplicitRungeKuttaNystromIntegrator:
    """RKN 4(3)4FM: order 4 propagated, order 3 embedded, four stages, FSAL."""
    return EmbeddedExplicitRungeKuttaNystromIntegrator(
        c=(0.0, 1.0 / 4.0, 7.0 / 10.0, 1.0),
        a=(
            (),
            (1.0 / 32.0,),
            (7.0 / 1000.0, 119.0 / 500.0),
            (1.0 / 14.0, 8.0 / 27.0, 25.0 / 189.0),
        ),
        b_hat=(1.0 / 14.0, 8.0 / 27.0, 25.0 / 189.0, 0.0),
        b_prime_hat=(1.0 / 14.0, 32.0 / 81.0, 250.0 / 567.0, 5.0 / 54.0),
        b=(-7.0 / 150.0, 67.0 / 150.0, 3.0 / 20.0, -1.0 / 20.0),
        b_prime=(13.0 / 21.0, -20.0 / 27.0, 275.0 / 189.0, -1.0 / 3.0),
        higher_order=4,
        lower_order=3,
        first_same_as_last=True,
        name="DormandElMikkawyPrince1986RKN434FM",
    )
