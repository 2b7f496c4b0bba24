# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Symplectic partitioned Runge-Kutta-Nyström (SRKN) fixed-step integrators.

Solves q'' = f(q, t) with a splitting method: each stage is a velocity
kick by b_i h followed by a position drift by a_i h. Stormer-Verlet,
leapfrog, Yoshida and McLachlan-Atela methods are all instances of this
scheme and differ only by their (a, b) coefficients.

When the first b or the last a vanishes, the last stage of one step and
the first stage of the next can be merged (first-same-as-last). Between
steps positions and velocities are then desynchronized; they are
resynchronized at sampling points and at the end of the integration.

Increments are accumulated with compensated summation so that long
integrations do not drift.

References:
    McLachlan, R. I. & Atela, P. (1992). "The accuracy of symplectic
    integrators." Nonlinearity 5, 541-562.
    Yoshida, H. (1990). "Construction of higher order symplectic
    integrators." Physics Letters A 150, 262-268.
    Wolfram Research, "SymplecticPartitionedRungeKutta Method for NDSolve",
    algorithms 2 and 3.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Callable, Sequence

import numpy as np

from orbis.domain.double_precision import DoublePrecision, zero_error_like

logger = logging.getLogger(__name__)

# Acceleration callback: (time, positions of shape (n, 3)) -> accelerations.
ComputeAcceleration = Callable[[float, np.ndarray], np.ndarray]


# --- Types ---

class VanishingCoefficients(Enum):
    """Which FSAL merge, if any, the coefficients allow."""
    NONE = "none"
    FIRST_B_VANISHES = "first_b_vanishes"
    LAST_A_VANISHES = "last_a_vanishes"


@dataclass
class SystemState:
    """Time, positions and velocities of a batch of bodies.

    Positions and velocities are DoublePrecision-wrapped arrays of shape
    (n, 3); time is a DoublePrecision-wrapped float.
    """
    time: DoublePrecision
    positions: DoublePrecision
    velocities: DoublePrecision

    @staticmethod
    def from_arrays(time: float, positions: np.ndarray, velocities: np.ndarray) -> "SystemState":
        return SystemState(
            time=zero_error_like(float(time)),
            positions=zero_error_like(np.array(positions, dtype=float)),
            velocities=zero_error_like(np.array(velocities, dtype=float)),
        )

    def copy(self) -> "SystemState":
        return SystemState(self.time.copy(), self.positions.copy(), self.velocities.copy())


@dataclass(frozen=True)
class SymplecticParameters:
    """Parameters of one fixed-step integration.

    Attributes:
        initial: Starting state.
        t_max: Time to integrate to.
        step: Nominal step size (seconds).
        sampling_period: Return every Nth step; 0 returns only the final state.
        t_max_is_exact: Land exactly on t_max by resizing the last interval to
            between 0.5 and 1.5 steps. Otherwise stop at the last step that
            does not pass t_max.
    """
    initial: SystemState
    t_max: float
    step: float
    sampling_period: int = 1
    t_max_is_exact: bool = False

    def __post_init__(self) -> None:
        if not self.step > 0.0:
            raise ValueError(f"step must be positive, got {self.step}")
        if self.sampling_period < 0:
            raise ValueError(f"sampling_period must be >= 0, got {self.sampling_period}")
        if self.t_max < self.initial.time.value:
            raise ValueError(
                f"t_max {self.t_max} is before the initial time {self.initial.time.value}"
            )


# --- Integrator ---

class SymplecticRungeKuttaNystromIntegrator:
    """Fixed-step SRKN integrator defined by its drift (a) and kick (b) weights.

    Stage i kicks the velocities by b_i h using the accelerations at the
    current positions, then drifts the positions by a_i h.
    """

    def __init__(self, a: Sequence[float], b: Sequence[float], name: str = "") -> None:
        if len(a) != len(b) or not a:
            raise ValueError(
                f"a and b must be non-empty and of equal length, got {len(a)} and {len(b)}"
            )
        self.name = name
        a = [float(x) for x in a]
        b = [float(x) for x in b]
        self._fsal_first = 0.0
        self._fsal_last = 0.0
        if b[0] == 0.0:
            self.vanishing_coefficients = VanishingCoefficients.FIRST_B_VANISHES
            self._fsal_first = a[0]
            self._fsal_last = a[-1]
            a = a[1:]
            b = b[1:]
            a[-1] += self._fsal_first
        elif a[-1] == 0.0:
            self.vanishing_coefficients = VanishingCoefficients.LAST_A_VANISHES
            self._fsal_first = b[0]
            self._fsal_last = b[-1]
            a = a[:-1]
            b = b[:-1]
            b[0] += self._fsal_last
        else:
            self.vanishing_coefficients = VanishingCoefficients.NONE
        if not a:
            raise ValueError("coefficients leave no stage after the first-same-as-last merge")

        self._a = tuple(a)
        self._b = tuple(b)
        self.stages = len(self._b)

        # Runge-Kutta time nodes.
        c = [self._fsal_first if self.vanishing_coefficients is VanishingCoefficients.FIRST_B_VANISHES else 0.0]
        for j in range(1, self.stages):
            c.append(c[j - 1] + self._a[j - 1])
        self._c = tuple(c)

    def __repr__(self) -> str:
        return (
            f"SymplecticRungeKuttaNystromIntegrator({self.name!r}, stages={self.stages}, "
            f"{self.vanishing_coefficients.value})"
        )

    def solve(
        self,
        compute_acceleration: ComputeAcceleration,
        parameters: SymplecticParameters,
    ) -> list[SystemState]:
        """Integrate and return the sampled states (the initial state excluded).

        ``compute_acceleration`` receives a scratch array that is overwritten
        between calls; it must not keep a reference to it.
        """
        vanishing = self.vanishing_coefficients
        a, b, c = self._a, self._b, self._c
        stages = self.stages
        t_max = parameters.t_max
        sampling_period = parameters.sampling_period
        exact = parameters.t_max_is_exact

        q_last = parameters.initial.positions.copy()
        v_last = parameters.initial.velocities.copy()
        tn = parameters.initial.time.copy()
        shape = q_last.value.shape

        if exact and t_max == tn.value:
            return [parameters.initial.copy()] if sampling_period == 0 else []

        # Stage accumulators, double-buffered and owned by this call.
        dq_current = np.zeros(shape)
        dq_previous = np.zeros(shape)
        dv_current = np.zeros(shape)
        dv_previous = np.zeros(shape)
        q_stage = q_last.value.copy()
        v_stage = np.zeros(shape)

        if sampling_period == 0:
            capacity = 1
        else:
            capacity = math.ceil(((t_max - tn.value) / parameters.step + 1) / sampling_period) + 1
        logger.debug(
            "%s: integrating %d bodies from %s to %s, at most %d samples",
            self.name or "SRKN", shape[0], tn.value, t_max, capacity,
        )
        solution: list[SystemState] = []

        def advance_dq(step: float, dq_prev: np.ndarray, dq_cur: np.ndarray) -> None:
            np.multiply(v_stage, step, out=dq_cur)
            dq_cur += dq_prev
            np.add(q_last.value, dq_cur, out=q_stage)

        def advance_dv(step: float, q_clock: float, dv_prev: np.ndarray, dv_cur: np.ndarray) -> None:
            acceleration = compute_acceleration(q_clock, q_stage)
            np.multiply(acceleration, step, out=dv_cur)
            dv_cur += dv_prev
            np.add(v_last.value, dv_cur, out=v_stage)

        # Generally equal to the step, except for an exact last interval.
        h = parameters.step

        # Whether positions and velocities refer to the same time. Time is
        # always synchronous with positions.
        synchronized = True
        should_synchronize = False
        sampling_phase = 0

        at_end = not exact and t_max < tn.value + h
        while not at_end:
            if exact:
                # Avoid a tiny last interval: take between 0.5 and 1.5 steps.
                if t_max <= tn.value + 3 * h / 2:
                    at_end = True
                    h = (t_max - tn.value) - tn.error
            elif t_max < tn.value + 2 * h:
                at_end = True

            dq_current.fill(0.0)
            dv_current.fill(0.0)
            q_stage[...] = q_last.value

            if vanishing is not VanishingCoefficients.NONE:
                should_synchronize = at_end or (
                    sampling_period != 0 and sampling_phase % sampling_period == 0
                )

            if vanishing is VanishingCoefficients.FIRST_B_VANISHES and synchronized:
                dq_current, dq_previous = dq_previous, dq_current
                v_stage[...] = v_last.value
                advance_dq(self._fsal_first * h, dq_previous, dq_current)
                synchronized = False

            for i in range(stages):
                dq_current, dq_previous = dq_previous, dq_current
                dv_current, dv_previous = dv_previous, dv_current

                # The kick must precede the drift: each uses the other's output.
                if vanishing is VanishingCoefficients.LAST_A_VANISHES and synchronized and i == 0:
                    advance_dv(self._fsal_first * h, tn.value, dv_previous, dv_current)
                    synchronized = False
                else:
                    advance_dv(b[i] * h, tn.value + (tn.error + c[i] * h), dv_previous, dv_current)

                if (vanishing is VanishingCoefficients.FIRST_B_VANISHES
                        and should_synchronize and i == stages - 1):
                    advance_dq(self._fsal_last * h, dq_previous, dq_current)
                    synchronized = True
                else:
                    advance_dq(a[i] * h, dq_previous, dq_current)

            if vanishing is VanishingCoefficients.LAST_A_VANISHES and should_synchronize:
                dv_current, dv_previous = dv_previous, dv_current
                advance_dv(self._fsal_last * h, tn.value + h, dv_previous, dv_current)
                synchronized = True

            q_last.increment(dq_current)
            v_last.increment(dv_current)
            tn.increment(h)

            if sampling_period != 0:
                if sampling_phase % sampling_period == 0:
                    solution.append(SystemState(tn.copy(), q_last.copy(), v_last.copy()))
                sampling_phase += 1

        if sampling_period == 0:
            solution.append(SystemState(tn.copy(), q_last.copy(), v_last.copy()))
        return solution


# --- Coefficient sets ---

@lru_cache(maxsize=None)
def leapfrog() -> SymplecticRungeKuttaNystromIntegrator:
    """Drift-kick-drift Stormer-Verlet (order 2)."""
    return SymplecticRungeKuttaNystromIntegrator(
        a=(0.5, 0.5), b=(0.0, 1.0), name="Leapfrog",
    )


@lru_cache(maxsize=None)
def velocity_verlet() -> SymplecticRungeKuttaNystromIntegrator:
    """Kick-drift-kick Stormer-Verlet (order 2)."""
    return SymplecticRungeKuttaNystromIntegrator(
        a=(1.0, 0.0), b=(0.5, 0.5), name="VelocityVerlet",
    )


@lru_cache(maxsize=None)
def yoshida_1990_order_4() -> SymplecticRungeKuttaNystromIntegrator:
    """Composition of three leapfrogs with Yoshida weights (order 4)."""
    cbrt2 = 2.0 ** (1.0 / 3.0)
    w1 = 1.0 / (2.0 - cbrt2)
    w0 = -cbrt2 / (2.0 - cbrt2)
    return SymplecticRungeKuttaNystromIntegrator(
        a=(w1 / 2.0, (w0 + w1) / 2.0, (w0 + w1) / 2.0, w1 / 2.0),
        b=(0.0, w1, w0, w1),
        name="Yoshida1990Order4",
    )


@lru_cache(maxsize=None)
def mclachlan_atela_1992_order_4_optimal() -> SymplecticRungeKuttaNystromIntegrator:
    return SymplecticRungeKuttaNystromIntegrator(
        a=(0.5153528374311229364,
           -0.085782019412973646,
           0.4415830236164665242,
           0.1288461583653841854),
        b=(0.1344961992774310892,
           -0.2248198030794208058,
           0.7563200005156682911,
           0.3340036032863214255),
        name="McLachlanAtela1992Order4Optimal",
    )


@lru_cache(maxsize=None)
def mclachlan_atela_1992_order_5_optimal() -> SymplecticRungeKuttaNystromIntegrator:
    return SymplecticRungeKuttaNystromIntegrator(
        a=(0.339839625839110000,
           -0.088601336903027329,
           0.5858564768259621188,
           -0.603039356536491888,
           0.3235807965546976394,
           0.4423637942197494587),
        b=(0.1193900292875672758,
           0.6989273703824752308,
           -0.1713123582716007754,
           0.4012695022513534480,
           0.0107050818482359840,
           -0.0589796254980311632),
        name="McLachlanAtela1992Order5Optimal",
    )
