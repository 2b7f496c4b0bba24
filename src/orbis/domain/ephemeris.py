# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""N-body ephemeris of massive bodies and flows of massless bodies.

The ephemeris integrates the massive bodies with a fixed-step symplectic
integrator and stores each body's motion as a ContinuousTrajectory. Massless
bodies (vessels) are then flowed through the gravity field the ephemeris
describes, either with the same fixed-step integrator or with an adaptive
embedded RKN integrator.

Massive bodies are kept oblate first, then spherical, so that the order-2
zonal terms are computed for a contiguous prefix of the bodies.
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Optional, Sequence

import numpy as np

from orbis.domain.adaptive_integration import (
    AdaptiveStepSize,
    EmbeddedExplicitRungeKuttaNystromIntegrator,
    IntegrationProblem,
    SystemStateError,
)
from orbis.domain.bodies import DegreesOfFreedom, MassiveBody
from orbis.domain.continuous_trajectory import ContinuousTrajectory, Hint
from orbis.domain.gravity import newtonian_pair, order_2_zonal_acceleration
from orbis.domain.symplectic_integration import (
    SymplecticParameters,
    SymplecticRungeKuttaNystromIntegrator,
    SystemState,
)
from orbis.domain.trajectory import Trajectory

logger = logging.getLogger(__name__)

_ADAPTIVE_SAFETY_FACTOR = 0.9


# --- Configuration ---

@dataclass(frozen=True)
class FittingTolerances:
    """Error bounds driving the degree of the Chebyshev fits (metres)."""
    low: float
    high: float

    def __post_init__(self) -> None:
        if not 0.0 < self.low < self.high:
            raise ValueError(
                f"tolerances must satisfy 0 < low < high, got low={self.low}, high={self.high}"
            )


@dataclass(frozen=True)
class FixedStepParameters:
    """Integrator and step used for the massive bodies and fixed-step flows."""
    integrator: SymplecticRungeKuttaNystromIntegrator
    step: float

    def __post_init__(self) -> None:
        if not self.step > 0.0:
            raise ValueError(f"step must be positive, got {self.step}")


# --- Error ratio ---

def tolerance_to_error_ratio(
    length_integration_tolerance: float,
    speed_integration_tolerance: float,
    current_step_size: float,
    error: SystemStateError,
) -> float:
    """Smaller of the position and velocity tolerance-to-error ratios.

    The error of a batch is the largest error norm over its bodies.
    """
    max_length_error = float(np.max(np.linalg.norm(error.position_error, axis=-1)))
    max_speed_error = float(np.max(np.linalg.norm(error.velocity_error, axis=-1)))
    length_ratio = (
        length_integration_tolerance / max_length_error if max_length_error > 0.0 else np.inf
    )
    speed_ratio = (
        speed_integration_tolerance / max_speed_error if max_speed_error > 0.0 else np.inf
    )
    return float(min(length_ratio, speed_ratio))


# --- Ephemeris ---

class Ephemeris:
    """Massive bodies, their continuous trajectories and the integrator.

    Args:
        bodies: Massive bodies; each must appear once.
        initial_state: Degrees of freedom of the bodies, same order.
        initial_time: Time of ``initial_state``.
        fixed_step_parameters: Integrator and step for the massive bodies.
        fitting_tolerances: Tolerances of the Chebyshev fits.
    """

    def __init__(
        self,
        bodies: Sequence[MassiveBody],
        initial_state: Sequence[DegreesOfFreedom],
        initial_time: float,
        fixed_step_parameters: FixedStepParameters,
        fitting_tolerances: FittingTolerances,
    ) -> None:
        if not bodies:
            raise ValueError("an ephemeris needs at least one massive body")
        if len(bodies) != len(initial_state):
            raise ValueError(
                f"got {len(bodies)} bodies but {len(initial_state)} initial states"
            )
        if len({id(body) for body in bodies}) != len(bodies):
            raise ValueError("duplicate massive body")

        self._fixed_step_parameters = fixed_step_parameters
        self._fitting_tolerances = fitting_tolerances

        # Oblate bodies first; stable within each group.
        order = sorted(range(len(bodies)), key=lambda i: not bodies[i].is_oblate)
        self._bodies = tuple(bodies[i] for i in order)
        self._number_of_oblate_bodies = sum(1 for body in self._bodies if body.is_oblate)
        self._gravitational_parameters = np.array(
            [body.gravitational_parameter for body in self._bodies]
        )

        self._trajectories: dict[MassiveBody, ContinuousTrajectory] = {}
        positions = np.empty((len(bodies), 3))
        velocities = np.empty((len(bodies), 3))
        for k, i in enumerate(order):
            body = bodies[i]
            dof = initial_state[i]
            trajectory = ContinuousTrajectory(
                fixed_step_parameters.step,
                fitting_tolerances.low,
                fitting_tolerances.high,
            )
            trajectory.append(initial_time, dof)
            self._trajectories[body] = trajectory
            positions[k] = dof.position
            velocities[k] = dof.velocity
        self._last_state = SystemState.from_arrays(initial_time, positions, velocities)

        logger.debug(
            "Ephemeris with %d massive bodies (%d oblate) at t=%s, step %s",
            len(self._bodies), self._number_of_oblate_bodies, initial_time,
            fixed_step_parameters.step,
        )

    # --- Accessors ---

    @property
    def bodies(self) -> tuple[MassiveBody, ...]:
        """Massive bodies, oblate first."""
        return self._bodies

    @property
    def fixed_step_parameters(self) -> FixedStepParameters:
        return self._fixed_step_parameters

    @property
    def fitting_tolerances(self) -> FittingTolerances:
        return self._fitting_tolerances

    def trajectory(self, body: MassiveBody) -> ContinuousTrajectory:
        try:
            return self._trajectories[body]
        except KeyError:
            raise ValueError(f"unknown body {body.name!r}") from None

    def empty(self) -> bool:
        """True until every body has at least one fitted series."""
        return any(trajectory.empty() for trajectory in self._trajectories.values())

    def t_min(self) -> float:
        """Start of the interval on which every trajectory is defined."""
        return max(trajectory.t_min() for trajectory in self._trajectories.values())

    def t_max(self) -> float:
        """End of the interval on which every trajectory is defined."""
        return min(trajectory.t_max() for trajectory in self._trajectories.values())

    # --- Mutation ---

    def forget_before(self, time: float) -> None:
        for trajectory in self._trajectories.values():
            trajectory.forget_before(time)

    def prolong(self, time: float) -> None:
        """Integrate the massive bodies until every trajectory covers ``time``.

        Integration resumes from the last integrated state; it proceeds one
        step at a time past ``time`` until the Chebyshev blocks close.
        """
        step = self._fixed_step_parameters.step
        integrator = self._fixed_step_parameters.integrator
        last_time = self._last_state.time.value
        t_final = last_time + step if time <= last_time else time

        while self.empty() or self.t_max() < time:
            parameters = SymplecticParameters(
                initial=self._last_state,
                t_max=t_final,
                step=step,
                sampling_period=1,
            )
            solution = integrator.solve(self._massive_bodies_acceleration, parameters)
            for state in solution:
                self._append_massive_bodies_state(state)
            if solution:
                self._last_state = solution[-1]
            t_final += step

        logger.debug(
            "Prolonged ephemeris to %s for t=%s", self._last_state.time.value, time,
        )

    def _prolong_past(self, time: float) -> None:
        # Stage times of a flow may round one ULP past its end time.
        if self.empty() or self.t_max() <= time:
            self.prolong(time + self._fixed_step_parameters.step)

    def _append_massive_bodies_state(self, state: SystemState) -> None:
        time = state.time.value
        positions = state.positions.value
        velocities = state.velocities.value
        for i, body in enumerate(self._bodies):
            self._trajectories[body].append(
                time, DegreesOfFreedom.from_arrays(positions[i], velocities[i]),
            )

    # --- Flows ---

    def flow_with_fixed_step(
        self,
        trajectories: Sequence[Trajectory],
        step: float,
        time: float,
    ) -> None:
        """Flow massless trajectories to ``time`` with the fixed-step integrator.

        All trajectories must end at the same time. The last appended point
        does not go past ``time``.
        """
        if not trajectories:
            return
        last_time = self._check_flowed_trajectories(trajectories)
        self._prolong_past(time)

        hints = [Hint() for _ in self._bodies]
        initial = self._massless_state(trajectories, last_time)
        parameters = SymplecticParameters(
            initial=initial,
            t_max=time,
            step=step,
            sampling_period=1,
        )
        solution = self._fixed_step_parameters.integrator.solve(
            partial(self._massless_bodies_acceleration, trajectories, hints),
            parameters,
        )
        for state in solution:
            self._append_massless_bodies_state(trajectories, state)

        logger.debug(
            "Flowed %d trajectories from %s to %s in %d fixed steps",
            len(trajectories), last_time, time, len(solution),
        )

    def flow_with_adaptive_step(
        self,
        trajectory: Trajectory,
        length_integration_tolerance: float,
        speed_integration_tolerance: float,
        integrator: EmbeddedExplicitRungeKuttaNystromIntegrator,
        time: float,
        first_time_step: Optional[float] = None,
    ) -> None:
        """Flow one massless trajectory to exactly ``time`` with adaptive steps."""
        trajectories = [trajectory]
        last_time = self._check_flowed_trajectories(trajectories)
        if time == last_time:
            return
        self._prolong_past(time)

        if first_time_step is None:
            first_time_step = time - last_time
        hints = [Hint() for _ in self._bodies]
        problem = IntegrationProblem(
            compute_acceleration=partial(self._massless_bodies_acceleration, trajectories, hints),
            initial_state=self._massless_state(trajectories, last_time),
            t_final=time,
            append_state=partial(self._append_massless_bodies_state, trajectories),
        )
        step_size = AdaptiveStepSize(
            first_time_step=first_time_step,
            safety_factor=_ADAPTIVE_SAFETY_FACTOR,
            tolerance_to_error_ratio=partial(
                tolerance_to_error_ratio,
                length_integration_tolerance,
                speed_integration_tolerance,
            ),
        )
        statistics = integrator.solve(problem, step_size)

        if statistics.rejected_steps > statistics.accepted_steps:
            logger.warning(
                "Adaptive flow to %s rejected %d steps for %d accepted; "
                "the first time step %s or the tolerances may be unsuitable",
                time, statistics.rejected_steps, statistics.accepted_steps, first_time_step,
            )
        else:
            logger.debug(
                "Flowed trajectory from %s to %s in %d adaptive steps (%d rejected)",
                last_time, time, statistics.accepted_steps, statistics.rejected_steps,
            )

    def _check_flowed_trajectories(self, trajectories: Sequence[Trajectory]) -> float:
        if len({id(trajectory) for trajectory in trajectories}) != len(trajectories):
            raise ValueError("duplicate trajectory")
        if len({id(trajectory.body) for trajectory in trajectories}) != len(trajectories):
            raise ValueError("several trajectories for the same body")
        last_times = {trajectory.last().time for trajectory in trajectories}
        if len(last_times) != 1:
            raise ValueError(f"trajectories do not end at the same time: {sorted(last_times)}")
        return last_times.pop()

    @staticmethod
    def _massless_state(trajectories: Sequence[Trajectory], time: float) -> SystemState:
        points = [trajectory.last().degrees_of_freedom for trajectory in trajectories]
        return SystemState.from_arrays(
            time,
            np.array([dof.position for dof in points]),
            np.array([dof.velocity for dof in points]),
        )

    @staticmethod
    def _append_massless_bodies_state(trajectories: Sequence[Trajectory], state: SystemState) -> None:
        positions = state.positions.value
        velocities = state.velocities.value
        for i, trajectory in enumerate(trajectories):
            trajectory.append(
                state.time.value,
                DegreesOfFreedom.from_arrays(positions[i], velocities[i]),
            )

    # --- Accelerations ---

    def _massive_bodies_acceleration(self, time: float, positions: np.ndarray) -> np.ndarray:
        return self.compute_massive_bodies_gravitational_accelerations(positions)

    def _massless_bodies_acceleration(
        self,
        trajectories: Sequence[Trajectory],
        hints: Sequence[Hint],
        time: float,
        positions: np.ndarray,
    ) -> np.ndarray:
        return self.compute_massless_bodies_gravitational_accelerations(
            time, positions, trajectories, hints,
        )

    def compute_massive_bodies_gravitational_accelerations(self, positions: np.ndarray) -> np.ndarray:
        """Mutual accelerations of the massive bodies at ``positions`` (n, 3)."""
        positions = np.asarray(positions, dtype=float)
        mus = self._gravitational_parameters
        n = len(self._bodies)
        accelerations = np.zeros((n, 3))

        for b1 in range(n - 1):
            # Δq = q_b1 - q_b2 for every later body b2.
            delta = positions[b1] - positions[b1 + 1:]
            k = newtonian_pair(delta)
            accelerations[b1 + 1:] += mus[b1] * k
            accelerations[b1] -= np.sum(mus[b1 + 1:, np.newaxis] * k, axis=0)

        # Zonal term of each oblate body on every other massive body, with
        # the reaction on the oblate body.
        for o in range(self._number_of_oblate_bodies):
            oblateness = self._bodies[o].oblateness
            others = np.arange(n) != o
            z = order_2_zonal_acceleration(oblateness, positions[others] - positions[o])
            accelerations[others] += mus[o] * z
            accelerations[o] -= np.sum(mus[others, np.newaxis] * z, axis=0)

        return accelerations

    def compute_massless_bodies_gravitational_accelerations(
        self,
        time: float,
        positions: np.ndarray,
        trajectories: Sequence[Trajectory],
        hints: Sequence[Hint],
    ) -> np.ndarray:
        """Accelerations of massless bodies at ``positions`` (m, 3) at ``time``.

        The massive bodies are read from their continuous trajectories; the
        intrinsic acceleration of each trajectory, if any, is added last.
        """
        positions = np.asarray(positions, dtype=float)
        accelerations = np.zeros(positions.shape)

        for i, body in enumerate(self._bodies):
            q_body = self._trajectories[body].evaluate_position(time, hints[i])
            mu = self._gravitational_parameters[i]
            accelerations += mu * newtonian_pair(q_body - positions)
            if body.is_oblate:
                accelerations += mu * order_2_zonal_acceleration(body.oblateness, positions - q_body)

        for j, trajectory in enumerate(trajectories):
            if trajectory.has_intrinsic_acceleration():
                accelerations[j] += np.asarray(trajectory.evaluate_intrinsic_acceleration(time))

        return accelerations
