# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Tests for the ephemeris: prolongation, accelerations and flows."""

import logging
import math

import numpy as np
import pytest

from orbis.domain.adaptive_integration import (
    AdaptiveSolveStatistics,
    dormand_el_mikkawy_prince_1986_rkn_434fm,
)
from orbis.domain.bodies import DegreesOfFreedom, MassiveBody, MasslessBody, Oblateness
from orbis.domain.ephemeris import Ephemeris, FittingTolerances, FixedStepParameters
from orbis.domain.gravity import order_2_zonal_acceleration
from orbis.domain.symplectic_integration import (
    leapfrog,
    mclachlan_atela_1992_order_4_optimal,
)
from orbis.domain.trajectory import Trajectory

PERIOD = 2.0 * math.pi
STEP = PERIOD / 1000.0
AT_REST = DegreesOfFreedom((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))


def _ephemeris(bodies, states, step=STEP, integrator=None):
    return Ephemeris(
        bodies=bodies,
        initial_state=states,
        initial_time=0.0,
        fixed_step_parameters=FixedStepParameters(
            integrator=integrator or mclachlan_atela_1992_order_4_optimal(),
            step=step,
        ),
        fitting_tolerances=FittingTolerances(low=1e-10, high=1e-8),
    )


def _probe(position=(1.0, 0.0, 0.0), velocity=(0.0, 1.0, 0.0), time=0.0):
    trajectory = Trajectory(MasslessBody("probe"))
    trajectory.append(time, DegreesOfFreedom(position, velocity))
    return trajectory


@pytest.fixture
def sun():
    return MassiveBody(1.0, name="Sun")


@pytest.fixture
def central(sun):
    return _ephemeris([sun], [AT_REST])


class TestConfiguration:

    def test_fitting_tolerances_order(self):
        with pytest.raises(ValueError, match="low < high"):
            FittingTolerances(low=1e-6, high=1e-8)

    def test_fitting_tolerances_positive(self):
        with pytest.raises(ValueError):
            FittingTolerances(low=0.0, high=1e-8)

    def test_fixed_step_positive(self):
        with pytest.raises(ValueError, match="step"):
            FixedStepParameters(integrator=leapfrog(), step=-1.0)


class TestConstruction:

    def test_oblate_bodies_first(self):
        spherical = MassiveBody(1.0, name="Moon")
        oblate = MassiveBody(2.0, name="Earth", oblateness=Oblateness(1e-3, 0.1))
        ephemeris = _ephemeris(
            [spherical, oblate],
            [AT_REST, DegreesOfFreedom((10.0, 0.0, 0.0), (0.0, 0.0, 0.0))],
        )
        assert ephemeris.bodies == (oblate, spherical)
        assert ephemeris.trajectory(oblate) is not ephemeris.trajectory(spherical)

    def test_duplicate_body(self, sun):
        with pytest.raises(ValueError, match="duplicate"):
            _ephemeris([sun, sun], [AT_REST, AT_REST])

    def test_mismatched_state(self, sun):
        with pytest.raises(ValueError, match="initial states"):
            _ephemeris([sun], [AT_REST, AT_REST])

    def test_no_bodies(self):
        with pytest.raises(ValueError, match="at least one"):
            _ephemeris([], [])

    def test_unknown_body(self, central):
        with pytest.raises(ValueError, match="unknown body"):
            central.trajectory(MassiveBody(1.0, name="Vulcan"))

    def test_empty_before_prolongation(self, central):
        assert central.empty()
        with pytest.raises(RuntimeError):
            central.t_max()


class TestProlong:

    def test_covers_requested_time(self, central):
        central.prolong(1.0)
        assert not central.empty()
        assert central.t_min() == 0.0
        assert central.t_max() >= 1.0

    def test_prolong_to_covered_time_is_a_no_op(self, central):
        central.prolong(1.0)
        t_max = central.t_max()
        central.prolong(0.5)
        assert central.t_max() == t_max

    def test_prolong_resumes(self, central):
        central.prolong(1.0)
        central.prolong(3.0)
        assert central.t_max() >= 3.0
        trajectory = central.trajectory(central.bodies[0])
        np.testing.assert_allclose(trajectory.evaluate_position(2.0), [0.0, 0.0, 0.0], atol=1e-15)

    def test_two_body_orbit(self, sun):
        planet = MassiveBody(1e-6, name="Planet")
        v = math.sqrt(1.0 + 1e-6)
        ephemeris = _ephemeris(
            [sun, planet],
            [AT_REST, DegreesOfFreedom((1.0, 0.0, 0.0), (0.0, v, 0.0))],
        )
        period = PERIOD / v
        ephemeris.prolong(period)
        relative = (ephemeris.trajectory(planet).evaluate_position(period)
                    - ephemeris.trajectory(sun).evaluate_position(period))
        np.testing.assert_allclose(relative, [1.0, 0.0, 0.0], atol=1e-5)

    def test_forget_before(self, central):
        central.prolong(2.0)
        central.forget_before(1.0)
        assert central.t_min() == 1.0

    def test_logs_prolongation(self, central, caplog):
        with caplog.at_level(logging.DEBUG, logger="orbis.domain.ephemeris"):
            central.prolong(0.5)
        assert any("Prolonged" in record.getMessage() for record in caplog.records)


class TestAccelerations:

    def test_newtonian_pair(self):
        a = MassiveBody(3.0)
        b = MassiveBody(5.0)
        ephemeris = _ephemeris([a, b], [AT_REST, AT_REST])
        accelerations = ephemeris.compute_massive_bodies_gravitational_accelerations(
            np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]]),
        )
        np.testing.assert_allclose(accelerations, [[5.0 / 4.0, 0.0, 0.0], [-3.0 / 4.0, 0.0, 0.0]])

    def test_momentum_conserved_with_oblateness(self):
        bodies = [
            MassiveBody(1.0),
            MassiveBody(0.3, oblateness=Oblateness(0.05, 0.5, axis=(0.0, 0.6, 0.8))),
            MassiveBody(0.01, oblateness=Oblateness(0.02, 0.1)),
        ]
        ephemeris = _ephemeris(bodies, [AT_REST] * 3)
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.5, 0.3], [-0.7, 0.2, -1.1]])
        reordered = np.array([positions[bodies.index(body)] for body in ephemeris.bodies])
        accelerations = ephemeris.compute_massive_bodies_gravitational_accelerations(reordered)
        mus = np.array([body.gravitational_parameter for body in ephemeris.bodies])
        total = np.sum(mus[:, np.newaxis] * accelerations, axis=0)
        np.testing.assert_allclose(total, [0.0, 0.0, 0.0], atol=1e-14)

    def test_oblateness_changes_accelerations(self):
        spherical = _ephemeris([MassiveBody(1.0), MassiveBody(1e-3)], [AT_REST, AT_REST])
        oblate = _ephemeris(
            [MassiveBody(1.0, oblateness=Oblateness(0.01, 0.5)), MassiveBody(1e-3)],
            [AT_REST, AT_REST],
        )
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
        a_spherical = spherical.compute_massive_bodies_gravitational_accelerations(positions)
        a_oblate = oblate.compute_massive_bodies_gravitational_accelerations(positions)
        # Equatorial J2 term: extra attraction of -3/2 J2 R² / r⁴.
        assert a_oblate[1, 0] - a_spherical[1, 0] == pytest.approx(-1.5 * 0.01 * 0.25)

    def test_massless_includes_intrinsic_acceleration(self, central):
        central.prolong(1.0)
        probe = _probe()
        probe.set_intrinsic_acceleration(lambda t: (0.0, 0.0, 0.5))
        hints = [None]
        accelerations = central.compute_massless_bodies_gravitational_accelerations(
            0.5, np.array([[2.0, 0.0, 0.0]]), [probe], hints,
        )
        np.testing.assert_allclose(accelerations, [[-0.25, 0.0, 0.5]])

    def test_massless_feels_tilted_oblateness(self):
        oblateness = Oblateness(0.05, 0.5, axis=(0.0, 0.6, 0.8))
        ephemeris = _ephemeris([MassiveBody(1.0, oblateness=oblateness)], [AT_REST])
        ephemeris.prolong(1.0)
        position = np.array([1.0, 0.5, 0.3])
        accelerations = ephemeris.compute_massless_bodies_gravitational_accelerations(
            0.5, position[np.newaxis], [_probe()], [None],
        )
        expected = -position / np.linalg.norm(position) ** 3
        expected += order_2_zonal_acceleration(oblateness, position)
        np.testing.assert_allclose(accelerations[0], expected, rtol=1e-12)


class TestFixedStepFlow:

    def test_circular_orbit_closes(self, central):
        probe = _probe()
        central.flow_with_fixed_step([probe], STEP, PERIOD)
        last = probe.last()
        assert PERIOD - 1.5 * STEP < last.time <= PERIOD + 1e-12
        np.testing.assert_allclose(
            last.degrees_of_freedom.position,
            [math.cos(last.time), math.sin(last.time), 0.0],
            atol=1e-6,
        )

    def test_prolongs_ephemeris(self, central):
        central.flow_with_fixed_step([_probe()], STEP, 2.0)
        assert central.t_max() >= 2.0

    def test_several_trajectories(self, central):
        inner = _probe()
        outer = Trajectory(MasslessBody("outer"))
        outer.append(0.0, DegreesOfFreedom((4.0, 0.0, 0.0), (0.0, 0.5, 0.0)))
        central.flow_with_fixed_step([inner, outer], STEP, 1.0)
        assert inner.times() == outer.times()
        assert np.hypot(*outer.last().degrees_of_freedom.position[:2]) == pytest.approx(4.0, abs=1e-9)

    def test_inconsistent_last_times(self, central):
        with pytest.raises(ValueError, match="same time"):
            central.flow_with_fixed_step([_probe(), _probe(time=0.5)], STEP, 1.0)

    def test_duplicate_trajectory(self, central):
        probe = _probe()
        with pytest.raises(ValueError, match="duplicate"):
            central.flow_with_fixed_step([probe, probe], STEP, 1.0)

    def test_same_body_twice(self, central):
        probe = _probe()
        fork = probe.fork(0.0)
        with pytest.raises(ValueError, match="same body"):
            central.flow_with_fixed_step([probe, fork], STEP, 1.0)

    def test_fork_leaves_parent_untouched(self, central):
        probe = _probe()
        central.flow_with_fixed_step([probe], STEP, 1.0)
        times = probe.times()
        fork = probe.fork(probe.last().time)
        central.flow_with_fixed_step([fork], STEP, 2.0)
        assert probe.times() == times
        assert fork.last().time > 1.9

    def test_oblate_flow_matches_negligible_mass_body(self):
        oblateness = Oblateness(0.05, 0.5, axis=(0.0, 0.6, 0.8))
        start = DegreesOfFreedom((1.0, 0.2, 0.1), (0.0, 1.0, 0.2))
        oblate = MassiveBody(1.0, oblateness=oblateness)
        ephemeris = _ephemeris([oblate], [AT_REST])
        probe = _probe(start.position, start.velocity)
        ephemeris.flow_with_fixed_step([probe], STEP, 3.0)
        last = probe.last()

        companion = MassiveBody(1e-15)
        reference = _ephemeris(
            [MassiveBody(1.0, oblateness=oblateness), companion], [AT_REST, start],
        )
        reference.prolong(3.0)
        np.testing.assert_allclose(
            last.degrees_of_freedom.position,
            reference.trajectory(companion).evaluate_position(last.time),
            atol=1e-7,
        )

        spherical = _probe(start.position, start.velocity)
        _ephemeris([MassiveBody(1.0)], [AT_REST]).flow_with_fixed_step([spherical], STEP, 3.0)
        offset = np.subtract(
            last.degrees_of_freedom.position, spherical.last().degrees_of_freedom.position,
        )
        assert np.linalg.norm(offset) > 1e-3


class TestAdaptiveStepFlow:

    def test_lands_exactly_and_closes(self, central):
        probe = _probe()
        central.flow_with_adaptive_step(
            probe, 1e-10, 1e-10, dormand_el_mikkawy_prince_1986_rkn_434fm(), PERIOD,
        )
        last = probe.last()
        assert last.time == pytest.approx(PERIOD, abs=1e-12)
        np.testing.assert_allclose(last.degrees_of_freedom.position, [1.0, 0.0, 0.0], atol=1e-6)

    def test_first_time_step(self, central):
        probe = _probe()
        central.flow_with_adaptive_step(
            probe, 1e-8, 1e-8, dormand_el_mikkawy_prince_1986_rkn_434fm(), 1.0,
            first_time_step=0.01,
        )
        assert probe.times()[1] == pytest.approx(0.01)

    def test_no_op_at_last_time(self, central):
        probe = _probe()
        central.flow_with_adaptive_step(
            probe, 1e-8, 1e-8, dormand_el_mikkawy_prince_1986_rkn_434fm(), 0.0,
        )
        assert len(probe) == 1

    def test_warns_when_mostly_rejecting(self, central, caplog):
        class Rejecting:
            def solve(self, problem, adaptive_step_size):
                return AdaptiveSolveStatistics(
                    accepted_steps=1, rejected_steps=7, final_time=problem.t_final, last_step=0.1,
                )

        with caplog.at_level(logging.WARNING, logger="orbis.domain.ephemeris"):
            central.flow_with_adaptive_step(_probe(), 1e-8, 1e-8, Rejecting(), 1.0)
        warnings = [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert len(warnings) == 1
        assert "rejected 7" in warnings[0].getMessage()
