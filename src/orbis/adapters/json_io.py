# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
JSON file I/O adapters.

Trajectory files hold one ContinuousTrajectory message per body name.
System files describe massive bodies and the integration settings:

    {
      "initial_time": 0.0,
      "step": 3600.0,
      "integrator": "mclachlan_atela_1992_order_5_optimal",
      "fitting_tolerances": {"low": 1e-3, "high": 1e-2},
      "bodies": [
        {"name": "Sun", "gravitational_parameter": 1.32712440018e20,
         "position": [0, 0, 0], "velocity": [0, 0, 0]},
        {"name": "Earth", "gravitational_parameter": 3.986004418e14,
         "position": [...], "velocity": [...],
         "oblateness": {"j2": 1.08263e-3, "reference_radius_m": 6378137.0,
                        "axis": [0, 0, 1]}}
      ]
    }
"""
import json
from typing import Any

from orbis.domain.bodies import DegreesOfFreedom, MassiveBody, Oblateness
from orbis.domain.continuous_trajectory import ContinuousTrajectory
from orbis.domain.ephemeris import Ephemeris, FittingTolerances, FixedStepParameters
from orbis.domain.symplectic_integration import (
    leapfrog,
    mclachlan_atela_1992_order_4_optimal,
    mclachlan_atela_1992_order_5_optimal,
    velocity_verlet,
    yoshida_1990_order_4,
)
from orbis.ports import SystemReader, TrajectoryReader, TrajectoryWriter

INTEGRATORS = {
    "leapfrog": leapfrog,
    "velocity_verlet": velocity_verlet,
    "yoshida_1990_order_4": yoshida_1990_order_4,
    "mclachlan_atela_1992_order_4_optimal": mclachlan_atela_1992_order_4_optimal,
    "mclachlan_atela_1992_order_5_optimal": mclachlan_atela_1992_order_5_optimal,
}

DEFAULT_INTEGRATOR = "mclachlan_atela_1992_order_5_optimal"


class JsonTrajectoryWriter(TrajectoryWriter):
    """Writes continuous trajectories to JSON files."""

    def write_trajectories(self, trajectories: dict[str, ContinuousTrajectory], path: str) -> None:
        data = {
            "trajectories": {
                name: trajectory.write_to_message()
                for name, trajectory in trajectories.items()
            },
        }
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)


class JsonTrajectoryReader(TrajectoryReader):
    """Reads continuous trajectories from JSON files."""

    def read_trajectories(self, path: str) -> dict[str, ContinuousTrajectory]:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
        if 'trajectories' not in data:
            raise ValueError(f"No 'trajectories' in {path}")
        return {
            name: ContinuousTrajectory.read_from_message(message)
            for name, message in data['trajectories'].items()
        }


class JsonSystemReader(SystemReader):
    """Reads system definitions from JSON files."""

    def read_system(self, path: str) -> dict[str, Any]:
        with open(path, encoding='utf-8') as f:
            return json.load(f)

    def build_ephemeris(self, system_data: dict[str, Any]) -> Ephemeris:
        entries = system_data.get('bodies', [])
        if not entries:
            raise ValueError("System defines no bodies")
        if 'step' not in system_data:
            raise ValueError("System defines no integration 'step'")

        integrator_name = system_data.get('integrator', DEFAULT_INTEGRATOR)
        if integrator_name not in INTEGRATORS:
            raise ValueError(
                f"Unknown integrator '{integrator_name}', expected one of {sorted(INTEGRATORS)}"
            )

        bodies = []
        initial_state = []
        for entry in entries:
            bodies.append(_parse_body(entry))
            initial_state.append(DegreesOfFreedom(
                position=_parse_vector(entry, 'position'),
                velocity=_parse_vector(entry, 'velocity'),
            ))

        tolerances = system_data.get('fitting_tolerances', {})
        return Ephemeris(
            bodies=bodies,
            initial_state=initial_state,
            initial_time=float(system_data.get('initial_time', 0.0)),
            fixed_step_parameters=FixedStepParameters(
                integrator=INTEGRATORS[integrator_name](),
                step=float(system_data['step']),
            ),
            fitting_tolerances=FittingTolerances(
                low=float(tolerances.get('low', 1e-3)),
                high=float(tolerances.get('high', 1e-2)),
            ),
        )


def _parse_body(entry: dict) -> MassiveBody:
    oblateness = None
    if 'oblateness' in entry:
        o = entry['oblateness']
        oblateness = Oblateness(
            j2=float(o['j2']),
            reference_radius_m=float(o['reference_radius_m']),
            axis=tuple(float(c) for c in o.get('axis', (0.0, 0.0, 1.0))),
        )
    return MassiveBody(
        gravitational_parameter=float(entry['gravitational_parameter']),
        name=entry.get('name', ''),
        oblateness=oblateness,
    )


def _parse_vector(entry: dict, key: str) -> tuple[float, float, float]:
    value = entry.get(key)
    if value is None or len(value) != 3:
        raise ValueError(f"Body '{entry.get('name', '')}' needs a 3-element '{key}'")
    return (float(value[0]), float(value[1]), float(value[2]))
