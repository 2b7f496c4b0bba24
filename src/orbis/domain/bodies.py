# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Bodies and degrees of freedom.

Massive bodies carry a gravitational parameter and optionally an order-2
zonal (J2) oblateness descriptor. Bodies are compared by identity: two
planets with identical parameters are still two planets.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

# Tolerance on the norm of an oblateness rotation axis.
_AXIS_NORM_TOLERANCE = 1e-12


@dataclass(frozen=True)
class DegreesOfFreedom:
    """Position and velocity of a body at an instant."""
    position: tuple[float, float, float]
    velocity: tuple[float, float, float]

    @staticmethod
    def from_arrays(position: np.ndarray, velocity: np.ndarray) -> "DegreesOfFreedom":
        return DegreesOfFreedom(
            position=(float(position[0]), float(position[1]), float(position[2])),
            velocity=(float(velocity[0]), float(velocity[1]), float(velocity[2])),
        )


@dataclass(frozen=True)
class Oblateness:
    """Order-2 zonal harmonic of a body's gravity field.

    Attributes:
        j2: Dimensionless J2 coefficient (positive for an equatorial bulge).
        reference_radius_m: Equatorial reference radius R.
        axis: Unit vector along the rotation axis.
    """
    j2: float
    reference_radius_m: float
    axis: tuple[float, float, float] = (0.0, 0.0, 1.0)

    def __post_init__(self) -> None:
        if self.reference_radius_m <= 0.0:
            raise ValueError(
                f"reference_radius_m must be positive, got {self.reference_radius_m}"
            )
        norm = math.sqrt(sum(c * c for c in self.axis))
        if abs(norm - 1.0) > _AXIS_NORM_TOLERANCE:
            raise ValueError(f"axis must be a unit vector, got norm {norm}")

    @property
    def j2_r_squared(self) -> float:
        """J2 R², the μ-free strength of the zonal term."""
        return self.j2 * self.reference_radius_m * self.reference_radius_m


@dataclass(frozen=True, eq=False)
class MassiveBody:
    """A body whose gravity acts on every other body."""
    gravitational_parameter: float
    name: str = ""
    oblateness: Optional[Oblateness] = None

    def __post_init__(self) -> None:
        if not self.gravitational_parameter > 0.0:
            raise ValueError(
                f"gravitational_parameter must be positive, got {self.gravitational_parameter}"
            )

    @property
    def is_oblate(self) -> bool:
        return self.oblateness is not None


@dataclass(frozen=True, eq=False)
class MasslessBody:
    """A body (typically a vessel) that feels gravity but exerts none."""
    name: str = ""
