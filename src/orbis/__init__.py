# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Orbis

Gravitational N-body integration core: symplectic fixed-step and embedded
adaptive Runge-Kutta-Nyström integrators, piecewise Chebyshev continuous
trajectories with adaptive degree, and an ephemeris that integrates massive
bodies with Newtonian and J2 gravity and flows massless bodies through it.
"""

from orbis.domain.double_precision import (
    DoublePrecision,
    ulp_distance,
)
from orbis.domain.bodies import (
    DegreesOfFreedom,
    MassiveBody,
    MasslessBody,
    Oblateness,
)
from orbis.domain.chebyshev_series import (
    ChebyshevSeries,
    chebyshev_evaluate,
)
from orbis.domain.continuous_trajectory import (
    ContinuousTrajectory,
    Hint,
)
from orbis.domain.trajectory import (
    Trajectory,
    TrajectoryPoint,
)
from orbis.domain.symplectic_integration import (
    SymplecticParameters,
    SymplecticRungeKuttaNystromIntegrator,
    SystemState,
    VanishingCoefficients,
    leapfrog,
    mclachlan_atela_1992_order_4_optimal,
    mclachlan_atela_1992_order_5_optimal,
    velocity_verlet,
    yoshida_1990_order_4,
)
from orbis.domain.adaptive_integration import (
    AdaptiveSolveStatistics,
    AdaptiveStepSize,
    EmbeddedExplicitRungeKuttaNystromIntegrator,
    IntegrationProblem,
    SystemStateError,
    dormand_el_mikkawy_prince_1986_rkn_434fm,
)
from orbis.domain.gravity import (
    newtonian_pair,
    order_2_zonal_acceleration,
)
from orbis.domain.ephemeris import (
    Ephemeris,
    FittingTolerances,
    FixedStepParameters,
    tolerance_to_error_ratio,
)

__all__ = [
    "DoublePrecision",
    "ulp_distance",
    "DegreesOfFreedom",
    "MassiveBody",
    "MasslessBody",
    "Oblateness",
    "ChebyshevSeries",
    "chebyshev_evaluate",
    "ContinuousTrajectory",
    "Hint",
    "Trajectory",
    "TrajectoryPoint",
    "SymplecticParameters",
    "SymplecticRungeKuttaNystromIntegrator",
    "SystemState",
    "VanishingCoefficients",
    "leapfrog",
    "velocity_verlet",
    "yoshida_1990_order_4",
    "mclachlan_atela_1992_order_4_optimal",
    "mclachlan_atela_1992_order_5_optimal",
    "AdaptiveSolveStatistics",
    "AdaptiveStepSize",
    "EmbeddedExplicitRungeKuttaNystromIntegrator",
    "IntegrationProblem",
    "SystemStateError",
    "dormand_el_mikkawy_prince_1986_rkn_434fm",
    "newtonian_pair",
    "order_2_zonal_acceleration",
    "Ephemeris",
    "FittingTolerances",
    "FixedStepParameters",
    "tolerance_to_error_ratio",
]
