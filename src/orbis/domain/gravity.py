# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Pairwise gravitational acceleration kernels.

Both kernels are written per unit gravitational parameter and take one
separation or a stack of separations of shape (k, 3); multiply by μ of the
attracting body to get an acceleration.
"""

import numpy as np

from orbis.domain.bodies import Oblateness


def newtonian_pair(separation: np.ndarray) -> np.ndarray:
    """Δq / |Δq|³.

    With Δq = q_attractor - q_target, μ_attractor times the result is the
    acceleration of the target.
    """
    separation = np.asarray(separation, dtype=float)
    r2 = np.sum(separation * separation, axis=-1, keepdims=True)
    return separation / (r2 * np.sqrt(r2))


def order_2_zonal_acceleration(oblateness: Oblateness, separation: np.ndarray) -> np.ndarray:
    """J2 acceleration per unit μ of the oblate body.

    ``separation`` is q_target - q_oblate. In the body frame with the axis
    along z this is the classical

        a = -3/2 J2 R² / r⁵ · (x(1 - 5z²/r²), y(1 - 5z²/r²), z(3 - 5z²/r²))

    written for an arbitrary unit axis j:
    (1 - 5(s·j)²/r²) s + 2 (s·j) j. The result is odd in the separation.
    """
    s = np.asarray(separation, dtype=float)
    axis = np.asarray(oblateness.axis, dtype=float)
    r2 = np.sum(s * s, axis=-1, keepdims=True)
    r5 = r2 * r2 * np.sqrt(r2)
    s_dot_j = s @ axis
    if s.ndim > 1:
        s_dot_j = s_dot_j[..., np.newaxis]

    coeff = -1.5 * oblateness.j2_r_squared / r5
    return coeff * ((1.0 - 5.0 * s_dot_j * s_dot_j / r2) * s + 2.0 * s_dot_j * axis)
