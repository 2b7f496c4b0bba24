# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Compensated (double-double) accumulation of times and states.

Long integrations add millions of small increments to large values. Plain
float addition loses the low-order bits of each increment, which shows up
as a secular drift of the integrated time and state. ``DoublePrecision``
keeps the lost bits in a separate error term (Kahan/Møller summation) and
feeds them back into the next increment.

Works on floats and on numpy arrays alike.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass
class DoublePrecision:
    """A value together with the rounding error of its accumulation."""
    value: Any = 0.0
    error: Any = 0.0

    def increment(self, increment: Any) -> None:
        """Add ``increment`` with compensated summation."""
        temp = self.value
        y = increment + self.error
        self.value = temp + y
        self.error = (temp - self.value) + y

    def copy(self) -> "DoublePrecision":
        """Independent copy (arrays are copied, not shared)."""
        if isinstance(self.value, np.ndarray):
            return DoublePrecision(self.value.copy(), np.array(self.error, dtype=float))
        return DoublePrecision(self.value, self.error)


def zero_error_like(value: Any) -> DoublePrecision:
    """Wrap ``value`` in a DoublePrecision with a zero error term."""
    if isinstance(value, np.ndarray):
        return DoublePrecision(value.astype(float), np.zeros_like(value, dtype=float))
    return DoublePrecision(float(value), 0.0)


def ulp_distance(x: float, y: float) -> int:
    """Number of representable doubles between x and y.

    Uses the lexicographic ordering of IEEE 754 bit patterns; +0.0 and -0.0
    are at distance 0.
    """
    if x == y:
        return 0
    ix = int(np.array(x, dtype=np.float64).view(np.int64))
    iy = int(np.array(y, dtype=np.float64).view(np.int64))
    # Map the sign-magnitude bit patterns onto a monotonic integer line.
    if ix < 0:
        ix = -(ix & 0x7FFFFFFFFFFFFFFF)
    if iy < 0:
        iy = -(iy & 0x7FFFFFFFFFFFFFFF)
    return abs(ix - iy)
