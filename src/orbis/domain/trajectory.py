# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Raw trajectory of a massless body.

An append-only, time-ordered list of degrees of freedom. A trajectory can
fork at one of its points: the fork sees the parent's history up to the
fork time and then grows on its own, which is how "what-if" prolongations
are computed without touching the recorded history.
"""

from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from orbis.domain.bodies import DegreesOfFreedom, MasslessBody

IntrinsicAcceleration = Callable[[float], tuple[float, float, float]]


@dataclass(frozen=True)
class TrajectoryPoint:
    """One recorded state."""
    time: float
    degrees_of_freedom: DegreesOfFreedom


class Trajectory:
    """History of a massless body, possibly a fork of another trajectory."""

    def __init__(self, body: Optional[MasslessBody] = None) -> None:
        self._body = body if body is not None else MasslessBody()
        self._points: list[TrajectoryPoint] = []
        self._parent: Optional["Trajectory"] = None
        self._fork_time: Optional[float] = None
        self._children: list["Trajectory"] = []
        self._intrinsic_acceleration: Optional[IntrinsicAcceleration] = None

    @property
    def body(self) -> MasslessBody:
        return self._body

    @property
    def parent(self) -> Optional["Trajectory"]:
        return self._parent

    @property
    def fork_time(self) -> Optional[float]:
        return self._fork_time

    def is_root(self) -> bool:
        return self._parent is None

    # --- History ---

    def __iter__(self) -> Iterator[TrajectoryPoint]:
        if self._parent is not None:
            for point in self._parent:
                if point.time > self._fork_time:
                    break
                yield point
        yield from self._points

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def times(self) -> list[float]:
        return [point.time for point in self]

    def last(self) -> TrajectoryPoint:
        """Most recent point, inherited from the parent for a fresh fork."""
        if self._points:
            return self._points[-1]
        if self._parent is not None:
            return self._parent._point_at(self._fork_time)
        raise RuntimeError("Empty trajectory")

    def _point_at(self, time: float) -> TrajectoryPoint:
        for point in self:
            if point.time == time:
                return point
        raise ValueError(f"No point at time {time}")

    def append(self, time: float, degrees_of_freedom: DegreesOfFreedom) -> None:
        """Record a state strictly after the last one."""
        if self._points or self._parent is not None:
            last_time = self.last().time
            if not time > last_time:
                raise ValueError(
                    f"Append at time {time} not after the last time {last_time}"
                )
        self._points.append(TrajectoryPoint(time, degrees_of_freedom))

    def forget_after(self, time: float) -> None:
        """Drop the points of this trajectory (not its parent's) after ``time``."""
        for child in self._children:
            if child._fork_time > time:
                raise ValueError(
                    f"Cannot forget after {time}: a fork exists at {child._fork_time}"
                )
        self._points = [point for point in self._points if point.time <= time]

    # --- Forks ---

    def fork(self, time: float) -> "Trajectory":
        """New child trajectory branching off at the existing point ``time``."""
        self._point_at(time)
        child = Trajectory(self._body)
        child._parent = self
        child._fork_time = time
        child._intrinsic_acceleration = self._intrinsic_acceleration
        self._children.append(child)
        return child

    def delete_fork(self, fork: "Trajectory") -> None:
        """Detach a child created by ``fork``."""
        if fork._parent is not self:
            raise ValueError("Not a fork of this trajectory")
        self._children.remove(fork)
        fork._parent = None

    # --- Intrinsic acceleration ---

    def set_intrinsic_acceleration(self, acceleration: IntrinsicAcceleration) -> None:
        self._intrinsic_acceleration = acceleration

    def clear_intrinsic_acceleration(self) -> None:
        self._intrinsic_acceleration = None

    def has_intrinsic_acceleration(self) -> bool:
        return self._intrinsic_acceleration is not None

    def evaluate_intrinsic_acceleration(self, time: float) -> tuple[float, float, float]:
        if self._intrinsic_acceleration is None:
            raise RuntimeError("Trajectory has no intrinsic acceleration")
        return self._intrinsic_acceleration(time)
