# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Port interfaces for trajectory and system file I/O.

Adapters implement these to handle different file formats.
"""
from abc import ABC, abstractmethod
from typing import Any

from orbis.domain.continuous_trajectory import ContinuousTrajectory
from orbis.domain.ephemeris import Ephemeris


class TrajectoryReader(ABC):
    """Port for reading stored continuous trajectories."""

    @abstractmethod
    def read_trajectories(self, path: str) -> dict[str, ContinuousTrajectory]:
        """Read trajectories keyed by body name."""
        ...


class TrajectoryWriter(ABC):
    """Port for storing continuous trajectories."""

    @abstractmethod
    def write_trajectories(self, trajectories: dict[str, ContinuousTrajectory], path: str) -> None:
        """Write trajectories keyed by body name."""
        ...


class SystemReader(ABC):
    """Port for reading the definition of a system of massive bodies."""

    @abstractmethod
    def read_system(self, path: str) -> dict[str, Any]:
        """Read and parse a system definition file."""
        ...

    @abstractmethod
    def build_ephemeris(self, system_data: dict[str, Any]) -> Ephemeris:
        """Build an ephemeris from parsed system data."""
        ...
