# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""File format adapters."""

from orbis.adapters.json_io import (
    JsonSystemReader,
    JsonTrajectoryReader,
    JsonTrajectoryWriter,
)

__all__ = [
    "JsonSystemReader",
    "JsonTrajectoryReader",
    "JsonTrajectoryWriter",
]
