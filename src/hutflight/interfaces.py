"""Interfaces of the external collaborators driven by a camera flight."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .models import CameraPose, GeoPoint


class TerrainProvider(Protocol):
    """Asynchronous source of ground heights."""

    async def sample_heights(self, points: Sequence[GeoPoint]) -> list[float | None]:
        """Best-available ground height (meters) per point, ``None`` where unknown."""
        ...


class Viewport(Protocol):
    """Camera sink of a 3D map viewer."""

    def get_pose(self) -> CameraPose | None: ...

    def set_pose(self, pose: CameraPose) -> None: ...

    def fly_to(self, pose: CameraPose, duration_s: float) -> None: ...

    def place_marker(self, point: GeoPoint) -> None: ...

    def remove_marker(self) -> None: ...

    def request_render(self) -> None: ...
