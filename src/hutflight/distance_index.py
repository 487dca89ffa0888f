"""Cumulative distance lookup along a decoded path."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Sequence

from .geometry import haversine_distance
from .models import GeoPoint


class DistanceIndex:
    """Cumulative haversine distances (meters) aligned 1:1 with a path.

    ``distances[0] == 0`` and the sequence never decreases; duplicate points
    produce zero-length segments. The index is immutable once built.
    """

    def __init__(self, points: Sequence[GeoPoint]):
        self.points: tuple[GeoPoint, ...] = tuple(points)
        distances = [0.0] * len(self.points)
        for i in range(1, len(self.points)):
            distances[i] = distances[i - 1] + haversine_distance(self.points[i - 1], self.points[i])
        self._distances = tuple(distances)

    @property
    def distances(self) -> tuple[float, ...]:
        return self._distances

    @property
    def total_distance(self) -> float:
        if len(self._distances) < 2:
            return 0.0
        return self._distances[-1]

    def __len__(self) -> int:
        return len(self._distances)

    def distance_at(self, point_index: int) -> float:
        if not self._distances:
            return 0.0
        return self._distances[point_index]

    def point_index_at_distance(self, target: float) -> tuple[int, float]:
        """Return ``(segment_index, t)`` for ``target`` meters along the path.

        ``target`` is clamped to ``[0, total]``. The segment is the last one
        starting at or before ``target`` and ``t`` is the fraction travelled
        along it (0 for a zero-length segment). At the total distance the last
        segment is returned with ``t == 1``.
        """
        n = len(self._distances)
        if n < 2:
            return 0, 0.0

        total = self._distances[-1]
        target = min(max(target, 0.0), total)

        # Last i with distances[i] <= target, restricted to segment starts
        i = bisect_right(self._distances, target) - 1
        i = min(max(i, 0), n - 2)

        start = self._distances[i]
        seg_len = self._distances[i + 1] - start
        if seg_len <= 0:
            return i, 0.0
        return i, min((target - start) / seg_len, 1.0)

    def position_at(self, target: float) -> GeoPoint:
        """Linearly interpolated ground position ``target`` meters along the path."""
        if not self.points:
            raise IndexError("position_at on an empty path")
        if len(self.points) < 2:
            return self.points[0]
        i, t = self.point_index_at_distance(target)
        return interpolate(self.points[i], self.points[i + 1], t)


def interpolate(p1: GeoPoint, p2: GeoPoint, t: float) -> GeoPoint:
    return GeoPoint(
        latitude=p1.latitude + (p2.latitude - p1.latitude) * t,
        longitude=p1.longitude + (p2.longitude - p1.longitude) * t,
    )
