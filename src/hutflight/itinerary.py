"""Flatten an itinerary into a single ground track with hut waypoints."""

from __future__ import annotations

from collections.abc import Sequence

from .distance_index import DistanceIndex
from .models import GeoPoint, ItineraryStop, WaypointMarker
from .polyline import decode_polyline


class FlightRoute:
    """A flyable ground track: points, their distance index and the huts along it."""

    def __init__(self, index: DistanceIndex, waypoints: Sequence[WaypointMarker] = ()):
        self.index = index
        self.waypoints: tuple[WaypointMarker, ...] = tuple(waypoints)

    @property
    def points(self) -> tuple[GeoPoint, ...]:
        return self.index.points

    @property
    def total_distance(self) -> float:
        return self.index.total_distance

    @property
    def is_flyable(self) -> bool:
        return len(self.points) >= 2 and self.total_distance > 0

    @classmethod
    def from_itinerary(cls, stops: Sequence[ItineraryStop]) -> FlightRoute:
        points, stop_ends = extract_route_positions(stops)
        index = DistanceIndex(points)
        waypoints = [
            WaypointMarker(
                name=stops[stop_idx].name,
                cumulative_distance=index.distance_at(point_idx),
                day_index=stop_idx,
            )
            for stop_idx, point_idx in stop_ends
        ]
        return cls(index, waypoints)

    @classmethod
    def from_points(cls, points: Sequence[GeoPoint], waypoints: Sequence[WaypointMarker] = ()) -> FlightRoute:
        return cls(DistanceIndex(points), waypoints)


def extract_route_positions(stops: Sequence[ItineraryStop]) -> tuple[list[GeoPoint], list[tuple[int, int]]]:
    """Concatenate the legs of every stop into one ground track.

    Returns the points and, for the first stop and every non-rest-day stop,
    ``(stop_index, last_point_index)`` marking where that hut is reached. A stop
    whose legs carry no geometry is joined to the previous stop by a straight
    line. Rest days add no movement and no waypoint.
    """
    positions: list[GeoPoint] = []
    stop_ends: list[tuple[int, int]] = []

    if not stops:
        return positions, stop_ends
    stop_ends.append((0, 0))

    for i in range(1, len(stops)):
        hut = stops[i]
        if hut.is_rest_day:
            continue

        decoded: list[GeoPoint] = []
        for step in hut.steps:
            if step.geometry_polyline:
                decoded.extend(decode_polyline(step.geometry_polyline))

        if decoded:
            positions.extend(decoded)
        else:
            prev = _previous_location(stops, i)
            positions.append(GeoPoint(latitude=prev.latitude, longitude=prev.longitude))
            positions.append(GeoPoint(latitude=hut.latitude, longitude=hut.longitude))

        stop_ends.append((i, len(positions) - 1))

    return positions, stop_ends


def _previous_location(stops: Sequence[ItineraryStop], i: int) -> ItineraryStop:
    # A rest day sits at the same hut as the stop before it
    j = i - 1
    while j > 0 and stops[j].is_rest_day:
        j -= 1
    return stops[j]
