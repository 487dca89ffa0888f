"""Elevation profile of an itinerary, for the chart synchronised with the flight."""

from __future__ import annotations

import math
from bisect import bisect_left
from collections.abc import Sequence

from .geometry import haversine_distance
from .models import ItineraryStop, PathSample, ProfilePoint
from .polyline import decode_polyline

DEFAULT_ALTITUDE_M = 500.0
MAX_ALTITUDE_M = 5000.0
MIN_SYNTHETIC_POINTS = 10
SYNTHETIC_POINTS_PER_KM = 2


def build_elevation_profile(stops: Sequence[ItineraryStop]) -> list[ProfilePoint]:
    """Profile points (distance in km, altitude in m) for every leg and hut.

    Legs whose polyline carries elevation contribute every decoded point. When
    no leg of a stop does, a climb-then-descend curve is synthesised from the
    stop's distance and elevation gain/loss. Returns ``[]`` when fewer than two
    plausible points remain.
    """
    if len(stops) < 2:
        return []

    points: list[ProfilePoint] = []
    cumulative_km = 0.0

    for i, hut in enumerate(stops):
        if hut.is_rest_day and i > 0:
            continue

        if i > 0:
            stop_start_km = cumulative_km
            has_altitude = False
            for step in hut.steps:
                coords = decode_polyline(step.geometry_polyline or "", with_altitude=True)
                if not coords:
                    continue
                if _has_valid_altitude(coords):
                    has_altitude = True
                    for j, coord in enumerate(coords):
                        if j > 0:
                            cumulative_km += haversine_distance(coords[j - 1], coord) / 1000
                        points.append(ProfilePoint(
                            distance_km=cumulative_km,
                            altitude_m=coord.altitude or 0.0,
                            latitude=coord.latitude,
                            longitude=coord.longitude,
                        ))
                else:
                    for j in range(1, len(coords)):
                        cumulative_km += haversine_distance(coords[j - 1], coords[j]) / 1000

            if not has_altitude:
                leg_km = sum(s.distance_km or 0.0 for s in hut.steps) or (cumulative_km - stop_start_km)
                points.extend(_synthetic_leg(stops[i - 1], hut, stop_start_km, leg_km, points))
                cumulative_km = stop_start_km + leg_km

        points.append(ProfilePoint(
            distance_km=0.0 if i == 0 else cumulative_km,
            altitude_m=_hut_altitude(stops, i, points),
            latitude=hut.latitude,
            longitude=hut.longitude,
            name=hut.name,
            is_hut=True,
            stop_index=i,
        ))

    valid = [p for p in points if 0 < p.altitude_m < MAX_ALTITUDE_M]
    valid.sort(key=lambda p: p.distance_km)
    return valid if len(valid) >= 2 else []


def _has_valid_altitude(coords: list[PathSample]) -> bool:
    non_zero = [c for c in coords if c.altitude]
    return len(non_zero) > len(coords) * 0.5


def _synthetic_leg(
    prev: ItineraryStop, hut: ItineraryStop, start_km: float, leg_km: float, so_far: list[ProfilePoint]
) -> list[ProfilePoint]:
    start_alt = prev.altitude or (so_far[-1].altitude_m if so_far else DEFAULT_ALTITUDE_M)
    gain = sum(s.dplus_m or 0.0 for s in hut.steps)
    loss = sum(s.dminus_m or 0.0 for s in hut.steps)

    peak_alt = start_alt + gain
    total_elev = gain + loss
    peak_position = gain / total_elev if total_elev > 0 else 0.5
    count = max(MIN_SYNTHETIC_POINTS, math.ceil(leg_km * SYNTHETIC_POINTS_PER_KM))

    leg = []
    for j in range(1, count + 1):
        ratio = j / count
        if ratio <= peak_position:
            climb = ratio / peak_position if peak_position > 0 else 0.0
            alt = start_alt + gain * climb
        else:
            descent = (ratio - peak_position) / (1 - peak_position) if peak_position < 1 else 1.0
            alt = peak_alt - loss * descent
        leg.append(ProfilePoint(distance_km=start_km + leg_km * ratio, altitude_m=alt))
    return leg


def _hut_altitude(stops: Sequence[ItineraryStop], i: int, so_far: list[ProfilePoint]) -> float:
    hut = stops[i]
    if hut.altitude and hut.altitude > 0:
        return hut.altitude

    # First hut: use the start of the next leg's polyline
    if i == 0 and len(stops) > 1:
        nxt = stops[1]
        if not nxt.is_rest_day and nxt.steps and nxt.steps[0].geometry_polyline:
            coords = decode_polyline(nxt.steps[0].geometry_polyline, with_altitude=True)
            if coords and coords[0].altitude and coords[0].altitude > 0:
                return coords[0].altitude

    return so_far[-1].altitude_m if so_far else DEFAULT_ALTITUDE_M


def cursor_for_distance(profile: Sequence[ProfilePoint], distance_km: float | None) -> ProfilePoint | None:
    """Interpolated profile point under a flight cursor at ``distance_km``."""
    if distance_km is None or len(profile) < 2:
        return None

    distances = [p.distance_km for p in profile]
    distance_km = min(max(distance_km, distances[0]), distances[-1])
    j = bisect_left(distances, distance_km)
    if j == 0:
        return ProfilePoint(distance_km=distance_km, altitude_m=profile[0].altitude_m)

    a, b = profile[j - 1], profile[j]
    span = b.distance_km - a.distance_km
    t = (distance_km - a.distance_km) / span if span > 0 else 0.0
    return ProfilePoint(distance_km=distance_km, altitude_m=a.altitude_m + (b.altitude_m - a.altitude_m) * t)
