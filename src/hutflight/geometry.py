"""Geodesy helpers for ground tracks.

Distances along the track use the haversine formula; bearings and forward
projections are delegated to the WGS84 geodesic from pyproj.
"""

import math

from pyproj import Geod

from .models import GeoPoint

EARTH_RADIUS_M = 6_371_000

_GEOD = Geod(ellps="WGS84")


def haversine_distance(p1: GeoPoint, p2: GeoPoint) -> float:
    """Great circle distance between two points in meters."""
    phi1 = math.radians(p1.latitude)
    phi2 = math.radians(p2.latitude)
    delta_phi = math.radians(p2.latitude - p1.latitude)
    delta_lambda = math.radians(p2.longitude - p1.longitude)

    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing(p1: GeoPoint, p2: GeoPoint) -> float:
    """Initial bearing from ``p1`` to ``p2`` in degrees, normalised to [0, 360)."""
    azimuth, _, _ = _GEOD.inv(p1.longitude, p1.latitude, p2.longitude, p2.latitude)
    return azimuth % 360.0


def destination_point(origin: GeoPoint, bearing_deg: float, distance_m: float) -> GeoPoint:
    """Point reached from ``origin`` after ``distance_m`` along ``bearing_deg``."""
    lon, lat, _ = _GEOD.fwd(origin.longitude, origin.latitude, bearing_deg, distance_m)
    return GeoPoint(latitude=lat, longitude=lon)


def angle_difference(from_deg: float, to_deg: float) -> float:
    """Signed shortest rotation from ``from_deg`` to ``to_deg``, in (-180, 180]."""
    diff = (to_deg - from_deg) % 360.0
    if diff > 180.0:
        diff -= 360.0
    return diff


def lerp_angle(from_deg: float, to_deg: float, factor: float) -> float:
    """Move ``factor`` of the way from one heading to another across the 0/360 boundary."""
    return (from_deg + angle_difference(from_deg, to_deg) * factor) % 360.0


def lerp(current: float, target: float, factor: float) -> float:
    """Exponential smoothing step of ``current`` toward ``target``."""
    return current + (target - current) * factor
