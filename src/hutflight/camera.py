"""Slope-adaptive camera placement and overview framing."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from .config import FlightConfig
from .models import CameraPose, GeoPoint

# 1 degree of latitude is roughly 111 km
KM_PER_DEGREE = 111.0
OVERVIEW_PITCH_DEG = -60.0
OVERVIEW_MIN_HEIGHT_M = 15_000.0
LAPLAND_FALLBACK = CameraPose(latitude=64.0, longitude=18.5, height=50_000.0, heading=0.0, pitch=OVERVIEW_PITCH_DEG)


class Terrain(str, Enum):
    CLIMBING = "climbing"
    DESCENDING = "descending"
    FLAT = "flat"


@dataclass(frozen=True)
class AdaptiveOffsets:
    """Extra camera height, setback and pitch derived from the local slope."""

    height_bonus: float = 0.0
    setback_bonus: float = 0.0
    pitch_offset: float = 0.0


def slope_degrees(height_here: float, height_ahead: float, ahead_distance_m: float) -> float:
    """Slope between two ground heights ``ahead_distance_m`` apart, in degrees."""
    if ahead_distance_m <= 0:
        return 0.0
    return math.degrees(math.atan2(height_ahead - height_here, ahead_distance_m))


def classify_slope(slope_deg: float, config: FlightConfig) -> Terrain:
    if slope_deg > config.slope_threshold_deg:
        return Terrain.CLIMBING
    if slope_deg < -config.slope_threshold_deg:
        return Terrain.DESCENDING
    return Terrain.FLAT


def adaptive_targets(slope_deg: float, config: FlightConfig) -> AdaptiveOffsets:
    """Target offsets for a slope.

    Climbs raise and pull the camera back a little and lift the pitch; descents
    pull it back ``descent_setback_ratio`` times further and tilt it down so the
    terrain below the hiker stays in frame.
    """
    terrain = classify_slope(slope_deg, config)
    if terrain is Terrain.FLAT:
        return AdaptiveOffsets()

    intensity = min(abs(slope_deg), config.max_slope_intensity_deg)
    if terrain is Terrain.CLIMBING:
        return AdaptiveOffsets(
            height_bonus=intensity * config.climb_height_bonus_per_deg,
            setback_bonus=intensity * config.climb_setback_bonus_per_deg,
            pitch_offset=intensity * config.climb_pitch_per_deg,
        )
    return AdaptiveOffsets(
        height_bonus=intensity * config.descent_height_bonus_per_deg,
        setback_bonus=intensity * config.descent_setback_bonus_per_deg,
        pitch_offset=intensity * config.descent_pitch_per_deg,
    )


def target_camera_height(ground_at_camera: float, height_bonus: float, config: FlightConfig) -> float:
    return max(
        ground_at_camera + config.base_height_above_ground_m + height_bonus,
        config.minimum_height_m + height_bonus,
    )


def overview_pose(points: Sequence[GeoPoint]) -> CameraPose:
    """Tilted view framing every point; falls back to a view over Lapland."""
    if not points:
        return LAPLAND_FALLBACK

    lats = [p.latitude for p in points]
    lons = [p.longitude for p in points]
    min_lat, max_lat = min(lats), max(lats)
    min_lon, max_lon = min(lons), max(lons)

    lat_span = max_lat - min_lat
    lon_span = max_lon - min_lon
    max_span = max(lat_span, lon_span, 0.1)
    height = max(max_span * KM_PER_DEGREE * 0.8 * 1000, OVERVIEW_MIN_HEIGHT_M)

    # Shift south to compensate for the pitch
    return CameraPose(
        latitude=(min_lat + max_lat) / 2 - lat_span * 0.7,
        longitude=(min_lon + max_lon) / 2,
        height=height,
        heading=0.0,
        pitch=OVERVIEW_PITCH_DEG,
    )
