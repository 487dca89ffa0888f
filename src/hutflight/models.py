"""Pydantic data models for itineraries, decoded paths and camera flights."""

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    """A geographic position in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class PathSample(GeoPoint):
    """A decoded path point that keeps the elevation channel (meters)."""

    altitude: float | None = None


class WaypointMarker(BaseModel):
    """A hut along the flattened route, at its cumulative distance in meters."""

    name: str
    cumulative_distance: float
    day_index: int


class PathLeg(BaseModel):
    """One routed step between two huts as returned by the backend."""

    geometry_polyline: str | None = None
    distance_km: float | None = None
    dplus_m: float | None = None
    dminus_m: float | None = None


class ItineraryStop(BaseModel):
    """A hut in the itinerary, with the legs that lead to it from the previous stop."""

    name: str
    latitude: float
    longitude: float
    altitude: float | None = None
    is_rest_day: bool = False
    steps: list[PathLeg] = Field(default_factory=list)


class Itinerary(BaseModel):
    stops: list[ItineraryStop]


class CameraPose(BaseModel):
    """Absolute camera pose; angles in degrees, height in meters above the ellipsoid."""

    latitude: float
    longitude: float
    height: float
    heading: float = 0.0
    pitch: float = -90.0
    roll: float = 0.0


class ProfilePoint(BaseModel):
    """A point of the elevation profile chart."""

    distance_km: float
    altitude_m: float
    latitude: float | None = None
    longitude: float | None = None
    name: str | None = None
    is_hut: bool = False
    stop_index: int | None = None


class Stage(BaseModel):
    """A day of the itinerary between two consecutive stops."""

    day: int
    from_name: str
    to_name: str
    distance_km: float
    dplus_m: float
    dminus_m: float
    is_rest_day: bool
    cumulative_km_start: float
    cumulative_km_end: float


class FlightFrame(BaseModel):
    """One rendered frame of an offline flight simulation."""

    time_s: float
    distance_km: float
    progress_pct: float
    hiker_latitude: float
    hiker_longitude: float
    camera_latitude: float
    camera_longitude: float
    camera_height: float
    heading: float
    pitch: float
    slope_deg: float
    waypoint: str | None = None


class FlightSimulation(BaseModel):
    """Complete result of simulating a flight over an itinerary."""

    total_distance_km: float
    duration_s: float
    speed_multiplier: int
    waypoints: list[WaypointMarker]
    overview: CameraPose
    frames: list[FlightFrame]
