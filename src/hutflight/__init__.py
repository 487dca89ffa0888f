"""Camera flights over multi-day hut-to-hut itineraries."""

from .camera import overview_pose
from .config import FlightConfig
from .distance_index import DistanceIndex
from .exceptions import DegenerateRouteError, HutflightError, TerrainUnavailableError
from .flight import FlightController, FlightPhase, FlightState, advance, seek_state, simulate_flight
from .itinerary import FlightRoute
from .models import (
    CameraPose,
    FlightFrame,
    FlightSimulation,
    GeoPoint,
    Itinerary,
    ItineraryStop,
    PathLeg,
    PathSample,
    ProfilePoint,
    Stage,
    WaypointMarker,
)
from .polyline import decode_polyline, encode_polyline
from .profile import build_elevation_profile, cursor_for_distance
from .scheduler import AsyncioFrameScheduler, ManualFrameScheduler
from .stages import compute_stages
from .terrain import TerrainHeightCache, TerrainSampler

__all__ = [
    "AsyncioFrameScheduler",
    "CameraPose",
    "DegenerateRouteError",
    "DistanceIndex",
    "FlightConfig",
    "FlightController",
    "FlightFrame",
    "FlightPhase",
    "FlightRoute",
    "FlightSimulation",
    "FlightState",
    "GeoPoint",
    "HutflightError",
    "Itinerary",
    "ItineraryStop",
    "ManualFrameScheduler",
    "PathLeg",
    "PathSample",
    "ProfilePoint",
    "Stage",
    "TerrainHeightCache",
    "TerrainSampler",
    "TerrainUnavailableError",
    "WaypointMarker",
    "advance",
    "build_elevation_profile",
    "compute_stages",
    "cursor_for_distance",
    "decode_polyline",
    "encode_polyline",
    "overview_pose",
    "seek_state",
    "simulate_flight",
]
