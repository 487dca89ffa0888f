import math

import pytest

from hutflight import FlightConfig, FlightRoute, GeoPoint, ItineraryStop, PathLeg, WaypointMarker, encode_polyline
from hutflight.geometry import EARTH_RADIUS_M

START_LAT = 68.0
START_LON = 18.5


def lat_offset(meters: float) -> float:
    """Latitude delta of ``meters`` along a meridian (exact for haversine)."""
    return math.degrees(meters / EARTH_RADIUS_M)


def line(lat0, lon0, lat1, lon1, n, alt0=None, alt1=None):
    """``n`` evenly spaced (lat, lon[, alt]) tuples from one point to another."""
    pts = []
    for i in range(n):
        t = i / (n - 1)
        lat = lat0 + (lat1 - lat0) * t
        lon = lon0 + (lon1 - lon0) * t
        if alt0 is None:
            pts.append((lat, lon))
        else:
            pts.append((lat, lon, alt0 + (alt1 - alt0) * t))
    return pts


class FakeViewport:
    """Records every command sent to the camera."""

    def __init__(self, home=None, fail_after=None):
        self.home = home
        self.poses = []
        self.flights = []
        self.marker = None
        self.marker_removed = 0
        self.renders = 0
        self.fail_after = fail_after

    def get_pose(self):
        return self.home

    def set_pose(self, pose):
        if self.fail_after is not None and len(self.poses) >= self.fail_after:
            raise RuntimeError("viewer destroyed")
        self.poses.append(pose)

    def fly_to(self, pose, duration_s):
        self.flights.append((pose, duration_s))

    def place_marker(self, point):
        self.marker = point

    def remove_marker(self):
        self.marker = None
        self.marker_removed += 1

    def request_render(self):
        self.renders += 1


class FakeTerrainProvider:
    """Heights from a function of the point; optional failing batches."""

    def __init__(self, height_fn=lambda p: 400.0, fail_batches=()):
        self.height_fn = height_fn
        self.fail_batches = set(fail_batches)
        self.batches = []
        self.outstanding = 0
        self.max_outstanding = 0

    async def sample_heights(self, points):
        self.outstanding += 1
        self.max_outstanding = max(self.max_outstanding, self.outstanding)
        try:
            self.batches.append(list(points))
            if len(self.batches) in self.fail_batches:
                raise ConnectionError("terrain server unavailable")
            return [self.height_fn(p) for p in points]
        finally:
            self.outstanding -= 1


@pytest.fixture
def fast_config():
    return FlightConfig(base_speed_mps=160.0, terrain_warmup_delay_s=0.0)


@pytest.fixture
def ten_km_points():
    return [
        GeoPoint(latitude=START_LAT, longitude=START_LON),
        GeoPoint(latitude=START_LAT + lat_offset(10_000), longitude=START_LON),
    ]


@pytest.fixture
def ten_km_route(ten_km_points):
    return FlightRoute.from_points(ten_km_points)


@pytest.fixture
def waypoint_route(ten_km_points):
    """10 km route with huts at 0, 5 and 10 km."""
    return FlightRoute.from_points(ten_km_points, [
        WaypointMarker(name="Abisko", cumulative_distance=0.0, day_index=0),
        WaypointMarker(name="Abiskojaure", cumulative_distance=5_000.0, day_index=1),
        WaypointMarker(name="Alesjaure", cumulative_distance=10_000.0, day_index=2),
    ])


@pytest.fixture
def itinerary_stops():
    """Three huts: a leg with elevation, a rest day, then a leg without geometry elevation."""
    leg1 = line(START_LAT, START_LON, START_LAT + 0.05, START_LON + 0.02, 20, 400.0, 700.0)
    leg2 = line(START_LAT + 0.05, START_LON + 0.02, START_LAT + 0.1, START_LON + 0.02, 10)
    return [
        ItineraryStop(name="Abisko", latitude=START_LAT, longitude=START_LON, altitude=385.0),
        ItineraryStop(
            name="Abiskojaure", latitude=START_LAT + 0.05, longitude=START_LON + 0.02,
            steps=[PathLeg(geometry_polyline=encode_polyline(leg1), distance_km=6.0, dplus_m=320, dminus_m=20)],
        ),
        ItineraryStop(
            name="Abiskojaure", latitude=START_LAT + 0.05, longitude=START_LON + 0.02, is_rest_day=True,
        ),
        ItineraryStop(
            name="Alesjaure", latitude=START_LAT + 0.1, longitude=START_LON + 0.02, altitude=780.0,
            steps=[PathLeg(geometry_polyline=encode_polyline(leg2), distance_km=5.6, dplus_m=150, dminus_m=70)],
        ),
    ]
