"""Camera flight along an itinerary.

The tick logic is a pure function, :func:`advance`, over an immutable
:class:`FlightState`. :class:`FlightController` owns one state per session and
drives it from a :class:`~hutflight.scheduler.FrameScheduler`;
:func:`simulate_flight` runs the same ticks offline at a fixed frame rate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from .camera import adaptive_targets, overview_pose, slope_degrees, target_camera_height
from .config import FlightConfig
from .distance_index import interpolate
from .exceptions import DegenerateRouteError
from .geometry import bearing, destination_point, haversine_distance, lerp, lerp_angle
from .interfaces import TerrainProvider, Viewport
from .itinerary import FlightRoute
from .models import CameraPose, FlightFrame, FlightSimulation, GeoPoint, WaypointMarker
from .scheduler import CancelHandle, FrameScheduler
from .terrain import TerrainHeightCache, TerrainSampler

logger = logging.getLogger(__name__)

# Below this the look-ahead point is the hiker itself and the heading is kept
MIN_HEADING_BASELINE_M = 1.0


class FlightPhase(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    PAUSED = "paused"
    WAYPOINT_PAUSED = "waypoint_paused"


FLYING_PHASES = (FlightPhase.RUNNING, FlightPhase.PAUSED, FlightPhase.WAYPOINT_PAUSED)


@dataclass(frozen=True)
class FlightState:
    """Everything a tick needs to know about the session so far."""

    current_distance: float = 0.0
    segment_index: int = 0
    segment_t: float = 0.0
    bearing: float = 0.0
    camera_height: float | None = None
    height_bonus: float = 0.0
    setback_bonus: float = 0.0
    pitch_offset: float = 0.0
    visited: frozenset[int] = frozenset()
    pause_until: float | None = None
    last_timestamp: float | None = None
    speed_multiplier: int = 1


class TickOutcome(str, Enum):
    HOLDING = "holding"
    WAYPOINT_REACHED = "waypoint_reached"
    MOVED = "moved"
    FINISHED = "finished"


@dataclass(frozen=True)
class TickResult:
    state: FlightState
    outcome: TickOutcome
    pose: CameraPose | None = None
    hiker: GeoPoint | None = None
    waypoint: WaypointMarker | None = None
    slope_deg: float = 0.0


def advance(
    state: FlightState,
    now: float,
    route: FlightRoute,
    terrain: TerrainHeightCache,
    config: FlightConfig,
) -> TickResult:
    """Run one animation tick at time ``now`` (seconds)."""
    if state.pause_until is not None:
        if now < state.pause_until:
            return TickResult(state, TickOutcome.HOLDING)
        # Time spent at the waypoint is not travel
        state = replace(state, pause_until=None, last_timestamp=None)

    dt = 0.0 if state.last_timestamp is None else max(now - state.last_timestamp, 0.0)
    # Never past the end, so a waypoint at the last point reports 100%
    distance = min(
        state.current_distance + dt * config.base_speed_mps * state.speed_multiplier, route.total_distance
    )
    state = replace(state, current_distance=distance, last_timestamp=now)

    for idx, waypoint in enumerate(route.waypoints):
        if idx in state.visited:
            continue
        if abs(distance - waypoint.cumulative_distance) < config.waypoint_proximity_m:
            state = replace(
                state,
                visited=state.visited | {idx},
                pause_until=now + config.waypoint_pause_s,
            )
            return TickResult(state, TickOutcome.WAYPOINT_REACHED, waypoint=waypoint)

    if distance >= route.total_distance:
        return TickResult(replace(state, current_distance=route.total_distance), TickOutcome.FINISHED)

    state, pose, hiker, slope = compose_pose(state, route, terrain, config)
    return TickResult(state, TickOutcome.MOVED, pose=pose, hiker=hiker, slope_deg=slope)


def compose_pose(
    state: FlightState,
    route: FlightRoute,
    terrain: TerrainHeightCache,
    config: FlightConfig,
    snap: bool = False,
) -> tuple[FlightState, CameraPose, GeoPoint, float]:
    """Derive the camera pose for ``state.current_distance``.

    Adaptive offsets, heading and height are smoothed toward their targets
    unless ``snap`` is set, in which case they jump straight to them.
    """
    index = route.index
    distance = state.current_distance
    total = route.total_distance

    seg, t = index.point_index_at_distance(distance)
    points = route.points
    hiker = interpolate(points[seg], points[seg + 1], t) if len(points) > 1 else points[0]

    ahead_distance = min(distance + config.slope_lookahead_m, total) - distance
    ahead = index.position_at(distance + config.slope_lookahead_m)
    slope = slope_degrees(terrain.height_at(hiker), terrain.height_at(ahead), ahead_distance)

    targets = adaptive_targets(slope, config)
    f = 1.0 if snap else config.adaptive_smoothing
    height_bonus = lerp(state.height_bonus, targets.height_bonus, f)
    setback_bonus = lerp(state.setback_bonus, targets.setback_bonus, f)
    pitch_offset = lerp(state.pitch_offset, targets.pitch_offset, f)

    far = index.position_at(distance + config.bearing_lookahead_m)
    if haversine_distance(hiker, far) > MIN_HEADING_BASELINE_M:
        target_bearing = bearing(hiker, far)
    else:
        target_bearing = state.bearing
    heading = target_bearing if snap else lerp_angle(state.bearing, target_bearing, config.bearing_smoothing)

    camera = destination_point(hiker, (heading + 180.0) % 360.0, config.base_setback_m + setback_bonus)
    target_height = target_camera_height(terrain.height_at(camera), height_bonus, config)
    if snap or state.camera_height is None:
        height = target_height
    else:
        height = lerp(state.camera_height, target_height, config.height_smoothing)

    state = replace(
        state,
        segment_index=seg,
        segment_t=t,
        bearing=heading,
        camera_height=height,
        height_bonus=height_bonus,
        setback_bonus=setback_bonus,
        pitch_offset=pitch_offset,
    )
    pose = CameraPose(
        latitude=camera.latitude,
        longitude=camera.longitude,
        height=height,
        heading=heading,
        pitch=config.base_pitch_deg + pitch_offset,
    )
    return state, pose, hiker, slope


def visited_up_to(route: FlightRoute, distance: float) -> frozenset[int]:
    """Indices of the waypoints at or before ``distance`` meters."""
    return frozenset(i for i, wp in enumerate(route.waypoints) if wp.cumulative_distance <= distance)


def initial_state(
    route: FlightRoute,
    terrain: TerrainHeightCache,
    config: FlightConfig,
    speed_multiplier: int = 1,
) -> tuple[FlightState, CameraPose, GeoPoint]:
    """State, pose and hiker position at the start of the route, facing along it."""
    state = FlightState(visited=visited_up_to(route, 0.0), speed_multiplier=speed_multiplier)
    state, pose, hiker, _ = compose_pose(state, route, terrain, config, snap=True)
    return state, pose, hiker


def seek_state(state: FlightState, distance: float, route: FlightRoute) -> FlightState:
    """Jump to ``distance`` meters; waypoints up to it count as already visited."""
    distance = min(max(distance, 0.0), route.total_distance)
    seg, t = route.index.point_index_at_distance(distance)
    return replace(
        state,
        current_distance=distance,
        segment_index=seg,
        segment_t=t,
        visited=visited_up_to(route, distance),
        pause_until=None,
        last_timestamp=None,
    )


def simulate_flight(
    route: FlightRoute,
    terrain: TerrainHeightCache | None = None,
    config: FlightConfig | None = None,
    fps: float = 10.0,
    speed_multiplier: int = 1,
) -> FlightSimulation:
    """Fly the whole route offline and record one frame per tick that moved the camera."""
    if not route.is_flyable:
        raise DegenerateRouteError(
            f"Route has {len(route.points)} points and {route.total_distance:.0f} m; cannot fly it"
        )
    config = config or FlightConfig()
    terrain = terrain if terrain is not None else TerrainHeightCache(config.terrain_cell_deg)
    total = route.total_distance
    dt = 1.0 / fps

    state, pose, hiker = initial_state(route, terrain, config, speed_multiplier)
    frames = [_frame(0.0, state, pose, hiker, 0.0, total, route.waypoints[0].name if route.waypoints else None)]

    now = 0.0
    while True:
        now += dt
        result = advance(state, now, route, terrain, config)
        state = result.state
        if result.outcome is TickOutcome.FINISHED:
            break
        if result.outcome is TickOutcome.WAYPOINT_REACHED:
            frames.append(_frame(now, state, pose, hiker, 0.0, total, result.waypoint.name))
        elif result.outcome is TickOutcome.MOVED:
            pose, hiker = result.pose, result.hiker
            frames.append(_frame(now, state, pose, hiker, result.slope_deg, total))

    logger.info("Simulated %.1f km in %.1f s (%d frames)", total / 1000, now, len(frames))
    return FlightSimulation(
        total_distance_km=total / 1000,
        duration_s=now,
        speed_multiplier=speed_multiplier,
        waypoints=list(route.waypoints),
        overview=overview_pose(route.points),
        frames=frames,
    )


def _frame(now, state, pose, hiker, slope, total, waypoint=None) -> FlightFrame:
    return FlightFrame(
        time_s=now,
        distance_km=state.current_distance / 1000,
        progress_pct=state.current_distance / total * 100 if total > 0 else 0.0,
        hiker_latitude=hiker.latitude,
        hiker_longitude=hiker.longitude,
        camera_latitude=pose.latitude,
        camera_longitude=pose.longitude,
        camera_height=pose.height,
        heading=pose.heading,
        pitch=pose.pitch,
        slope_deg=slope,
        waypoint=waypoint,
    )


class FlightController:
    """Real-time camera flight over a :class:`FlightRoute`.

    ``start`` samples terrain, parks the camera at the start and leaves the
    flight paused on the first hut; ``toggle_pause`` sets it going. Control
    calls that do not apply to the current phase are ignored.
    """

    def __init__(
        self,
        viewport: Viewport,
        scheduler: FrameScheduler,
        terrain_provider: TerrainProvider | None = None,
        config: FlightConfig | None = None,
        *,
        on_distance: Callable[[float | None], None] | None = None,
        on_progress: Callable[[float], None] | None = None,
        on_waypoint: Callable[[str], None] | None = None,
        on_loading: Callable[[float], None] | None = None,
        on_phase: Callable[[FlightPhase], None] | None = None,
    ):
        self.viewport = viewport
        self.scheduler = scheduler
        self.terrain_provider = terrain_provider
        self.config = config or FlightConfig()
        self.on_distance = on_distance
        self.on_progress = on_progress
        self.on_waypoint = on_waypoint
        self.on_loading = on_loading
        self.on_phase = on_phase

        self._phase = FlightPhase.IDLE
        self._speed_index = 0
        self._route: FlightRoute | None = None
        self._terrain: TerrainHeightCache | None = None
        self._state: FlightState | None = None
        self._handle: CancelHandle | None = None
        self._cancel: asyncio.Event | None = None
        self._home_pose: CameraPose | None = None

    @property
    def phase(self) -> FlightPhase:
        return self._phase

    @property
    def is_flying(self) -> bool:
        return self._phase in FLYING_PHASES

    @property
    def state(self) -> FlightState | None:
        return self._state

    @property
    def speed_multiplier(self) -> int:
        return self.config.speed_multipliers[self._speed_index]

    async def start(self, route: FlightRoute) -> bool:
        """Prepare and open a session; ``False`` if one is active or the route cannot be flown."""
        if self._phase is not FlightPhase.IDLE:
            logger.debug("Ignoring start while %s", self._phase.value)
            return False
        if not route.is_flyable:
            logger.warning(
                "Cannot start flight: route has %d points and %.0f m", len(route.points), route.total_distance
            )
            return False

        self._set_phase(FlightPhase.INITIALIZING)
        self._route = route
        self._cancel = cancel = asyncio.Event()
        self._home_pose = self._current_pose(route)

        sampler = TerrainSampler(self.terrain_provider, self.viewport, self.config)
        try:
            terrain = await sampler.prepare(route.points, on_progress=self.on_loading, cancel=cancel)
        except Exception:
            logger.exception("Viewport failed while warming up terrain")
            self._teardown(restore=False)
            return False
        if cancel.is_set():
            logger.info("Flight start cancelled during terrain preparation")
            return False

        self._terrain = terrain
        state, pose, hiker = initial_state(route, terrain, self.config, self.speed_multiplier)
        try:
            self.viewport.set_pose(pose)
            self.viewport.place_marker(hiker)
            self.viewport.request_render()
        except Exception:
            logger.exception("Viewport failed while positioning the camera")
            self._teardown(restore=False)
            return False

        self._state = state
        self._set_phase(FlightPhase.PAUSED)
        logger.info(
            "Flight ready: %.1f km, %d waypoints, %d terrain samples",
            route.total_distance / 1000, len(route.waypoints), len(terrain),
        )
        if route.waypoints and self.on_waypoint is not None:
            self.on_waypoint(route.waypoints[0].name)
        self._notify(state)
        return True

    def toggle_pause(self) -> None:
        if self._phase in (FlightPhase.RUNNING, FlightPhase.WAYPOINT_PAUSED):
            self._cancel_tick()
            self._set_phase(FlightPhase.PAUSED)
        elif self._phase is FlightPhase.PAUSED:
            self._resume()

    def seek(self, distance_km: float) -> None:
        """Jump to ``distance_km`` along the route and keep flying from there."""
        if not self.is_flying or self._state is None:
            return
        self._state = seek_state(self._state, distance_km * 1000, self._route)
        logger.debug("Seek to %.2f km", self._state.current_distance / 1000)
        self._notify(self._state)
        if self._phase is FlightPhase.PAUSED:
            self._resume()
        else:
            self._set_phase(FlightPhase.RUNNING)

    def cycle_speed(self) -> int:
        """Next speed multiplier, wrapping around; applies immediately when flying."""
        self._speed_index = (self._speed_index + 1) % len(self.config.speed_multipliers)
        if self._state is not None:
            self._state = replace(self._state, speed_multiplier=self.speed_multiplier)
        return self.speed_multiplier

    def stop(self) -> None:
        """End the session and fly the camera back to where it was before."""
        if self._phase is FlightPhase.IDLE:
            return
        logger.info("Flight stopped")
        self._teardown(restore=True)

    def close(self) -> None:
        """Release the session without moving the camera (viewer teardown)."""
        if self._phase is FlightPhase.IDLE:
            return
        self._teardown(restore=False)

    def _resume(self) -> None:
        # The paused interval must not count as travel
        self._state = replace(self._state, last_timestamp=None)
        self._set_phase(FlightPhase.RUNNING)
        self._schedule()

    def _schedule(self) -> None:
        if self._handle is None:
            self._handle = self.scheduler.schedule_next_tick(self._on_frame)

    def _cancel_tick(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_frame(self, now: float) -> None:
        self._handle = None
        if self._phase not in (FlightPhase.RUNNING, FlightPhase.WAYPOINT_PAUSED) or self._state is None:
            return

        result = advance(self._state, now, self._route, self._terrain, self.config)
        self._state = result.state

        try:
            self._apply(result)
        except Exception:
            logger.exception("Flight frame failed; stopping flight")
            self._teardown(restore=False)
            return

        if result.outcome is TickOutcome.FINISHED:
            logger.info("Flight reached the end of the route")
            self._teardown(restore=True)
            return
        self._schedule()

    def _apply(self, result: TickResult) -> None:
        """Push one tick to the viewport and the callbacks."""
        if result.outcome is TickOutcome.FINISHED:
            self._notify(result.state)
        elif result.outcome is TickOutcome.WAYPOINT_REACHED:
            self._set_phase(FlightPhase.WAYPOINT_PAUSED)
            logger.debug("Pausing at %s", result.waypoint.name)
            if self.on_waypoint is not None:
                self.on_waypoint(result.waypoint.name)
        elif result.outcome is TickOutcome.HOLDING:
            self._set_phase(FlightPhase.WAYPOINT_PAUSED)
        elif result.outcome is TickOutcome.MOVED:
            self.viewport.set_pose(result.pose)
            self.viewport.place_marker(result.hiker)
            self.viewport.request_render()
            self._set_phase(FlightPhase.RUNNING)
            self._notify(result.state)

    def _notify(self, state: FlightState) -> None:
        total = self._route.total_distance
        if self.on_progress is not None:
            self.on_progress(state.current_distance / total * 100 if total > 0 else 0.0)
        if self.on_distance is not None:
            self.on_distance(state.current_distance / 1000)

    def _current_pose(self, route: FlightRoute) -> CameraPose:
        try:
            pose = self.viewport.get_pose()
        except Exception:
            logger.warning("Viewport cannot report its pose; returning to the route overview after the flight")
            pose = None
        return pose if pose is not None else overview_pose(route.points)

    def _teardown(self, restore: bool) -> None:
        self._cancel_tick()
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None

        try:
            self.viewport.remove_marker()
            if restore and self._home_pose is not None:
                self.viewport.fly_to(self._home_pose, self.config.return_duration_s)
        except Exception:
            logger.exception("Viewport failed while ending the flight")

        self._state = None
        self._route = None
        self._terrain = None
        self._home_pose = None
        self._set_phase(FlightPhase.IDLE)
        if self.on_distance is not None:
            self.on_distance(None)

    def _set_phase(self, phase: FlightPhase) -> None:
        if phase is self._phase:
            return
        self._phase = phase
        if self.on_phase is not None:
            self.on_phase(phase)
