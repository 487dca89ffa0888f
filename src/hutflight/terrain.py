"""Terrain height cache and the pre-flight sampling / warm-up pipeline."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Sequence

from .config import FlightConfig
from .interfaces import TerrainProvider, Viewport
from .models import CameraPose, GeoPoint

logger = logging.getLogger(__name__)

KEY_DECIMALS = 5
SAMPLING_SHARE = 20.0
WARMUP_PITCH_DEG = -45.0


class TerrainHeightCache:
    """Append-only approximate height lookup keyed by rounded (lon, lat).

    Entries are bucketed in a grid of ``cell_deg`` cells; :meth:`height_at`
    returns the height of the nearest cached entry and never blocks.
    """

    def __init__(self, cell_deg: float = 0.01):
        self.cell_deg = cell_deg
        self._heights: dict[tuple[float, float], float] = {}
        self._buckets: dict[tuple[int, int], list[tuple[float, float, float]]] = {}
        self._min_cell: tuple[int, int] | None = None
        self._max_cell: tuple[int, int] | None = None

    def __len__(self) -> int:
        return len(self._heights)

    def __contains__(self, point: GeoPoint) -> bool:
        return self._key(point) in self._heights

    def add(self, point: GeoPoint, height: float) -> None:
        key = self._key(point)
        if key in self._heights:
            return
        self._heights[key] = height

        cell = self._cell(key[0], key[1])
        self._buckets.setdefault(cell, []).append((key[0], key[1], height))
        if self._min_cell is None:
            self._min_cell = self._max_cell = cell
        else:
            self._min_cell = (min(self._min_cell[0], cell[0]), min(self._min_cell[1], cell[1]))
            self._max_cell = (max(self._max_cell[0], cell[0]), max(self._max_cell[1], cell[1]))

    def height_at(self, point: GeoPoint) -> float:
        """Height of the nearest cached entry, or 0.0 when nothing is cached."""
        if not self._heights:
            return 0.0

        lon, lat = point.longitude, point.latitude
        cx, cy = self._cell(lon, lat)
        cos_lat = max(math.cos(math.radians(lat)), 1e-6)
        max_ring = max(
            abs(cx - self._min_cell[0]), abs(cx - self._max_cell[0]),
            abs(cy - self._min_cell[1]), abs(cy - self._max_cell[1]),
        )

        best_d2 = math.inf
        best_height = 0.0
        for ring in range(max_ring + 1):
            for cell in _ring_cells(cx, cy, ring):
                for e_lon, e_lat, height in self._buckets.get(cell, ()):
                    dx = (e_lon - lon) * cos_lat
                    dy = e_lat - lat
                    d2 = dx * dx + dy * dy
                    if d2 < best_d2:
                        best_d2 = d2
                        best_height = height
            # Cells of the next ring are at least ring * cell away
            if best_d2 < math.inf and math.sqrt(best_d2) <= ring * self.cell_deg * min(cos_lat, 1.0):
                break

        return best_height

    def _key(self, point: GeoPoint) -> tuple[float, float]:
        return round(point.longitude, KEY_DECIMALS), round(point.latitude, KEY_DECIMALS)

    def _cell(self, lon: float, lat: float) -> tuple[int, int]:
        return math.floor(lon / self.cell_deg), math.floor(lat / self.cell_deg)


def _ring_cells(cx: int, cy: int, ring: int):
    if ring == 0:
        yield cx, cy
        return
    for dx in range(-ring, ring + 1):
        yield cx + dx, cy - ring
        yield cx + dx, cy + ring
    for dy in range(-ring + 1, ring):
        yield cx - ring, cy + dy
        yield cx + ring, cy + dy


def evenly_spaced_indices(count: int, target: int) -> list[int]:
    """Up to ``target`` indices spread evenly over ``range(count)``, both ends included."""
    if count <= 0:
        return []
    if count <= target:
        return list(range(count))
    if target < 2:
        return [0]
    return sorted({round(i * (count - 1) / (target - 1)) for i in range(target)})


class TerrainSampler:
    """Fill a :class:`TerrainHeightCache` along a path and warm the viewer up.

    Heights are requested in sequential batches so at most one batch is
    outstanding. The warm-up then briefly parks the camera low over evenly
    spaced points so the renderer fetches high resolution tiles near the path.
    Provider failures are logged and skipped; the cache keeps what it got.
    """

    def __init__(
        self,
        provider: TerrainProvider | None,
        viewport: Viewport | None = None,
        config: FlightConfig | None = None,
    ):
        self.provider = provider
        self.viewport = viewport
        self.config = config or FlightConfig()

    async def prepare(
        self,
        points: Sequence[GeoPoint],
        cache: TerrainHeightCache | None = None,
        on_progress: Callable[[float], None] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> TerrainHeightCache:
        """Sample and warm up; returns the (possibly partial) cache.

        Setting ``cancel`` aborts between batches and during warm-up delays.
        """
        if cache is None:
            cache = TerrainHeightCache(self.config.terrain_cell_deg)
        cancel = cancel or asyncio.Event()

        def report(pct: float) -> None:
            if on_progress is not None:
                on_progress(min(pct, 100.0))

        report(0.0)
        await self._sample(points, cache, cancel, report)
        if cancel.is_set():
            return cache
        report(SAMPLING_SHARE)

        await self._warm_up(points, cache, cancel, report)
        if not cancel.is_set():
            report(100.0)
        return cache

    async def _sample(self, points, cache, cancel, report) -> None:
        if self.provider is None or not points:
            return

        indices = evenly_spaced_indices(len(points), self.config.terrain_sample_target)
        batch_size = self.config.terrain_batch_size
        batches = [indices[i:i + batch_size] for i in range(0, len(indices), batch_size)]

        for n, batch in enumerate(batches, start=1):
            if cancel.is_set():
                return
            batch_points = [points[i] for i in batch]
            try:
                heights = await self.provider.sample_heights(batch_points)
            except Exception as exc:
                logger.warning("Terrain batch %d/%d failed: %s", n, len(batches), exc)
                continue
            for point, height in zip(batch_points, heights):
                if height is not None and math.isfinite(height):
                    cache.add(point, height)
            report(SAMPLING_SHARE * n / len(batches))

        logger.debug("Terrain cache holds %d of %d sampled points", len(cache), len(indices))

    async def _warm_up(self, points, cache, cancel, report) -> None:
        steps = self.config.terrain_warmup_steps
        if self.viewport is None or steps <= 0 or not points:
            return

        for n, idx in enumerate(evenly_spaced_indices(len(points), steps), start=1):
            if cancel.is_set():
                return
            point = points[idx]
            self.viewport.set_pose(CameraPose(
                latitude=point.latitude,
                longitude=point.longitude,
                height=cache.height_at(point) + self.config.terrain_warmup_height_m,
                heading=0.0,
                pitch=WARMUP_PITCH_DEG,
            ))
            self.viewport.request_render()
            await _cancellable_sleep(self.config.terrain_warmup_delay_s, cancel)
            report(SAMPLING_SHARE + (100.0 - SAMPLING_SHARE) * n / steps)


async def _cancellable_sleep(delay: float, cancel: asyncio.Event) -> None:
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except asyncio.TimeoutError:
        pass
