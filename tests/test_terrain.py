"""Tests for the terrain height cache and the sampling / warm-up pipeline."""

import asyncio
import math
import random

import numpy as np
import pytest
import rasterio
from pyproj import Transformer
from rasterio.transform import from_origin

from hutflight import FlightConfig, GeoPoint, TerrainHeightCache, TerrainSampler
from hutflight.exceptions import TerrainUnavailableError
from hutflight.raster_terrain import FlatTerrainProvider, RasterTerrainProvider
from hutflight.terrain import evenly_spaced_indices

from conftest import FakeTerrainProvider, FakeViewport, START_LAT, START_LON, lat_offset


def _brute_force_nearest(entries, point):
    cos_lat = math.cos(math.radians(point.latitude))
    best = min(
        entries,
        key=lambda e: ((e[0].longitude - point.longitude) * cos_lat) ** 2 + (e[0].latitude - point.latitude) ** 2,
    )
    return best[1]


class TestHeightCache:
    def test_empty_cache_returns_zero(self):
        assert TerrainHeightCache().height_at(GeoPoint(latitude=68.0, longitude=18.0)) == 0.0

    def test_nearest_entry(self):
        cache = TerrainHeightCache()
        cache.add(GeoPoint(latitude=68.0, longitude=18.0), 400.0)
        cache.add(GeoPoint(latitude=68.1, longitude=18.0), 900.0)
        assert cache.height_at(GeoPoint(latitude=68.01, longitude=18.0)) == 400.0
        assert cache.height_at(GeoPoint(latitude=68.09, longitude=18.0)) == 900.0
        # Far outside the cached area still answers with the nearest entry
        assert cache.height_at(GeoPoint(latitude=70.0, longitude=25.0)) == 900.0

    def test_append_only(self):
        cache = TerrainHeightCache()
        p = GeoPoint(latitude=68.0, longitude=18.0)
        cache.add(p, 400.0)
        cache.add(p, 1200.0)
        assert len(cache) == 1
        assert p in cache
        assert cache.height_at(p) == 400.0

    def test_matches_brute_force(self):
        rng = random.Random(3)
        cache = TerrainHeightCache(cell_deg=0.02)
        entries = []
        for _ in range(300):
            p = GeoPoint(latitude=rng.uniform(67.5, 68.5), longitude=rng.uniform(17.5, 19.5))
            h = rng.uniform(200, 1800)
            if p not in cache:
                cache.add(p, h)
                entries.append((p, h))

        for _ in range(200):
            q = GeoPoint(latitude=rng.uniform(67.3, 68.7), longitude=rng.uniform(17.3, 19.7))
            assert cache.height_at(q) == _brute_force_nearest(entries, q)


class TestEvenlySpacedIndices:
    def test_short_path_uses_every_point(self):
        assert evenly_spaced_indices(5, 50) == [0, 1, 2, 3, 4]

    def test_long_path_is_bounded(self):
        indices = evenly_spaced_indices(1000, 50)
        assert len(indices) == 50
        assert indices[0] == 0
        assert indices[-1] == 999


def _path(n=200, spacing=50.0):
    return [GeoPoint(latitude=START_LAT + lat_offset(i * spacing), longitude=START_LON) for i in range(n)]


@pytest.mark.asyncio
class TestSampler:
    async def test_samples_in_sequential_batches(self):
        provider = FakeTerrainProvider()
        config = FlightConfig(terrain_warmup_delay_s=0.0)
        progress = []

        cache = await TerrainSampler(provider, config=config).prepare(_path(), on_progress=progress.append)

        assert len(cache) == 50
        assert len(provider.batches) == 5
        assert all(len(b) <= 10 for b in provider.batches)
        assert provider.max_outstanding == 1
        assert progress[-1] == 100.0
        assert progress == sorted(progress)

    async def test_failed_batch_keeps_the_rest(self):
        provider = FakeTerrainProvider(fail_batches={2})
        cache = await TerrainSampler(provider, config=FlightConfig(terrain_warmup_delay_s=0.0)).prepare(_path())
        assert len(cache) == 40

    async def test_unknown_heights_are_not_cached(self):
        provider = FakeTerrainProvider(height_fn=lambda p: None)
        progress = []
        cache = await TerrainSampler(provider, config=FlightConfig(terrain_warmup_delay_s=0.0)).prepare(
            _path(), on_progress=progress.append
        )
        assert len(cache) == 0
        assert progress[-1] == 100.0

    async def test_without_provider(self):
        progress = []
        cache = await TerrainSampler(None).prepare(_path(), on_progress=progress.append)
        assert len(cache) == 0
        assert progress[-1] == 100.0

    async def test_warm_up_places_the_camera_low_along_the_path(self):
        viewport = FakeViewport()
        provider = FakeTerrainProvider(height_fn=lambda p: 600.0)
        config = FlightConfig(terrain_warmup_delay_s=0.0, terrain_warmup_steps=10, terrain_warmup_height_m=300.0)

        await TerrainSampler(provider, viewport, config).prepare(_path())

        assert len(viewport.poses) == 10
        assert viewport.renders == 10
        assert all(p.height == pytest.approx(900.0) for p in viewport.poses)
        lats = [p.latitude for p in viewport.poses]
        assert lats == sorted(lats)

    async def test_cancel_aborts_warm_up(self):
        viewport = FakeViewport()
        config = FlightConfig(terrain_warmup_delay_s=10.0)
        cancel = asyncio.Event()
        progress = []

        task = asyncio.create_task(
            TerrainSampler(FakeTerrainProvider(), viewport, config).prepare(
                _path(), on_progress=progress.append, cancel=cancel
            )
        )
        await asyncio.sleep(0.05)
        cancel.set()
        cache = await asyncio.wait_for(task, timeout=1.0)

        assert len(cache) == 50
        assert len(viewport.poses) == 1
        assert progress[-1] < 100.0


@pytest.mark.asyncio
class TestProviders:
    async def test_missing_dem(self, tmp_path):
        provider = RasterTerrainProvider(tmp_path / "missing.tif")
        with pytest.raises(TerrainUnavailableError):
            await provider.sample_heights(_path(3))

    async def test_flat_ground(self):
        cache = await TerrainSampler(FlatTerrainProvider(250.0), config=FlightConfig(terrain_warmup_delay_s=0.0)).prepare(
            _path(20)
        )
        assert len(cache) == 20
        assert cache.height_at(GeoPoint(latitude=START_LAT, longitude=START_LON)) == 250.0


DEM_CRS = "EPSG:3006"  # SWEREF 99 TM, metres
DEM_CELL_M = 100.0
DEM_NODATA = -9999.0


@pytest.fixture
def dem(tmp_path):
    """10 x 10 projected DEM of 100 m cells with START in cell (5, 5) and a nodata corner."""
    to_grid = Transformer.from_crs("EPSG:4326", DEM_CRS, always_xy=True)
    x0, y0 = to_grid.transform(START_LON, START_LAT)
    west, north = x0 - 5.5 * DEM_CELL_M, y0 + 5.5 * DEM_CELL_M

    data = (np.arange(100, dtype="float32") + 400.0).reshape(10, 10)
    data[0, 0] = DEM_NODATA
    path = tmp_path / "dem.tif"
    with rasterio.open(
        path, "w", driver="GTiff", height=10, width=10, count=1, dtype="float32",
        crs=DEM_CRS, transform=from_origin(west, north, DEM_CELL_M, DEM_CELL_M), nodata=DEM_NODATA,
    ) as dst:
        dst.write(data, 1)

    to_geo = Transformer.from_crs(DEM_CRS, "EPSG:4326", always_xy=True)

    def at(x, y):
        lon, lat = to_geo.transform(x, y)
        return GeoPoint(latitude=lat, longitude=lon)

    return path, at, west, north


class TestRasterProvider:
    def test_projected_lookup(self, dem):
        path, at, west, north = dem
        provider = RasterTerrainProvider(path)

        start = GeoPoint(latitude=START_LAT, longitude=START_LON)
        east = at(west + 6.5 * DEM_CELL_M, north - 5.5 * DEM_CELL_M)
        south = at(west + 5.5 * DEM_CELL_M, north - 7.5 * DEM_CELL_M)
        assert provider.heights([start, east, south]) == [455.0, 456.0, 475.0]

    def test_nodata_and_outside(self, dem):
        path, at, west, north = dem
        provider = RasterTerrainProvider(path)

        corner = at(west + 0.5 * DEM_CELL_M, north - 0.5 * DEM_CELL_M)
        outside = GeoPoint(latitude=START_LAT + 1.0, longitude=START_LON)
        west_of_grid = at(west - 0.5 * DEM_CELL_M, north - 5.5 * DEM_CELL_M)
        assert provider.heights([corner, outside, west_of_grid]) == [None, None, None]

    @pytest.mark.asyncio
    async def test_feeds_the_sampler(self, dem):
        path, at, west, north = dem
        points = [at(west + (i + 0.5) * DEM_CELL_M, north - 5.5 * DEM_CELL_M) for i in range(10)]
        cache = await TerrainSampler(RasterTerrainProvider(path), config=FlightConfig(terrain_warmup_delay_s=0.0)).prepare(
            points
        )
        assert len(cache) == 10
        assert cache.height_at(points[3]) == 453.0
