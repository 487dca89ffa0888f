"""Terrain height provider backed by a GeoTIFF digital elevation model."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

import rasterio
from pyproj import Transformer
from rasterio.errors import RasterioIOError
from rasterio.transform import rowcol

from .exceptions import TerrainUnavailableError
from .models import GeoPoint


class RasterTerrainProvider:
    """Sample ground heights from a DEM raster in any CRS.

    The band is read once on first use; lookups run in a worker thread so the
    event loop keeps ticking while a batch is sampled.
    """

    def __init__(self, raster_path: str | Path, band: int = 1):
        self.raster_path = Path(raster_path)
        self.band_index = band
        self._band = None
        self._nodata = None
        self._transform = None
        self._transformer = None

    def load(self) -> None:
        """Read the DEM band; raises :class:`TerrainUnavailableError` when it cannot be opened."""
        if self._band is not None:
            return
        if not self.raster_path.exists():
            raise TerrainUnavailableError(f"DEM not found: {self.raster_path}")
        try:
            ds = rasterio.open(self.raster_path)
        except RasterioIOError as exc:
            raise TerrainUnavailableError(f"Cannot open DEM {self.raster_path}: {exc}") from exc

        with ds:
            self._band = ds.read(self.band_index)
            self._nodata = ds.nodata
            self._transform = ds.transform
            crs = ds.crs
        self._transformer = (
            Transformer.from_crs("EPSG:4326", crs, always_xy=True) if crs is not None and not crs.is_geographic else None
        )

    def heights(self, points: Sequence[GeoPoint]) -> list[float | None]:
        """Synchronous lookup; ``None`` outside the raster or on nodata."""
        self.load()

        lons = [p.longitude for p in points]
        lats = [p.latitude for p in points]
        if self._transformer is not None:
            xs, ys = self._transformer.transform(lons, lats)
        else:
            xs, ys = lons, lats

        rows, cols = rowcol(self._transform, xs, ys)
        heights: list[float | None] = []
        for row, col in zip(rows, cols):
            if 0 <= row < self._band.shape[0] and 0 <= col < self._band.shape[1]:
                val = float(self._band[row, col])
                heights.append(None if self._nodata is not None and val == self._nodata else val)
            else:
                heights.append(None)
        return heights

    async def sample_heights(self, points: Sequence[GeoPoint]) -> list[float | None]:
        return await asyncio.to_thread(self.heights, list(points))


class FlatTerrainProvider:
    """Terrain provider reporting a constant ground height."""

    def __init__(self, height: float = 0.0):
        self.height = height

    async def sample_heights(self, points: Sequence[GeoPoint]) -> list[float | None]:
        return [self.height for _ in points]
