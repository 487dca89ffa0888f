"""FastAPI server exposing decoding, stages, profile and offline flight simulation."""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .config import FlightConfig, settings
from .exceptions import DegenerateRouteError, TerrainUnavailableError
from .flight import simulate_flight
from .itinerary import FlightRoute
from .logger import setup_logger
from .models import FlightFrame, FlightSimulation, Itinerary, Stage
from .polyline import decode_polyline
from .profile import build_elevation_profile
from .raster_terrain import RasterTerrainProvider
from .stages import compute_stages
from .terrain import TerrainSampler

setup_logger("hutflight")
logger = logging.getLogger(__name__)

app = FastAPI(title="Hutflight", version="0.1.0")

STAGE_FIELDS = list(Stage.model_fields)
FRAME_FIELDS = list(FlightFrame.model_fields)


class PolylineRequest(BaseModel):
    polyline: str


@app.post("/decode")
async def decode(request: PolylineRequest, altitude: bool = False):
    """Decode an encoded polyline; truncated input yields the valid prefix."""
    return decode_polyline(request.polyline, with_altitude=altitude)


@app.post("/stages")
async def stages(itinerary: Itinerary, format: str = Query("csv", pattern="^(csv|json)$")):
    """Day-by-day distances and elevation for an itinerary."""
    result = compute_stages(itinerary.stops)
    if format == "json":
        return result
    return _rows_to_csv_response((s.model_dump() for s in result), STAGE_FIELDS, "itinerary_stages.csv")


@app.post("/profile")
async def profile(itinerary: Itinerary):
    """Elevation profile points for the chart."""
    return build_elevation_profile(itinerary.stops)


@app.post("/flight/simulate")
async def simulate(
    itinerary: Itinerary,
    fps: float = Query(10.0, gt=0, le=60),
    speed: int = Query(1),
    format: str = Query("csv", pattern="^(csv|json)$"),
):
    """Fly the itinerary offline and return the camera track."""
    config = FlightConfig.from_settings()
    if speed not in config.speed_multipliers:
        raise HTTPException(status_code=400, detail=f"speed must be one of {list(config.speed_multipliers)}")

    route = FlightRoute.from_itinerary(itinerary.stops)
    terrain = None
    if settings.DEM_PATH is not None:
        try:
            provider = RasterTerrainProvider(settings.DEM_PATH)
            provider.load()
            terrain = await TerrainSampler(provider, config=config).prepare(route.points)
        except TerrainUnavailableError as exc:
            logger.warning("Simulating over flat terrain: %s", exc)

    try:
        result: FlightSimulation = simulate_flight(route, terrain, config, fps=fps, speed_multiplier=speed)
    except DegenerateRouteError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    if format == "json":
        return result
    return _rows_to_csv_response((f.model_dump() for f in result.frames), FRAME_FIELDS, "flight_frames.csv")


def _rows_to_csv_response(rows: Iterable[dict], fieldnames: list[str], filename: str) -> StreamingResponse:
    """Stream rows as a CSV attachment."""

    def generate():
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=fieldnames)
        writer.writeheader()
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for row in rows:
            writer.writerow(row)
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    return StreamingResponse(
        generate(),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
