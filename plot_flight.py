"""Simulate a camera flight over a saved itinerary, plot its profile and export the frames as CSV.

Usage: python plot_flight.py itinerary.json [dem.tif]

The itinerary is the JSON body accepted by the server (``{"stops": [...]}``).
When a DEM GeoTIFF is given, terrain heights are sampled from it; otherwise the
flight runs over flat ground.
"""

import asyncio
import csv
import sys
from pathlib import Path

import matplotlib.pyplot as plt

from hutflight import (
    FlightConfig,
    FlightRoute,
    Itinerary,
    TerrainSampler,
    build_elevation_profile,
    simulate_flight,
)
from hutflight.models import FlightFrame, FlightSimulation, ProfilePoint
from hutflight.raster_terrain import RasterTerrainProvider


def export_csv(frames: list[FlightFrame], path: Path) -> None:
    """Write simulation frames to a CSV file."""
    fieldnames = list(FlightFrame.model_fields)
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(frame.model_dump() for frame in frames)
    print(f"CSV exported: {path}")


def plot_profile(
    profile: list[ProfilePoint],
    simulation: FlightSimulation,
    path: Path,
    title: str = "Itinerary Elevation Profile",
) -> None:
    """Plot the ground profile, the huts and the simulated camera height."""
    fig, ax = plt.subplots(figsize=(14, 5))

    if profile:
        km = [p.distance_km for p in profile]
        alt = [p.altitude_m for p in profile]
        ax.fill_between(km, alt, alpha=0.3, color="steelblue", label="Ground")
        ax.plot(km, alt, color="steelblue", linewidth=0.8)
        for hut in (p for p in profile if p.is_hut):
            ax.plot(hut.distance_km, hut.altitude_m, "o", color="darkred", markersize=4)
            ax.annotate(hut.name, (hut.distance_km, hut.altitude_m), xytext=(3, 6),
                        textcoords="offset points", fontsize=7)

    frames = simulation.frames
    ax.plot([f.distance_km for f in frames], [f.camera_height for f in frames],
            color="coral", linewidth=1.0, label="Camera height")

    ax.set_xlabel("Distance (km)")
    ax.set_ylabel("Altitude (m)")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    ax.legend()
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    print(f"Plot saved: {path}")


async def prepare_terrain(route: FlightRoute, dem: Path | None, config: FlightConfig):
    if dem is None:
        return None
    provider = RasterTerrainProvider(dem)
    provider.load()
    return await TerrainSampler(provider, config=config).prepare(route.points)


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    itinerary_path = Path(sys.argv[1])
    dem_path = Path(sys.argv[2]) if len(sys.argv) > 2 else None
    output_csv = itinerary_path.with_name(itinerary_path.stem + "_flight.csv")
    output_plot = itinerary_path.with_name(itinerary_path.stem + "_profile.png")

    itinerary = Itinerary.model_validate_json(itinerary_path.read_text())
    print(f"Loaded {len(itinerary.stops)} stops from {itinerary_path}")

    config = FlightConfig.from_settings()
    route = FlightRoute.from_itinerary(itinerary.stops)
    terrain = asyncio.run(prepare_terrain(route, dem_path, config))
    if terrain is not None:
        print(f"Terrain samples: {len(terrain)}")

    simulation = simulate_flight(route, terrain, config)
    print(f"Total length:  {simulation.total_distance_km:.2f} km")
    print(f"Waypoints:     {len(simulation.waypoints)}")
    print(f"Flight time:   {simulation.duration_s:.1f} s at x{simulation.speed_multiplier}")
    print(f"Frames:        {len(simulation.frames):,}")
    print()

    export_csv(simulation.frames, output_csv)
    plot_profile(build_elevation_profile(itinerary.stops), simulation, output_plot,
                 title=f"Elevation Profile: {itinerary.stops[0].name} to {itinerary.stops[-1].name}")


if __name__ == "__main__":
    main()
