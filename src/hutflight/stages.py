"""Day stages between consecutive stops of an itinerary."""

from .geometry import haversine_distance
from .models import ItineraryStop, Stage
from .polyline import decode_polyline


def compute_stages(stops: list[ItineraryStop]) -> list[Stage]:
    """Compute one stage per day with distance, elevation gain/loss and cumulative km."""
    stages: list[Stage] = []
    cumulative_km = 0.0

    for i in range(1, len(stops)):
        prev, hut = stops[i - 1], stops[i]

        if hut.is_rest_day:
            distance_km = dplus = dminus = 0.0
        else:
            distance_km = _stage_distance_km(prev, hut)
            dplus = sum(s.dplus_m or 0.0 for s in hut.steps)
            dminus = sum(s.dminus_m or 0.0 for s in hut.steps)

        stage = Stage(
            day=i,
            from_name=prev.name,
            to_name=hut.name,
            distance_km=distance_km,
            dplus_m=dplus,
            dminus_m=dminus,
            is_rest_day=hut.is_rest_day,
            cumulative_km_start=cumulative_km,
            cumulative_km_end=cumulative_km + distance_km,
        )
        stages.append(stage)
        cumulative_km += distance_km

    return stages


def _stage_distance_km(prev: ItineraryStop, hut: ItineraryStop) -> float:
    """Backend-reported leg distances, else the length of the decoded geometry."""
    reported = [s.distance_km for s in hut.steps if s.distance_km is not None]
    if reported:
        return sum(reported)

    length_m = 0.0
    for step in hut.steps:
        coords = decode_polyline(step.geometry_polyline or "")
        for j in range(1, len(coords)):
            length_m += haversine_distance(coords[j - 1], coords[j])
    if length_m == 0.0:
        # No usable geometry: straight line, as drawn on the map and flown
        length_m = haversine_distance(prev, hut)
    return length_m / 1000
