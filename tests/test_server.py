"""Tests for the FastAPI server endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from hutflight.polyline import encode_polyline
from hutflight.server import FRAME_FIELDS, STAGE_FIELDS, app


@pytest.fixture
def client():
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test")


@pytest.fixture
def itinerary(itinerary_stops):
    return {"stops": [s.model_dump(mode="json") for s in itinerary_stops]}


@pytest.mark.asyncio
class TestDecode:
    async def test_decode(self, client):
        encoded = encode_polyline([(68.35, 18.83, 523.4), (68.36, 18.84, 540.0)])
        resp = await client.post("/decode", json={"polyline": encoded})
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 2
        assert data[0]["latitude"] == pytest.approx(68.35)
        assert "altitude" not in data[0]

    async def test_decode_with_altitude(self, client):
        encoded = encode_polyline([(68.35, 18.83, 523.4)])
        resp = await client.post("/decode?altitude=true", json={"polyline": encoded})
        assert resp.json()[0]["altitude"] == pytest.approx(523.4)

    async def test_truncated_input_gives_prefix(self, client):
        encoded = encode_polyline([(68.0, 18.0, 400.0), (68.001, 18.002, 410.0)])
        resp = await client.post("/decode", json={"polyline": encoded[:-1]})
        assert resp.status_code == 200
        assert len(resp.json()) == 1


@pytest.mark.asyncio
class TestItineraryEndpoints:
    async def test_stages_json(self, client, itinerary):
        resp = await client.post("/stages?format=json", json=itinerary)
        assert resp.status_code == 200
        data = resp.json()
        assert [s["day"] for s in data] == [1, 2, 3]
        assert data[1]["is_rest_day"] is True
        assert data[-1]["cumulative_km_end"] == pytest.approx(11.6)

    async def test_stages_csv(self, client, itinerary):
        resp = await client.post("/stages", json=itinerary)
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "text/csv; charset=utf-8"
        lines = resp.text.strip().split("\n")
        assert lines[0].strip() == ",".join(STAGE_FIELDS)
        assert len(lines) == 4  # header + 3 days

    async def test_bad_format(self, client, itinerary):
        resp = await client.post("/stages?format=xml", json=itinerary)
        assert resp.status_code == 422

    async def test_profile(self, client, itinerary):
        resp = await client.post("/profile", json=itinerary)
        assert resp.status_code == 200
        huts = [p["name"] for p in resp.json() if p["is_hut"]]
        assert huts == ["Abisko", "Abiskojaure", "Alesjaure"]


@pytest.mark.asyncio
class TestSimulate:
    async def test_simulate_json(self, client, itinerary):
        resp = await client.post("/flight/simulate?format=json&fps=5&speed=10", json=itinerary)
        assert resp.status_code == 200
        data = resp.json()
        assert data["speed_multiplier"] == 10
        assert [w["name"] for w in data["waypoints"]] == ["Abisko", "Abiskojaure", "Alesjaure"]
        assert data["frames"][0]["waypoint"] == "Abisko"
        assert all(0.0 <= f["progress_pct"] <= 100.0 for f in data["frames"])
        assert data["overview"]["pitch"] == -60.0

    async def test_simulate_csv(self, client, itinerary):
        resp = await client.post("/flight/simulate?fps=5&speed=10", json=itinerary)
        assert resp.status_code == 200
        assert "text/csv" in resp.headers["content-type"]
        lines = resp.text.strip().split("\n")
        assert lines[0].strip() == ",".join(FRAME_FIELDS)
        assert len(lines) > 10

    async def test_degenerate_itinerary(self, client, itinerary):
        single = {"stops": itinerary["stops"][:1]}
        resp = await client.post("/flight/simulate?format=json", json=single)
        assert resp.status_code == 422

    async def test_unknown_speed(self, client, itinerary):
        resp = await client.post("/flight/simulate?speed=3", json=itinerary)
        assert resp.status_code == 400
