"""Tests for the encoded polyline codec."""

import random

import pytest

from hutflight import GeoPoint, PathSample, decode_polyline, encode_polyline

from conftest import line


class TestDecode:
    def test_known_value(self):
        # Google's reference first point (38.5, -120.2) plus a zero elevation
        assert encode_polyline([(38.5, -120.2)]) == "_p~iF~ps|U?"
        points = decode_polyline("_p~iF~ps|U?")
        assert points == [GeoPoint(latitude=38.5, longitude=-120.2)]

    @pytest.mark.parametrize("encoded", ["", None, 42, b"_p~iF"])
    def test_empty_or_non_string(self, encoded):
        assert decode_polyline(encoded) == []

    def test_round_trip(self):
        rng = random.Random(7)
        original = [(rng.uniform(67, 69), rng.uniform(17, 20), rng.uniform(300, 1500)) for _ in range(200)]
        decoded = decode_polyline(encode_polyline(original), with_altitude=True)

        assert len(decoded) == len(original)
        for (lat, lon, alt), p in zip(original, decoded):
            assert abs(p.latitude - lat) <= 1e-5
            assert abs(p.longitude - lon) <= 1e-5
            assert abs(p.altitude - alt) <= 0.01

    def test_altitude_dropped_by_default(self):
        points = decode_polyline(encode_polyline([(68.35, 18.83, 523.4)]))
        assert type(points[0]) is GeoPoint

    def test_altitude_in_meters(self):
        points = decode_polyline(encode_polyline([(68.35, 18.83, 523.4), (68.36, 18.84, 540.0)]), with_altitude=True)
        assert isinstance(points[0], PathSample)
        assert points[0].altitude == pytest.approx(523.4)
        assert points[1].altitude == pytest.approx(540.0)

    def test_missing_altitude_channel_at_end(self):
        points = decode_polyline("_p~iF~ps|U", with_altitude=True)
        assert len(points) == 1
        assert points[0].altitude == 0.0

    def test_missing_altitude_keeps_previous_elevation(self):
        encoded = encode_polyline([(68.0, 18.0, 400.0), (68.001, 18.002, 410.0)])
        # The second point's elevation delta is +10 m; "??" encodes lat 0 and lon 0
        elevation_codeword = encode_polyline([(0.0, 0.0, 10.0)])[2:]
        cut = encoded[:-len(elevation_codeword)]
        points = decode_polyline(cut, with_altitude=True)
        assert len(points) == 2
        assert points[1].latitude == pytest.approx(68.001)
        assert points[1].altitude == pytest.approx(400.0)


class TestTruncation:
    def test_every_prefix_is_a_prefix_of_the_full_decode(self):
        encoded = encode_polyline(line(68.0, 18.0, 68.2, 18.4, 30, 400.0, 1200.0))
        full = decode_polyline(encoded)

        for cut in range(len(encoded) + 1):
            partial = decode_polyline(encoded[:cut])
            assert len(partial) <= len(full)
            assert partial == full[:len(partial)]

    def test_cut_mid_codeword_keeps_complete_points(self):
        encoded = encode_polyline([(68.0, 18.0, 400.0), (68.001, 18.002, 410.0)])
        # Drop the final character: the second point's elevation codeword is incomplete
        points = decode_polyline(encoded[:-1], with_altitude=True)
        assert len(points) == 1
        assert points[0].altitude == pytest.approx(400.0)

    def test_garbage_does_not_hang(self):
        assert isinstance(decode_polyline("~~~~~~~~~~~~~~~~"), list)
