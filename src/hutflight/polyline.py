"""Encoded polyline codec with an optional elevation channel.

The format is the signed-delta, 5-bit-chunked varint scheme popularised by
Google polylines (every character is ``chunk + 63``). Routing backends append a
third channel per point carrying the elevation in centimeters.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import GeoPoint, PathSample

PRECISION = 1e5
ALTITUDE_PRECISION = 100


def decode_polyline(encoded: str, *, with_altitude: bool = False) -> list[GeoPoint] | list[PathSample]:
    """Decode a three-channel (lat, lon, elevation) encoded polyline.

    Decoding stops at the last complete point when the string is truncated in
    the middle of a codeword, so malformed input yields the longest valid prefix.
    When ``with_altitude`` is true, :class:`PathSample` objects carry the
    elevation in meters; a point whose string ends right after its longitude
    keeps the elevation of the point before it.
    """
    if not encoded or not isinstance(encoded, str):
        return []

    points = []
    index = 0
    length = len(encoded)
    lat = lng = alt = 0

    while index < length:
        delta, index = _read_value(encoded, index)
        if delta is None:
            break
        lat += delta

        delta, index = _read_value(encoded, index)
        if delta is None:
            break
        lng += delta

        # A string that ends right after the longitude keeps the previous elevation
        if index < length:
            delta, index = _read_value(encoded, index)
            if delta is None:
                break
            alt += delta
        altitude = alt / ALTITUDE_PRECISION

        if with_altitude:
            points.append(PathSample(latitude=lat / PRECISION, longitude=lng / PRECISION, altitude=altitude))
        else:
            points.append(GeoPoint(latitude=lat / PRECISION, longitude=lng / PRECISION))

    return points


def _read_value(encoded: str, index: int) -> tuple[int | None, int]:
    """Read one signed varint starting at ``index``; ``None`` if the codeword is cut short."""
    result = 0
    shift = 0
    length = len(encoded)
    while True:
        if index >= length:
            return None, index
        b = ord(encoded[index]) - 63
        index += 1
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def encode_polyline(points: Iterable[GeoPoint | PathSample | tuple[float, ...]]) -> str:
    """Encode points as a three-channel polyline (the inverse of :func:`decode_polyline`).

    Accepts models or ``(lat, lon[, altitude_m])`` tuples; a missing altitude is encoded as 0.
    """
    chunks: list[str] = []
    prev_lat = prev_lng = prev_alt = 0

    for point in points:
        if isinstance(point, GeoPoint):
            latitude, longitude = point.latitude, point.longitude
            altitude = getattr(point, "altitude", None)
        else:
            latitude, longitude = point[0], point[1]
            altitude = point[2] if len(point) > 2 else None

        lat = round(latitude * PRECISION)
        lng = round(longitude * PRECISION)
        alt = round((altitude or 0.0) * ALTITUDE_PRECISION)

        chunks.append(_encode_value(lat - prev_lat))
        chunks.append(_encode_value(lng - prev_lng))
        chunks.append(_encode_value(alt - prev_alt))
        prev_lat, prev_lng, prev_alt = lat, lng, alt

    return "".join(chunks)


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    out = []
    while value >= 0x20:
        out.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    out.append(chr(value + 63))
    return "".join(out)
