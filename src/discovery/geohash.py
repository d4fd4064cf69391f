#!/usr/bin/env python3
"""
Geohash encoding and circular-query bounds.

Point encoding and decoding come from pygeohash. Query bounds follow the
geofire approach: pick the number of hash bits whose cell size matches the
query radius, encode the center plus the edges and corners of the circle's
bounding box at that resolution, and turn each hash into a lexicographic
[start, end) range. Stored geohashes that fall in any range are candidates;
callers still filter by true distance.

Edge offsets are measured on the haversine sphere, and the chosen cells are
never smaller than those offsets, so every point within the radius lands in
one of the ranges.

Bounding-box corners are wrapped back into [-180, 180]; a circle crossing the
antimeridian is covered only through those wrapped corner cells.

Ranges never use more characters than `precision`, so stored geohashes must
be at least that long.
"""

import math
from typing import List, Tuple

import pygeohash

from .errors import InvalidQuery
from .proximity import EARTH_RADIUS_KM

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
BITS_PER_CHAR = 5
DEFAULT_PRECISION = 9
MAX_PRECISION = 12
MAXIMUM_BITS_PRECISION = 22 * BITS_PER_CHAR

EARTH_MERI_CIRCUMFERENCE = 40007860
# Degree length on the sphere used for distance filtering
METERS_PER_DEGREE = EARTH_RADIUS_KM * 1000 * math.pi / 180
EPSILON = 1e-12

# Sorts after every BASE32 character
RANGE_END_SENTINEL = "~"

QueryBound = Tuple[str, str]


def _validate_location(lat: float, lng: float) -> None:
    if not (-90.0 <= lat <= 90.0):
        raise ValueError(f"Latitude must be in [-90, 90], got {lat}")
    if not (-180.0 <= lng <= 180.0):
        raise ValueError(f"Longitude must be in [-180, 180], got {lng}")


def _validate_geohash(geohash: str) -> None:
    for char in geohash:
        if char not in BASE32:
            raise ValueError(f"Invalid geohash character {char!r} in {geohash!r}")


def encode(lat: float, lng: float, precision: int = DEFAULT_PRECISION) -> str:
    """
    Encode a coordinate as a geohash string.

    Args:
        lat: Latitude in degrees
        lng: Longitude in degrees
        precision: Number of base32 characters (1-12)

    Returns:
        Geohash of the given length
    """
    _validate_location(lat, lng)
    if not (0 < precision <= MAX_PRECISION):
        raise ValueError(f"Precision must be in [1, {MAX_PRECISION}], got {precision}")
    return pygeohash.encode(lat, lng, precision=precision)


def decode_bbox(geohash: str) -> Tuple[float, float, float, float]:
    """Return (lat_min, lat_max, lng_min, lng_max) of a geohash cell."""
    _validate_geohash(geohash)
    lat, lng, lat_err, lng_err = pygeohash.decode_exactly(geohash)
    return lat - lat_err, lat + lat_err, lng - lng_err, lng + lng_err


def decode(geohash: str) -> Tuple[float, float]:
    """Return the center (lat, lng) of a geohash cell."""
    _validate_geohash(geohash)
    lat, lng, _, _ = pygeohash.decode_exactly(geohash)
    return lat, lng


def meters_to_longitude_degrees(distance: float, latitude: float) -> float:
    delta_deg = math.cos(math.radians(latitude)) * METERS_PER_DEGREE
    if delta_deg < EPSILON:
        return 360.0 if distance > 0 else 0.0
    return min(360.0, distance / delta_deg)


def _longitude_bits_for_resolution(resolution: float, latitude: float) -> float:
    degs = meters_to_longitude_degrees(resolution, latitude)
    return max(1.0, math.log2(360 / degs)) if abs(degs) > 0.000001 else 1.0


def _latitude_bits_for_resolution(resolution: float) -> float:
    return min(math.log2(EARTH_MERI_CIRCUMFERENCE / 2 / resolution), MAXIMUM_BITS_PRECISION)


def wrap_longitude(longitude: float) -> float:
    if -180 <= longitude <= 180:
        return longitude
    adjusted = longitude + 180
    if adjusted > 0:
        return (adjusted % 360) - 180
    return 180 - (-adjusted % 360)


def _bounding_box_bits(lat: float, size: float) -> int:
    lat_delta_degrees = size / METERS_PER_DEGREE
    latitude_north = min(90.0, lat + lat_delta_degrees)
    latitude_south = max(-90.0, lat - lat_delta_degrees)
    bits_lat = math.floor(_latitude_bits_for_resolution(size)) * 2
    bits_long_north = math.floor(_longitude_bits_for_resolution(size, latitude_north)) * 2 - 1
    bits_long_south = math.floor(_longitude_bits_for_resolution(size, latitude_south)) * 2 - 1
    return min(bits_lat, bits_long_north, bits_long_south, MAXIMUM_BITS_PRECISION)


def _bounding_box_coordinates(lat: float, lng: float, radius: float) -> List[Tuple[float, float]]:
    lat_degrees = radius / METERS_PER_DEGREE
    latitude_north = min(90.0, lat + lat_degrees)
    latitude_south = max(-90.0, lat - lat_degrees)
    long_degs = max(
        meters_to_longitude_degrees(radius, latitude_north),
        meters_to_longitude_degrees(radius, latitude_south)
    )
    return [
        (lat, lng),
        (lat, wrap_longitude(lng - long_degs)),
        (lat, wrap_longitude(lng + long_degs)),
        (latitude_north, lng),
        (latitude_north, wrap_longitude(lng - long_degs)),
        (latitude_north, wrap_longitude(lng + long_degs)),
        (latitude_south, lng),
        (latitude_south, wrap_longitude(lng - long_degs)),
        (latitude_south, wrap_longitude(lng + long_degs)),
    ]


def _hash_range(geohash: str, bits: int) -> QueryBound:
    """Turn a geohash into the [start, end) range covering its first `bits` bits."""
    precision = math.ceil(bits / BITS_PER_CHAR)
    if len(geohash) < precision:
        return geohash, geohash + RANGE_END_SENTINEL

    geohash = geohash[:precision]
    base = geohash[:-1]
    last_value = BASE32.index(geohash[-1])
    significant_bits = bits - len(base) * BITS_PER_CHAR
    unused_bits = BITS_PER_CHAR - significant_bits

    start_value = (last_value >> unused_bits) << unused_bits
    end_value = start_value + (1 << unused_bits)
    if end_value > 31:
        return base + BASE32[start_value], base + RANGE_END_SENTINEL
    return base + BASE32[start_value], base + BASE32[end_value]


def query_bounds(lat: float, lng: float, radius_km: float,
                 precision: int = DEFAULT_PRECISION) -> List[QueryBound]:
    """
    Compute geohash ranges whose cells cover a circle.

    Args:
        lat: Center latitude
        lng: Center longitude
        radius_km: Circle radius in kilometers (>= 0)
        precision: Longest geohash the ranges may use; match the stored precision

    Returns:
        Deduplicated list of (start, end) pairs, center range first
    """
    _validate_location(lat, lng)
    if math.isnan(radius_km) or radius_km < 0:
        raise InvalidQuery(f"Radius must be a non-negative number, got {radius_km}")

    if radius_km == 0:
        center_hash = encode(lat, lng, precision)
        return [(center_hash, center_hash + RANGE_END_SENTINEL)]

    radius_m = radius_km * 1000
    query_bits = max(1, _bounding_box_bits(lat, radius_m))
    query_bits = min(query_bits, precision * BITS_PER_CHAR)
    hash_precision = math.ceil(query_bits / BITS_PER_CHAR)

    bounds = []
    for coord_lat, coord_lng in _bounding_box_coordinates(lat, lng, radius_m):
        bound = _hash_range(encode(coord_lat, coord_lng, hash_precision), query_bits)
        if bound not in bounds:
            bounds.append(bound)
    return bounds


def in_bounds(geohash: str, bounds: List[QueryBound]) -> bool:
    """True when geohash sorts inside any [start, end] pair."""
    return any(start <= geohash <= end for start, end in bounds)
