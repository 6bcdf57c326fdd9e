"""Geographic ↔ projected-space conversions (spherical web-mercator).

Two parameterizations of the same mercator curve live here:

* ``project`` / ``unproject`` map lng/lat/alt into the shared world space
  used to place objects (origin at lng=0, lat=0; x grows westward and y
  southward, so the world anchor's half-turn flips them back).
* ``mercator_x`` / ``mercator_y`` return the normalized [0, 1] form used
  to align the world anchor with the map center.

``projected_to_mercator`` bridges the two.
"""

import math
from functools import lru_cache
from typing import Tuple

from pyproj import Transformer

from .constants import (
    DEG_TO_RAD,
    EARTH_CIRCUMFERENCE,
    EARTH_RADIUS,
    PROJECTION_WORLD_SIZE,
    RAD_TO_DEG,
    WORLD_SIZE,
)
from .models import GeoCoordinate


def clamp(value: float, min_value: float, max_value: float) -> float:
    """Clamp ``value`` into [min_value, max_value]."""
    return min(max_value, max(min_value, value))


# ── Scale ────────────────────────────────────────────────────────────────

def meters_to_world_units(lat: float) -> float:
    """World units per real-world meter at latitude ``lat`` (degrees).

    Grows with 1/cos(lat); at the poles the result is huge or infinite.
    """
    return abs(WORLD_SIZE / math.cos(DEG_TO_RAD * lat) / EARTH_CIRCUMFERENCE)


# ── Object placement form ────────────────────────────────────────────────

def project(lng: float, lat: float, alt: float = 0.0) -> Tuple[float, float, float]:
    """Project lng/lat (degrees) and altitude (meters) into world space."""
    x = -EARTH_RADIUS * DEG_TO_RAD * lng * PROJECTION_WORLD_SIZE
    y = (-EARTH_RADIUS
         * math.log(math.tan(math.pi * 0.25 + 0.5 * DEG_TO_RAD * lat))
         * PROJECTION_WORLD_SIZE)
    z = alt * meters_to_world_units(lat) if alt else 0.0
    return (x, y, z)


def unproject(x: float, y: float, z: float = 0.0) -> GeoCoordinate:
    """Inverse of :func:`project`."""
    unit = EARTH_RADIUS * PROJECTION_WORLD_SIZE
    lng = -x / unit * RAD_TO_DEG
    # exp overflows far beyond the poles; latitude saturates at ±90 there anyway
    lat = (2 * math.atan(math.exp(clamp(-y / unit, -700.0, 700.0))) - math.pi / 2) * RAD_TO_DEG
    lat = clamp(lat, -90.0, 90.0)
    alt = z / meters_to_world_units(lat) if z else 0.0
    return GeoCoordinate(lng, lat, alt)


# ── Normalized mercator form ─────────────────────────────────────────────

def mercator_x(lng: float) -> float:
    return (180 + lng) / 360


def mercator_y(lat: float) -> float:
    return (180 - RAD_TO_DEG * math.log(math.tan(math.pi / 4 + lat * math.pi / 360))) / 360


def lng_from_mercator_x(x: float) -> float:
    return x * 360 - 180


def lat_from_mercator_y(y: float) -> float:
    y2 = 180 - y * 360
    return 360 / math.pi * math.atan(math.exp(y2 * DEG_TO_RAD)) - 90


def projected_to_mercator(x: float, y: float) -> Tuple[float, float]:
    """Normalized mercator pair for a projected (x, y) position."""
    return (0.5 - x / WORLD_SIZE, 0.5 + y / WORLD_SIZE)


# ── Projected CRS input ──────────────────────────────────────────────────

@lru_cache(maxsize=16)
def _to_wgs84(crs) -> Transformer:
    return Transformer.from_crs(crs, "EPSG:4326", always_xy=True)


def coordinate_from_crs(x: float, y: float, crs, alt: float = 0.0) -> GeoCoordinate:
    """Convert (x, y) in ``crs`` into a WGS84 GeoCoordinate."""
    lng, lat = _to_wgs84(crs).transform(x, y)
    return GeoCoordinate(lng, lat, alt)
