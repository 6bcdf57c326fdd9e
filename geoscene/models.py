"""Data classes, validation and path management."""

import math
import pathlib
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from shapely.geometry import Point, box
from shapely.ops import unary_union

from . import config

_ACCEPTED_SHAPES = (
    "a GeoCoordinate, a mapping {lng: <lng>, lat: <lat>, alt?: <alt>}, "
    "a mapping {lon: <lng>, lat: <lat>, alt?: <alt>}, "
    "or a sequence [<lng>, <lat>, <alt>?]"
)


class ValidationError(ValueError):
    """Raised for malformed input that the library refuses to correct."""


class PathManager:
    """Manage output paths."""

    @staticmethod
    def get_output_path(filename) -> pathlib.Path:
        """Resolve a relative output file under the configured output directory."""
        path = pathlib.Path(filename)
        if path.is_absolute():
            return path
        return config.OUTPUT_DIR / path


def _finite(name: str, value) -> float:
    if isinstance(value, (bool, np.bool_)):
        raise ValidationError(f"Invalid GeoCoordinate {name}: {value!r} is not a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid GeoCoordinate {name}: {value!r} is not a number") from None
    if not math.isfinite(number):
        raise ValidationError(f"Invalid GeoCoordinate {name}: {value!r} is not finite")
    return number


@dataclass(frozen=True)
class GeoCoordinate:
    """A longitude/latitude/altitude position in degrees and meters.

    Immutable. Construction coerces every component to ``float`` and
    rejects non-finite values and latitudes outside [-90, 90].
    """
    lng: float
    lat: float
    alt: float = 0.0

    def __post_init__(self):
        lng = _finite("longitude", self.lng)
        lat = _finite("latitude", self.lat)
        alt = _finite("altitude", 0.0 if self.alt is None else self.alt)
        if not -90.0 <= lat <= 90.0:
            raise ValidationError(
                f"Invalid GeoCoordinate latitude {lat}: must be between -90 and 90")
        object.__setattr__(self, "lng", lng)
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "alt", alt)

    @classmethod
    def convert(cls, value) -> "GeoCoordinate":
        """Build a coordinate from any supported input shape.

        Accepts an existing GeoCoordinate (returned unchanged), a mapping
        with ``lng``/``lat`` or ``lon``/``lat`` keys and an optional
        ``alt``, or a 2-3 element sequence ``[lng, lat, alt?]``.
        """
        if isinstance(value, cls):
            return value

        if isinstance(value, Mapping):
            has_lng = "lng" in value
            if not (has_lng or "lon" in value) or "lat" not in value:
                raise ValidationError(f"GeoCoordinate input must be {_ACCEPTED_SHAPES}")
            lng = value["lng"] if has_lng else value["lon"]
            return cls(lng, value["lat"], value.get("alt", 0.0))

        if isinstance(value, np.ndarray):
            value = value.tolist() if value.ndim == 1 else None

        if isinstance(value, (list, tuple)) and 2 <= len(value) <= 3:
            alt = value[2] if len(value) == 3 else 0.0
            return cls(value[0], value[1], alt)

        raise ValidationError(f"GeoCoordinate input must be {_ACCEPTED_SHAPES}")

    @classmethod
    def from_crs(cls, x: float, y: float, crs, alt: float = 0.0) -> "GeoCoordinate":
        """Convert a position given in a projected CRS (e.g. ``"EPSG:32755"``)."""
        from .projection import coordinate_from_crs
        return coordinate_from_crs(x, y, crs, alt)

    def to_tuple(self) -> Tuple[float, float, float]:
        return (self.lng, self.lat, self.alt)

    def to_dict(self) -> dict:
        return {"lng": self.lng, "lat": self.lat, "alt": self.alt}


def wrap_longitude(lng: float) -> float:
    """Bring ``lng`` into [-180, 180]; longitudes already inside are returned as is."""
    if -180.0 <= lng <= 180.0:
        return lng
    return (lng + 180.0) % 360.0 - 180.0


@dataclass
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    @classmethod
    def from_points(cls, points) -> "BoundingBox":
        """Smallest box around an iterable of (lng, lat) pairs.

        Longitudes must be continuous (unwrapped, as read off a view that
        may run past ±180). Edges past the antimeridian are wrapped, which
        yields a west edge east of the east edge.
        """
        lngs, lats = zip(*[(p[0], p[1]) for p in points])
        west, east = min(lngs), max(lngs)
        if east - west >= 360.0:
            west, east = -180.0, 180.0
        return cls(north=max(lats), south=min(lats),
                   east=wrap_longitude(east), west=wrap_longitude(west))

    def to_polygon(self):
        """Convert bounding box to a shapely geometry.

        A box whose west edge lies east of its east edge crosses the
        antimeridian and becomes the union of its two halves.
        """
        if self.west <= self.east:
            return box(self.west, self.south, self.east, self.north)
        return unary_union([
            box(self.west, self.south, 180.0, self.north),
            box(-180.0, self.south, self.east, self.north),
        ])

    def contains(self, lng: float, lat: float) -> bool:
        """True when (lng, lat) lies inside or on the edge of the box."""
        return self.to_polygon().covers(Point(wrap_longitude(lng), lat))


@dataclass
class ViewportState:
    """Snapshot of the host map's transform.

    Angles are degrees; ``center_offset`` is in the host's units and
    ``scale`` is ``2 ** zoom``. Layers only ever read this.
    """
    center: GeoCoordinate
    zoom: float
    bearing: float
    pitch: float
    fov: float
    width: float
    height: float
    camera_to_center_distance: float
    far_z: float
    scale: float
    world_size: float
    elevation: float = 0.0
    center_offset: Tuple[float, float] = (0.0, 0.0)
    bounds: Optional[BoundingBox] = None
