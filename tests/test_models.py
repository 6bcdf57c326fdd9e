"""Tests for GeoCoordinate validation/conversion and BoundingBox."""

import math

import numpy as np
import pytest
from pyproj import Transformer

from geoscene.models import BoundingBox, GeoCoordinate, ValidationError


class TestGeoCoordinate:
    def test_defaults_altitude_to_zero(self):
        coord = GeoCoordinate(10, 20)
        assert coord.to_tuple() == (10.0, 20.0, 0.0)

    def test_components_are_floats(self):
        coord = GeoCoordinate("1.5", 2, np.float32(3))
        assert isinstance(coord.lng, float)
        assert coord.to_tuple() == (1.5, 2.0, 3.0)

    def test_is_immutable(self):
        coord = GeoCoordinate(1, 2)
        with pytest.raises(AttributeError):
            coord.lat = 5

    @pytest.mark.parametrize("lat", [90.0001, -90.0001, 180.0, -1000.0])
    def test_rejects_out_of_range_latitude(self, lat):
        with pytest.raises(ValidationError):
            GeoCoordinate(0, lat)

    def test_accepts_latitude_limits(self):
        assert GeoCoordinate(0, 90).lat == 90.0
        assert GeoCoordinate(0, -90).lat == -90.0

    @pytest.mark.parametrize("lng, lat, alt", [
        (math.nan, 0, 0),
        (0, math.nan, 0),
        (0, 0, math.nan),
        (math.inf, 0, 0),
        (0, 0, -math.inf),
        ("east", 0, 0),
        (None, 0, 0),
        (True, 0, 0),
    ])
    def test_rejects_non_finite_or_non_numeric(self, lng, lat, alt):
        with pytest.raises(ValidationError):
            GeoCoordinate(lng, lat, alt)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            GeoCoordinate(0, 91)

    def test_to_dict(self):
        assert GeoCoordinate(1, 2, 3).to_dict() == {"lng": 1.0, "lat": 2.0, "alt": 3.0}


class TestConvert:
    def test_all_shapes_agree(self):
        """lng-key, lon-key and sequence inputs produce equal coordinates."""
        from_lng = GeoCoordinate.convert({"lng": 148.9819, "lat": -35.3981, "alt": 12})
        from_lon = GeoCoordinate.convert({"lon": 148.9819, "lat": -35.3981, "alt": 12})
        from_seq = GeoCoordinate.convert([148.9819, -35.3981, 12])
        assert from_lng == from_lon == from_seq

    def test_returns_existing_instance_unchanged(self):
        coord = GeoCoordinate(1, 2)
        assert GeoCoordinate.convert(coord) is coord

    def test_two_element_sequence_defaults_altitude(self):
        assert GeoCoordinate.convert((5, 6)).alt == 0.0

    def test_numpy_vector(self):
        assert GeoCoordinate.convert(np.array([5.0, 6.0, 7.0])) == GeoCoordinate(5, 6, 7)

    def test_lng_key_wins_over_lon(self):
        assert GeoCoordinate.convert({"lng": 1, "lon": 2, "lat": 0}).lng == 1.0

    @pytest.mark.parametrize("value", [
        {"lat": 10},
        {"lng": 10},
        {"x": 1, "y": 2},
        [1],
        [1, 2, 3, 4],
        "1,2",
        42,
        None,
    ])
    def test_rejects_unsupported_shapes(self, value):
        with pytest.raises(ValidationError, match="lon"):
            GeoCoordinate.convert(value)

    def test_invalid_values_inside_valid_shape(self):
        with pytest.raises(ValidationError):
            GeoCoordinate.convert({"lng": 0, "lat": 95})

    def test_from_crs_round_trips_utm(self):
        to_utm = Transformer.from_crs("EPSG:4326", "EPSG:32755", always_xy=True)
        x, y = to_utm.transform(148.9819, -35.3981)
        coord = GeoCoordinate.from_crs(x, y, "EPSG:32755", alt=5)
        assert coord.lng == pytest.approx(148.9819, abs=1e-7)
        assert coord.lat == pytest.approx(-35.3981, abs=1e-7)
        assert coord.alt == 5.0


class TestBoundingBox:
    def test_contains_inside_and_edges(self):
        bbox = BoundingBox(north=10, south=-10, east=20, west=-20)
        assert bbox.contains(0, 0)
        assert bbox.contains(20, 10)
        assert not bbox.contains(25, 0)
        assert not bbox.contains(0, -11)

    def test_antimeridian(self):
        bbox = BoundingBox(north=10, south=-10, east=-170, west=170)
        assert bbox.contains(175, 0)
        assert bbox.contains(-175, 0)
        assert not bbox.contains(0, 0)

    def test_from_points(self):
        bbox = BoundingBox.from_points([(1, 5), (-3, 2), (4, -1)])
        assert (bbox.north, bbox.south, bbox.east, bbox.west) == (5, -1, 4, -3)

    def test_from_points_past_antimeridian(self):
        """Corners read off a view running past 180° wrap into a crossing box."""
        bbox = BoundingBox.from_points([(179.99, 1), (180.01, 1), (180.01, -1), (179.99, -1)])
        assert bbox.west == pytest.approx(179.99)
        assert bbox.east == pytest.approx(-179.99)
        assert bbox.contains(179.995, 0)
        assert bbox.contains(-179.995, 0)
        assert not bbox.contains(0, 0)

    def test_from_points_wider_than_world(self):
        bbox = BoundingBox.from_points([(-200, 1), (200, -1)])
        assert (bbox.west, bbox.east) == (-180.0, 180.0)

    def test_contains_wraps_point_longitude(self):
        bbox = BoundingBox(north=10, south=-10, east=-170, west=170)
        assert bbox.contains(185, 0)
        assert not bbox.contains(360, 0)
