"""Tests for domain.models module."""

import math

import pytest
from pydantic import ValidationError

from domain.models import GeoBoundingBox, GeoPoint, TerrainSettings


class TestGeoPoint:
    """Tests for GeoPoint validators."""

    def test_valid(self):
        p = GeoPoint(lat=37.7, lon=-122.4)
        assert (p.lat, p.lon) == (37.7, -122.4)

    @pytest.mark.parametrize('lat', [90.1, -91.0, math.nan, math.inf])
    def test_bad_latitude(self, lat):
        with pytest.raises(ValidationError):
            GeoPoint(lat=lat, lon=0.0)

    @pytest.mark.parametrize('lon', [180.5, -181.0, math.nan])
    def test_bad_longitude(self, lon):
        with pytest.raises(ValidationError):
            GeoPoint(lat=0.0, lon=lon)

    def test_frozen(self):
        p = GeoPoint(lat=1.0, lon=2.0)
        with pytest.raises(ValidationError):
            p.lat = 3.0


class TestGeoBoundingBox:
    """Tests for GeoBoundingBox."""

    def test_from_bounds(self):
        bbox = GeoBoundingBox.from_bounds(37.70, -122.47, 37.80, -122.40)
        assert bbox.min_lat == 37.70
        assert bbox.max_lat == 37.80
        assert bbox.min_lon == -122.47
        assert bbox.max_lon == -122.40

    def test_swapped_latitudes(self):
        with pytest.raises(ValueError):
            GeoBoundingBox.from_bounds(37.80, -122.47, 37.70, -122.40)

    def test_swapped_longitudes(self):
        with pytest.raises(ValueError):
            GeoBoundingBox.from_bounds(37.70, -122.40, 37.80, -122.47)

    def test_degenerate(self):
        with pytest.raises(ValueError):
            GeoBoundingBox.from_bounds(37.70, -122.40, 37.70, -122.40)


class TestTerrainSettings:
    """Tests for TerrainSettings defaults and validators."""

    def test_defaults(self):
        s = TerrainSettings()
        assert s.tile_size == 256
        assert s.max_concurrency == 10
        assert s.max_attempts == 3
        assert s.exaggeration == 1.0
        assert s.terrain_tileset == 'mapbox.terrain-rgb'
        assert s.texture_style == 'mapbox/satellite-v9'
        assert s.smooth_normals is False
        assert s.wall_height is None

    def test_wall_height_from_padding(self):
        assert TerrainSettings(wall_padding_m=25.0).wall_height == 25.0

    def test_negative_padding_clamped(self):
        s = TerrainSettings(wall_padding_m=-5.0)
        assert s.wall_padding_m == 0.0
        assert s.wall_height is None

    @pytest.mark.parametrize('value', [0.0, -1.0, math.inf])
    def test_bad_exaggeration(self, value):
        with pytest.raises(ValidationError):
            TerrainSettings(exaggeration=value)

    @pytest.mark.parametrize('field', ['tile_size', 'max_concurrency', 'max_attempts'])
    def test_positive_ints(self, field):
        with pytest.raises(ValidationError):
            TerrainSettings(**{field: 0})

    def test_extra_fields_ignored(self):
        s = TerrainSettings.model_validate({'legacy_option': 1, 'tile_size': 512})
        assert s.tile_size == 512
        assert not hasattr(s, 'legacy_option')
