"""Domain models and profile storage."""

from domain.models import GeoBoundingBox, GeoPoint, TerrainSettings

__all__ = [
    'GeoBoundingBox',
    'GeoPoint',
    'TerrainSettings',
]
