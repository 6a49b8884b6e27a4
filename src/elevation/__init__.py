"""Elevation module - Terrain-RGB decoding and zoom-degrading retries."""

from elevation.decoder import (
    HeightGrid,
    decode_terrain_rgb,
    decode_terrain_rgb_to_elevation_m,
)
from elevation.retry import ZoomDegradation, fetch_height_with_retry

__all__ = [
    'HeightGrid',
    'ZoomDegradation',
    'decode_terrain_rgb',
    'decode_terrain_rgb_to_elevation_m',
    'fetch_height_with_retry',
]
