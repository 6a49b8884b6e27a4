"""Geo module - Web Mercator tile math."""

from .tile_math import (
    EdgeInsets,
    TileIndexSet,
    TilePosition,
    bounding_box_for_tile,
    covering_tiles,
    meters_per_degree,
    terrain_size_m,
    tile_center,
    tile_for_coordinate,
    zoom_level_for_bounds,
)

__all__ = [
    'EdgeInsets',
    'TileIndexSet',
    'TilePosition',
    'bounding_box_for_tile',
    'covering_tiles',
    'meters_per_degree',
    'terrain_size_m',
    'tile_center',
    'tile_for_coordinate',
    'zoom_level_for_bounds',
]
