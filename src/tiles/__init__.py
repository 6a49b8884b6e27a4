"""Tile fetching and stitching.

This module provides:
- TileFetcher: single-tile requests for tilesets and styles
- run_tiles: bounded concurrent fetch orchestrator
- MapboxImageApi: stitched images for a bounding box
"""

from tiles.executor import run_tiles
from tiles.fetcher import TileFetcher, decode_image
from tiles.image_api import MapboxImageApi

__all__ = [
    'MapboxImageApi',
    'TileFetcher',
    'decode_image',
    'run_tiles',
]
