"""Imaging package - tile stitching."""

from imaging.composer import ImageBuilder

__all__ = [
    'ImageBuilder',
]
