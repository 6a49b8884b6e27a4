"""Terrain module - mesh types, mesh building and the terrain model."""

from terrain.mesh import MeshSection, SectionGeometry, TerrainMesh
from terrain.mesh_builder import (
    build_bottom,
    build_terrain_mesh,
    build_top,
    build_wall,
)
from terrain.model import TerrainModel, TerrainState

__all__ = [
    'MeshSection',
    'SectionGeometry',
    'TerrainMesh',
    'TerrainModel',
    'TerrainState',
    'build_bottom',
    'build_terrain_mesh',
    'build_top',
    'build_wall',
]
