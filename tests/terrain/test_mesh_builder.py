"""Tests for terrain.mesh_builder module."""

import math

import numpy as np
import pytest

from elevation.decoder import HeightGrid
from shared.constants import TOP_SECTION_INDEX
from shared.errors import CancellationError
from shared.progress import CancelToken
from terrain.mesh import SECTION_ORDER
from terrain.mesh_builder import (
    build_bottom,
    build_terrain_mesh,
    build_top,
    build_wall,
)


def flat_grid(rows, cols, value=5.0, padding=5.0):
    heights = np.full((rows, cols), value)
    return HeightGrid(heights=heights, min_z=100.0, max_z=100.0, wall_padding=padding)


def section_vertex_ids(mesh, name):
    return np.unique(mesh.section(name).triangles)


class TestBuildTop:
    """Tests for build_top."""

    def test_counts_and_flat_normals(self):
        heights = np.arange(12, dtype=float).reshape(3, 4)
        top = build_top(heights, 2.0, 3.0)
        assert top.vertex_count == 12
        assert top.triangles.shape == (2 * 3 * 2, 3)
        assert np.allclose(top.normals, [0.0, 1.0, 0.0])

    def test_vertex_positions_and_uvs(self):
        heights = np.array([[1.0, 2.0], [3.0, 4.0]])
        top = build_top(heights, 10.0, 20.0)
        # Вершины идут по строкам: (0,0), (1,0), (0,1), (1,1)
        assert np.allclose(top.vertices[1], [10.0, 2.0, 0.0])
        assert np.allclose(top.vertices[2], [0.0, 3.0, 20.0])
        assert np.allclose(top.uvs[3], [0.5, 0.5])

    def test_triangle_winding(self):
        heights = np.zeros((2, 2))
        top = build_top(heights, 1.0, 1.0, vertex_offset=7)
        assert top.triangles.tolist() == [[7, 10, 8], [7, 9, 10]]

    def test_missing_samples_skipped(self):
        heights = np.ones((3, 3))
        heights[1, 1] = math.nan
        top = build_top(heights, 1.0, 1.0)
        assert top.vertex_count == 8
        assert top.triangles.shape == (2, 3)
        assert top.triangles.max() < 8

    def test_smooth_normals_follow_slope(self):
        """On the plane y = x the normals point up and to the west."""
        xs = np.arange(5, dtype=float) * 10.0
        heights = np.tile(xs, (4, 1))
        top = build_top(heights, 10.0, 10.0, smooth_normals=True)
        expected = np.array([-1.0, 1.0, 0.0]) / math.sqrt(2.0)
        assert np.allclose(np.linalg.norm(top.normals, axis=1), 1.0)
        assert np.allclose(top.normals, expected, atol=0.01)

    def test_smooth_normals_flat_surface(self):
        top = build_top(np.zeros((3, 3)), 1.0, 1.0, smooth_normals=True)
        assert np.allclose(top.normals, [0.0, 1.0, 0.0])


class TestBuildWall:
    """Tests for build_wall."""

    def test_vertex_pairs(self):
        heights = np.array([[4.0, 6.0, 8.0]])
        wall = build_wall(
            'north', heights, [0, 1, 2], [0], (0.0, 0.0, -1.0), 10.0, 2.0, 2.0
        )
        assert wall.vertex_count == 6
        assert wall.vertices[0].tolist() == [0.0, 0.0, 0.0]
        assert wall.vertices[1].tolist() == [0.0, 4.0, 0.0]
        assert wall.vertices[5].tolist() == [4.0, 8.0, 0.0]
        assert wall.triangles.tolist() == [[0, 3, 2], [0, 1, 3], [2, 5, 4], [2, 3, 5]]

    def test_uvs(self):
        heights = np.array([[3.0, 6.0]])
        wall = build_wall(
            'north', heights, [0, 1], [0], (0.0, 0.0, -1.0), 10.0, 3.0, 3.0
        )
        # Длина стены 2 * 3 м; v низа = h / длина
        assert np.allclose(wall.uvs, [[0.0, 0.5], [0.0, 0.0], [0.5, 1.0], [0.5, 0.0]])

    def test_offset_applied(self):
        heights = np.ones((3, 1))
        wall = build_wall(
            'west', heights, [0], [0, 1, 2], (-1.0, 0.0, 0.0), 2.0, 1.0, 1.0,
            vertex_offset=100,
        )
        assert wall.triangles.min() == 100
        assert wall.triangles.max() == 105

    def test_missing_sample_skipped(self):
        heights = np.array([[1.0, math.nan, 1.0]])
        wall = build_wall(
            'south', heights, [0, 1, 2], [0], (0.0, 0.0, 1.0), 2.0, 1.0, 1.0
        )
        assert wall.vertex_count == 4
        assert wall.triangles.shape == (2, 3)


class TestBuildBottom:
    def test_corners(self):
        bottom = build_bottom(3, 4, 1.0, 2.0, vertex_offset=10)
        assert bottom.vertices.tolist() == [
            [0.0, 0.0, 0.0],
            [3.0, 0.0, 0.0],
            [0.0, 0.0, 4.0],
            [3.0, 0.0, 4.0],
        ]
        assert bottom.triangles.tolist() == [[10, 13, 12], [10, 11, 13]]
        assert np.allclose(bottom.normals, [0.0, -1.0, 0.0])
        assert bottom.uvs.tolist() == [[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]


class TestBuildTerrainMesh:
    """Tests for build_terrain_mesh."""

    @pytest.mark.asyncio
    async def test_top_only_without_walls(self):
        mesh = await build_terrain_mesh(flat_grid(3, 4), 1.0, 1.0)
        assert mesh.section_names == ['top']
        assert mesh.vertex_count == 12

    @pytest.mark.asyncio
    async def test_sections_with_walls(self):
        rows, cols = 3, 4
        mesh = await build_terrain_mesh(flat_grid(rows, cols), 1.0, 1.0, wall_height=5.0)
        assert mesh.section_names == list(SECTION_ORDER)
        assert mesh.section_names[TOP_SECTION_INDEX] == 'top'
        assert mesh.vertex_count == rows * cols + 2 * (2 * cols + 2 * rows) + 4

    @pytest.mark.asyncio
    async def test_indices_global_and_in_range(self):
        mesh = await build_terrain_mesh(flat_grid(4, 5), 1.0, 1.0, wall_height=5.0)
        seen = []
        for section in mesh.sections:
            assert section.triangles.min() >= 0
            assert section.triangles.max() < mesh.vertex_count
            seen.append(set(np.unique(section.triangles).tolist()))
        # Секции не делят вершины между собой
        for i, a in enumerate(seen):
            for b in seen[i + 1:]:
                assert not a & b

    @pytest.mark.asyncio
    async def test_wall_normals_and_heights(self):
        mesh = await build_terrain_mesh(flat_grid(3, 3), 1.0, 1.0, wall_height=5.0)
        expected = {
            'south': [0.0, 0.0, 1.0],
            'east': [1.0, 0.0, 0.0],
            'north': [0.0, 0.0, -1.0],
            'west': [-1.0, 0.0, 0.0],
            'bottom': [0.0, -1.0, 0.0],
        }
        for name, normal in expected.items():
            ids = section_vertex_ids(mesh, name)
            assert np.allclose(mesh.normals[ids], normal)
        low, high = mesh.height_range()
        assert (low, high) == (0.0, 5.0)

    @pytest.mark.asyncio
    async def test_progress_milestones(self):
        calls = []
        await build_terrain_mesh(
            flat_grid(2, 2),
            1.0,
            1.0,
            wall_height=1.0,
            on_progress=lambda fraction, total: calls.append(fraction),
        )
        assert calls == pytest.approx([0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 1.0])

    @pytest.mark.asyncio
    async def test_progress_without_walls(self):
        calls = []
        await build_terrain_mesh(
            flat_grid(2, 2),
            1.0,
            1.0,
            on_progress=lambda fraction, total: calls.append(fraction),
        )
        assert calls == [0.0, 0.5, 1.0]

    @pytest.mark.asyncio
    async def test_cancelled(self):
        token = CancelToken()
        token.cancel()
        with pytest.raises(CancellationError):
            await build_terrain_mesh(flat_grid(3, 3), 1.0, 1.0, cancel=token)

    @pytest.mark.asyncio
    async def test_no_usable_samples(self):
        grid = HeightGrid(heights=np.full((2, 2), math.nan), min_z=0.0, max_z=0.0)
        with pytest.raises(ValueError):
            await build_terrain_mesh(grid, 1.0, 1.0)

    @pytest.mark.asyncio
    async def test_save_npz(self, tmp_path):
        mesh = await build_terrain_mesh(flat_grid(3, 3), 1.0, 1.0, wall_height=2.0)
        path = tmp_path / 'mesh.npz'
        mesh.save(path)
        with np.load(path) as data:
            assert data['vertices'].shape == (mesh.vertex_count, 3)
            assert data['section_names'].tolist() == mesh.section_names
            assert np.array_equal(data['triangles_top'], mesh.section('top').triangles)
