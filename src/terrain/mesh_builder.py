"""
Heightmap -> triangle mesh: top surface, four skirt walls and a bottom cap.

Coordinates are local metres: x grows east, z grows south (image rows),
y is the normalised height. Each section builds its own vertex block and
its triangle indices are rebased by the running ``vertex_offset``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from shared.constants import DOWN_NORMAL, UP_NORMAL
from shared.progress import CancelToken, ProgressCallback, check_cancelled, notify
from terrain.mesh import (
    SECTION_BOTTOM,
    SECTION_EAST,
    SECTION_NORTH,
    SECTION_SOUTH,
    SECTION_TOP,
    SECTION_WEST,
    SectionGeometry,
    TerrainMesh,
)

if TYPE_CHECKING:
    from elevation.decoder import HeightGrid

logger = logging.getLogger(__name__)

# Внешние нормали стен (z растёт к югу)
SOUTH_NORMAL = (0.0, 0.0, 1.0)
NORTH_NORMAL = (0.0, 0.0, -1.0)
EAST_NORMAL = (1.0, 0.0, 0.0)
WEST_NORMAL = (-1.0, 0.0, 0.0)


def _normalize_rows(v: np.ndarray) -> np.ndarray:
    length = np.linalg.norm(v, axis=1)
    out = np.tile(np.asarray(UP_NORMAL), (v.shape[0], 1))
    ok = length > 0
    out[ok] = v[ok] / length[ok, None]
    return out


def build_top(
    heights: np.ndarray,
    meters_per_pixel_x: float,
    meters_per_pixel_y: float,
    *,
    vertex_offset: int = 0,
    smooth_normals: bool = False,
) -> SectionGeometry:
    """
    Верхняя поверхность: вершина на каждый валидный пиксель, два треугольника
    на квад (x-1, y-1)-(x, y-1)-(x-1, y)-(x, y).

    Сглаженные нормали: нормали граней суммируются во всех трёх вершинах и
    нормализуются только после обхода всей сетки.
    """
    rows, cols = heights.shape
    valid = np.isfinite(heights)
    skipped = int(valid.size - np.count_nonzero(valid))
    if skipped:
        logger.warning('Top surface: skipped %d cells without height', skipped)

    # Локальный индекс вершины для каждой ячейки (-1 — нет вершины)
    index = np.full((rows, cols), -1, dtype=np.int64)
    count = int(np.count_nonzero(valid))
    index[valid] = np.arange(count)

    ys, xs = np.nonzero(valid)
    vertices = np.column_stack(
        (
            xs * float(meters_per_pixel_x),
            heights[ys, xs],
            ys * float(meters_per_pixel_y),
        )
    ).astype(np.float64)
    uvs = np.column_stack((xs / cols, ys / rows)).astype(np.float64)

    if rows > 1 and cols > 1:
        prev_left = index[:-1, :-1]  # (x-1, y-1)
        prev_cur = index[:-1, 1:]  # (x, y-1)
        cur_left = index[1:, :-1]  # (x-1, y)
        cur = index[1:, 1:]  # (x, y)
        tri1 = np.stack((prev_left, cur, prev_cur), axis=-1)
        tri2 = np.stack((prev_left, cur_left, cur), axis=-1)
        triangles = np.stack((tri1, tri2), axis=2).reshape(-1, 3)
        triangles = triangles[(triangles >= 0).all(axis=1)]
    else:
        triangles = np.zeros((0, 3), dtype=np.int64)

    normals = np.tile(np.asarray(UP_NORMAL), (count, 1))
    if smooth_normals and len(triangles):
        v0 = vertices[triangles[:, 0]]
        v1 = vertices[triangles[:, 1]]
        v2 = vertices[triangles[:, 2]]
        face = np.cross(v2 - v1, v0 - v1)
        for k in range(3):
            np.add.at(normals, triangles[:, k], face)
    normals = _normalize_rows(normals)

    return SectionGeometry(
        name=SECTION_TOP,
        vertices=vertices,
        normals=normals,
        uvs=uvs,
        triangles=(triangles + vertex_offset).astype(np.int64),
    )


def build_wall(
    name: str,
    heights: np.ndarray,
    xs: Sequence[int],
    ys: Sequence[int],
    normal: tuple[float, float, float],
    max_height: float,
    meters_per_pixel_x: float,
    meters_per_pixel_y: float,
    *,
    vertex_offset: int = 0,
) -> SectionGeometry:
    """
    Стена вдоль одного края: пары вершин (низ y=0, верх y=h) и квады между
    соседними парами. Координата v текстуры пропорциональна высоте, чтобы
    текстура тянулась одинаково на всех стенах.
    """
    length = max(len(xs), len(ys))
    along_x = len(xs) >= len(ys)
    mpp = meters_per_pixel_x if along_x else meters_per_pixel_y
    length_m = mpp * length
    height_ratio = max_height / length_m if length_m > 0 else 0.0

    vertices: list[tuple[float, float, float]] = []
    uvs: list[tuple[float, float]] = []
    texture_x = 0
    for x in xs:
        for y in ys:
            h = float(heights[y, x])
            if not np.isfinite(h):
                logger.debug('Wall %s: no height at (%d, %d)', name, x, y)
                continue
            px = x * meters_per_pixel_x
            pz = y * meters_per_pixel_y
            vertices.append((px, 0.0, pz))
            vertices.append((px, h, pz))
            u = texture_x / length
            v = (h / max_height) * height_ratio if max_height > 0 else 0.0
            uvs.append((u, v))
            uvs.append((u, 0.0))
            texture_x += 1

    triangles: list[tuple[int, int, int]] = []
    for i in range(3, len(vertices), 2):
        triangles.append((i - 3 + vertex_offset, i + vertex_offset, i - 1 + vertex_offset))
        triangles.append((i - 3 + vertex_offset, i - 2 + vertex_offset, i + vertex_offset))

    n = len(vertices)
    return SectionGeometry(
        name=name,
        vertices=np.asarray(vertices, dtype=np.float64).reshape(n, 3),
        normals=np.tile(np.asarray(normal, dtype=np.float64), (n, 1)),
        uvs=np.asarray(uvs, dtype=np.float64).reshape(n, 2),
        triangles=np.asarray(triangles, dtype=np.int64).reshape(-1, 3),
    )


def build_bottom(
    rows: int,
    cols: int,
    meters_per_pixel_x: float,
    meters_per_pixel_y: float,
    *,
    vertex_offset: int = 0,
) -> SectionGeometry:
    """Дно: четыре угла на y=0 и два треугольника."""
    max_x = (cols - 1) * meters_per_pixel_x
    max_z = (rows - 1) * meters_per_pixel_y
    vertices = np.array(
        [
            (0.0, 0.0, 0.0),
            (max_x, 0.0, 0.0),
            (0.0, 0.0, max_z),
            (max_x, 0.0, max_z),
        ],
        dtype=np.float64,
    )
    uvs = np.array([(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0)], dtype=np.float64)
    end = 3 + vertex_offset
    triangles = np.array(
        [(end - 3, end, end - 1), (end - 3, end - 2, end)], dtype=np.int64
    )
    return SectionGeometry(
        name=SECTION_BOTTOM,
        vertices=vertices,
        normals=np.tile(np.asarray(DOWN_NORMAL), (4, 1)),
        uvs=uvs,
        triangles=triangles,
    )


async def build_terrain_mesh(
    grid: HeightGrid,
    meters_per_pixel_x: float,
    meters_per_pixel_y: float,
    *,
    wall_height: float | None = None,
    smooth_normals: bool = False,
    cancel: CancelToken | None = None,
    on_progress: ProgressCallback | None = None,
) -> TerrainMesh:
    """
    Полная сетка рельефа.

    Со стенами секции идут в порядке south, east, north, west, top, bottom
    (верх — слот 4); без стен — только top. Между секциями управление
    отдаётся циклу событий, перед каждой секцией проверяется отмена.
    """
    heights = grid.heights
    if heights.ndim != 2 or not np.isfinite(heights).any():
        msg = 'Height grid has no usable samples'
        raise ValueError(msg)

    rows, cols = heights.shape
    parts: list[SectionGeometry] = []
    offset = 0

    def _append(part: SectionGeometry) -> None:
        nonlocal offset
        parts.append(part)
        offset += part.vertex_count

    notify(on_progress, 0.0, 1)

    if wall_height is not None:
        max_height = grid.max_z - grid.min_z + wall_height
        walls = (
            (SECTION_SOUTH, range(cols), [rows - 1], SOUTH_NORMAL),
            (SECTION_EAST, [cols - 1], range(rows), EAST_NORMAL),
            (SECTION_NORTH, range(cols), [0], NORTH_NORMAL),
            (SECTION_WEST, [0], range(rows), WEST_NORMAL),
        )
        for step, (name, xs, ys, normal) in enumerate(walls, start=1):
            notify(on_progress, step / 10.0, 1)
            check_cancelled(cancel)
            _append(
                build_wall(
                    name,
                    heights,
                    list(xs),
                    list(ys),
                    normal,
                    max_height,
                    meters_per_pixel_x,
                    meters_per_pixel_y,
                    vertex_offset=offset,
                )
            )
            await asyncio.sleep(0)

    notify(on_progress, 0.5, 1)
    check_cancelled(cancel)
    _append(
        build_top(
            heights,
            meters_per_pixel_x,
            meters_per_pixel_y,
            vertex_offset=offset,
            smooth_normals=smooth_normals,
        )
    )
    await asyncio.sleep(0)

    if wall_height is not None:
        notify(on_progress, 0.6, 1)
        check_cancelled(cancel)
        _append(
            build_bottom(
                rows,
                cols,
                meters_per_pixel_x,
                meters_per_pixel_y,
                vertex_offset=offset,
            )
        )
        await asyncio.sleep(0)

    mesh = TerrainMesh.from_sections(parts)
    logger.info(
        'Terrain mesh: %d vertices, %d triangles, sections=%s',
        mesh.vertex_count,
        mesh.triangle_count,
        ','.join(mesh.section_names),
    )
    notify(on_progress, 1.0, 1)
    return mesh
