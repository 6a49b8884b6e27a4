from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from pathlib import Path

# Порядок секций совпадает с гранями коробки: 4 стены, верх (слот 4), дно.
SECTION_SOUTH = 'south'
SECTION_EAST = 'east'
SECTION_NORTH = 'north'
SECTION_WEST = 'west'
SECTION_TOP = 'top'
SECTION_BOTTOM = 'bottom'

WALL_SECTIONS = (SECTION_SOUTH, SECTION_EAST, SECTION_NORTH, SECTION_WEST)
SECTION_ORDER = (*WALL_SECTIONS, SECTION_TOP, SECTION_BOTTOM)


@dataclass(frozen=True)
class SectionGeometry:
    """Геометрия одной секции; индексы треугольников уже сдвинуты на vertex_offset."""

    name: str
    vertices: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    triangles: np.ndarray

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])


@dataclass(frozen=True)
class MeshSection:
    name: str
    triangles: np.ndarray

    @property
    def triangle_count(self) -> int:
        return int(self.triangles.shape[0])


@dataclass(frozen=True)
class TerrainMesh:
    """
    Треугольная сетка рельефа.

    Вершины, нормали и UV — параллельные массивы (N, 3), (N, 3), (N, 2).
    Секции идут в порядке SECTION_ORDER (без стен — только top); внешний
    рендерер назначает материалы по индексу секции.
    """

    vertices: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    normals: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    uvs: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    sections: tuple[MeshSection, ...] = ()

    @classmethod
    def from_sections(cls, parts: list[SectionGeometry]) -> TerrainMesh:
        if not parts:
            return cls()
        return cls(
            vertices=np.concatenate([p.vertices for p in parts]),
            normals=np.concatenate([p.normals for p in parts]),
            uvs=np.concatenate([p.uvs for p in parts]),
            sections=tuple(MeshSection(p.name, p.triangles) for p in parts),
        )

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def triangle_count(self) -> int:
        return sum(s.triangle_count for s in self.sections)

    @property
    def section_names(self) -> list[str]:
        return [s.name for s in self.sections]

    @property
    def is_empty(self) -> bool:
        return self.vertex_count == 0

    def section(self, name: str) -> MeshSection:
        for s in self.sections:
            if s.name == name:
                return s
        msg = f'Mesh has no section {name!r}'
        raise KeyError(msg)

    def section_index(self, name: str) -> int:
        return self.section_names.index(name)

    def height_range(self) -> tuple[float, float]:
        if self.is_empty:
            return 0.0, 0.0
        ys = self.vertices[:, 1]
        return float(ys.min()), float(ys.max())

    def save(self, path: Path) -> None:
        """Сохраняет сетку в .npz (массивы + треугольники по секциям)."""
        arrays: dict[str, np.ndarray] = {
            'vertices': self.vertices,
            'normals': self.normals,
            'uvs': self.uvs,
            'section_names': np.array(self.section_names),
        }
        for s in self.sections:
            arrays[f'triangles_{s.name}'] = s.triangles
        np.savez_compressed(path, **arrays)
