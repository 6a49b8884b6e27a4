from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from elevation.decoder import HeightGrid, decode_terrain_rgb
from elevation.retry import fetch_height_with_retry
from geo.tile_math import meters_per_degree, terrain_size_m, zoom_level_for_bounds
from shared.constants import MAX_TERRAIN_RGB_ZOOM, TileImageFormat
from shared.diagnostics import log_memory_usage
from shared.progress import check_cancelled, monotonic
from terrain.mesh import TerrainMesh
from terrain.mesh_builder import build_terrain_mesh

if TYPE_CHECKING:
    from PIL import Image

    from domain.models import GeoBoundingBox, TerrainSettings
    from shared.progress import CancelToken, ProgressCallback
    from tiles.image_api import MapboxImageApi

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerrainState:
    """Снимок результата загрузки рельефа; заменяется целиком."""

    mesh: TerrainMesh
    heights: HeightGrid
    zoom: int
    meters_per_pixel_x: float
    meters_per_pixel_y: float

    @property
    def altitude_bounds(self) -> tuple[float, float]:
        return self.heights.min_z, self.heights.max_z


class TerrainModel:
    """
    Рельеф одной области: высоты, сетка и текстура.

    Координаты сетки локальные (м) от северо-западного угла: x на восток,
    z на юг, y вверх.
    """

    def __init__(self, bbox: GeoBoundingBox, settings: TerrainSettings) -> None:
        self.bbox = bbox
        self.settings = settings
        self.style_zoom = zoom_level_for_bounds(bbox)
        self.terrain_zoom = min(self.style_zoom, MAX_TERRAIN_RGB_ZOOM)
        self.size_m = terrain_size_m(bbox)
        self._m_per_lat, self._m_per_lon = meters_per_degree(bbox.max_lat)
        self._state: TerrainState | None = None
        self.texture: Image.Image | None = None
        logger.info(
            'Terrain model: %.0fx%.0f m, style zoom %d, terrain zoom %d',
            self.size_m[0],
            self.size_m[1],
            self.style_zoom,
            self.terrain_zoom,
        )

    @property
    def state(self) -> TerrainState | None:
        return self._state

    @property
    def mesh(self) -> TerrainMesh:
        return self._state.mesh if self._state is not None else TerrainMesh()

    @property
    def heights(self) -> HeightGrid | None:
        return self._state.heights if self._state is not None else None

    @property
    def altitude_bounds(self) -> tuple[float, float] | None:
        return self._state.altitude_bounds if self._state is not None else None

    async def fetch_terrain(
        self,
        api: MapboxImageApi,
        *,
        height_progress: ProgressCallback | None = None,
        mesh_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> TerrainState:
        """
        Высоты с понижением зума при ошибках, затем построение сетки.

        Прогресс высот общий для всех попыток и не уменьшается при повторе.
        """
        on_height = monotonic(height_progress)

        async def _fetch_at(zoom: int) -> tuple[int, Image.Image]:
            img = await api.image_for_tileset(
                self.settings.terrain_tileset,
                zoom,
                self.bbox,
                TileImageFormat.PNG_RAW,
                progress=on_height,
                cancel=cancel,
            )
            return zoom, img

        zoom, img = await fetch_height_with_retry(
            _fetch_at,
            self.terrain_zoom,
            self.settings.max_attempts,
            cancel=cancel,
        )
        check_cancelled(cancel)

        grid = decode_terrain_rgb(
            img,
            exaggeration=self.settings.exaggeration,
            wall_padding=self.settings.wall_padding_m,
        )
        width_m, height_m = self.size_m
        mpp_x = width_m / grid.cols
        mpp_y = height_m / grid.rows
        mesh = await build_terrain_mesh(
            grid,
            mpp_x,
            mpp_y,
            wall_height=self.settings.wall_height,
            smooth_normals=self.settings.smooth_normals,
            cancel=cancel,
            on_progress=mesh_progress,
        )
        state = TerrainState(
            mesh=mesh,
            heights=grid,
            zoom=zoom,
            meters_per_pixel_x=mpp_x,
            meters_per_pixel_y=mpp_y,
        )
        self._state = state
        log_memory_usage('after terrain mesh')
        return state

    async def fetch_texture(
        self,
        api: MapboxImageApi,
        style: str | None = None,
        *,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> Image.Image:
        img = await api.image_for_style(
            style or self.settings.texture_style,
            self.style_zoom,
            self.bbox,
            progress=progress,
            cancel=cancel,
        )
        self.texture = img
        return img

    def height_for_local_position(self, x: float, z: float) -> float | None:
        """Высота поверхности под локальной точкой (x, z) или None."""
        state = self._state
        if state is None:
            return None
        return state.heights.height_at_meters(
            x, z, state.meters_per_pixel_x, state.meters_per_pixel_y
        )

    def position_for_location(
        self,
        lat: float,
        lon: float,
        altitude: float = 0.0,
    ) -> tuple[float, float, float]:
        """
        Локальная точка для географической координаты.

        Высота не опускается ниже поверхности рельефа.
        """
        x = (lon - self.bbox.min_lon) * self._m_per_lon
        z = (self.bbox.max_lat - lat) * self._m_per_lat
        y = float(altitude)
        ground = self.height_for_local_position(x, z)
        if ground is not None:
            y = max(ground, y)
        return x, y, z
