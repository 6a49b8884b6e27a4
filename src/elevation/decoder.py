"""Terrain-RGB decoding into a normalised height grid."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from PIL import Image

from shared.constants import TERRAIN_RGB_BASE_M, TERRAIN_RGB_STEP_M
from shared.errors import DecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeightGrid:
    """
    Высоты (м) по строкам изображения после нормализации.

    heights[y, x] = h - min_z + wall_padding; NaN — нет отсчёта.
    min_z / max_z — границы до нормализации (с учётом преувеличения).
    """

    heights: np.ndarray
    min_z: float
    max_z: float
    wall_padding: float = 0.0

    @property
    def rows(self) -> int:
        return int(self.heights.shape[0])

    @property
    def cols(self) -> int:
        return int(self.heights.shape[1])

    @property
    def relief(self) -> float:
        return self.max_z - self.min_z

    def height_at(self, x: int, y: int) -> float | None:
        """Отсчёт в пикселе (x, y) или None вне сетки / без данных."""
        if not (0 <= y < self.rows and 0 <= x < self.cols):
            return None
        value = float(self.heights[y, x])
        if math.isnan(value):
            return None
        return value

    def height_at_meters(
        self,
        x_m: float,
        z_m: float,
        meters_per_pixel_x: float,
        meters_per_pixel_y: float,
    ) -> float | None:
        """Отсчёт под локальной точкой (x, z) в метрах от северо-западного угла."""
        if meters_per_pixel_x <= 0 or meters_per_pixel_y <= 0:
            return None
        return self.height_at(
            math.floor(x_m / meters_per_pixel_x),
            math.floor(z_m / meters_per_pixel_y),
        )


def decode_terrain_rgb_to_elevation_m(img: Image.Image) -> np.ndarray:
    """
    Декодирует Terrain-RGB картинку в двумерный массив высот (метры).

    elevation = -10000 + (R*256*256 + G*256 + B) * 0.1
    """
    try:
        arr = np.asarray(img.convert('RGB'), dtype=np.float64)
    except (OSError, ValueError) as e:
        msg = f'Cannot read terrain pixel data: {e}'
        raise DecodeError(msg) from e
    if arr.ndim != 3 or arr.shape[2] < 3 or arr.shape[0] == 0 or arr.shape[1] == 0:
        msg = f'Unexpected terrain pixel buffer shape {arr.shape}'
        raise DecodeError(msg)

    r = arr[:, :, 0]
    g = arr[:, :, 1]
    b = arr[:, :, 2]
    return TERRAIN_RGB_BASE_M + (r * 65536.0 + g * 256.0 + b) * TERRAIN_RGB_STEP_M


def decode_terrain_rgb(
    img: Image.Image,
    exaggeration: float = 1.0,
    wall_padding: float = 0.0,
) -> HeightGrid:
    """Высоты с преувеличением, сдвинутые так, что минимум равен wall_padding."""
    raw = decode_terrain_rgb_to_elevation_m(img) * float(exaggeration)

    finite = np.isfinite(raw)
    if not finite.any():
        msg = 'Terrain image has no valid height samples'
        raise DecodeError(msg)
    skipped = int(raw.size - np.count_nonzero(finite))
    if skipped:
        logger.warning('Skipped %d invalid height samples', skipped)

    min_z = float(np.min(raw[finite]))
    max_z = float(np.max(raw[finite]))
    heights = np.where(finite, raw - min_z + float(wall_padding), np.nan)

    logger.info(
        'Decoded heightmap %dx%d: min=%.1f m max=%.1f m (x%.2f)',
        heights.shape[1],
        heights.shape[0],
        min_z,
        max_z,
        exaggeration,
    )
    return HeightGrid(
        heights=heights,
        min_z=min_z,
        max_z=max_z,
        wall_padding=float(wall_padding),
    )
