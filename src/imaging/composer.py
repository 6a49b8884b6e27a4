"""Image composition - tile assembly and cropping."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PIL import Image

from shared.errors import DecodeError

if TYPE_CHECKING:
    from geo.tile_math import EdgeInsets

logger = logging.getLogger(__name__)


class ImageBuilder:
    """
    Склеивает сетку тайлов cols x rows в одно изображение и обрезает его.

    Холст логически имеет размер cols*tile x rows*tile; физически создаётся
    только итоговое изображение без полей (insets), и в него вставляются
    пересекающиеся части тайлов. Каждая ячейка (col, row) пишется один раз,
    поэтому области записи не пересекаются.
    """

    def __init__(
        self,
        cols: int,
        rows: int,
        tile_size: int,
        insets: EdgeInsets,
    ) -> None:
        self.cols = int(cols)
        self.rows = int(rows)
        self.tile_size = int(tile_size)
        self.insets = insets
        self.crop_x = insets.left
        self.crop_y = insets.top
        self.crop_w = self.cols * self.tile_size - insets.left - insets.right
        self.crop_h = self.rows * self.tile_size - insets.top - insets.bottom
        self._filled: set[tuple[int, int]] = set()
        self._result: Image.Image | None = None
        if self.crop_w > 0 and self.crop_h > 0:
            self._result = Image.new('RGB', (self.crop_w, self.crop_h))

    @property
    def size(self) -> tuple[int, int]:
        """Размер итогового изображения (ширина, высота)."""
        return self.crop_w, self.crop_h

    @property
    def tiles_added(self) -> int:
        return len(self._filled)

    def add_tile(self, col: int, row: int, image: Image.Image) -> None:
        if not (0 <= col < self.cols and 0 <= row < self.rows):
            msg = f'Tile slot ({col}, {row}) is outside {self.cols}x{self.rows} grid'
            raise ValueError(msg)
        if image.size != (self.tile_size, self.tile_size):
            msg = (
                f'Tile ({col}, {row}) has size {image.size}, '
                f'expected {self.tile_size}x{self.tile_size}'
            )
            raise ValueError(msg)
        if (col, row) in self._filled:
            msg = f'Tile slot ({col}, {row}) was already written'
            raise ValueError(msg)
        self._filled.add((col, row))
        if self._result is None:
            return

        # Координаты тайла на полном холсте
        tile_x0 = col * self.tile_size
        tile_y0 = row * self.tile_size
        tile_x1 = tile_x0 + self.tile_size
        tile_y1 = tile_y0 + self.tile_size

        # Пересечение с областью обрезки
        inter_x0 = max(tile_x0, self.crop_x)
        inter_y0 = max(tile_y0, self.crop_y)
        inter_x1 = min(tile_x1, self.crop_x + self.crop_w)
        inter_y1 = min(tile_y1, self.crop_y + self.crop_h)

        if inter_x0 < inter_x1 and inter_y0 < inter_y1:
            src = (
                inter_x0 - tile_x0,
                inter_y0 - tile_y0,
                inter_x1 - tile_x0,
                inter_y1 - tile_y0,
            )
            tile_crop = image.convert('RGB').crop(src)
            self._result.paste(tile_crop, (inter_x0 - self.crop_x, inter_y0 - self.crop_y))
            tile_crop.close()

    def make_image(self) -> Image.Image:
        """Итоговое изображение ровно по границам запрошенной области."""
        if self._result is None:
            msg = f'Empty crop {self.crop_w}x{self.crop_h}, nothing to render'
            raise DecodeError(msg)
        if not self._filled:
            msg = 'No tiles were added, nothing to render'
            raise DecodeError(msg)
        missing = self.cols * self.rows - len(self._filled)
        if missing:
            logger.warning('Stitched image is missing %d of %d tiles', missing, self.cols * self.rows)
        return self._result.copy()
