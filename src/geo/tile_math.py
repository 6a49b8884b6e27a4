"""
Slippy-map tile math for Web Mercator.

Forward/inverse projection between WGS84 and XYZ tile indices, covering tile
ranges for a bounding box, and zoom selection for a reference viewport.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING

from pyproj import Geod

from shared.constants import (
    MAX_ZOOM,
    MERCATOR_MAX_LAT_DEG,
    REFERENCE_VIEWPORT_HEIGHT_PX,
    REFERENCE_VIEWPORT_WIDTH_PX,
    TILE_SIZE,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
)

if TYPE_CHECKING:
    from domain.models import GeoBoundingBox


@dataclass(frozen=True)
class TilePosition:
    """Тайл (x, y) и пиксельное смещение точки внутри него."""

    x: int
    y: int
    px: int
    py: int


@dataclass(frozen=True)
class EdgeInsets:
    """Обрезка холста по краям (пиксели)."""

    top: int = 0
    left: int = 0
    bottom: int = 0
    right: int = 0

    def scaled(self, factor: int) -> EdgeInsets:
        return EdgeInsets(
            top=self.top * factor,
            left=self.left * factor,
            bottom=self.bottom * factor,
            right=self.right * factor,
        )


@dataclass(frozen=True)
class TileIndexSet:
    """Непрерывные диапазоны тайлов по x и y и обрезка до точной области."""

    zoom: int
    xs: tuple[int, ...]
    ys: tuple[int, ...]
    insets: EdgeInsets

    @property
    def count(self) -> int:
        return len(self.xs) * len(self.ys)

    def jobs(self) -> list[tuple[int, int, int, int]]:
        """(col, row, x, y) по столбцам: сначала все y для первого x и т.д."""
        return [
            (col, row, x, y)
            for col, x in enumerate(self.xs)
            for row, y in enumerate(self.ys)
        ]


def _check_finite(*values: float) -> None:
    for v in values:
        if not math.isfinite(v):
            msg = f'Coordinate must be finite, got {v}'
            raise ValueError(msg)


def _world_fraction(lat_deg: float, lon_deg: float) -> tuple[float, float]:
    """(lat, lon) -> доли мира [0, 1] по x и y (y растёт к югу)."""
    lat = min(max(lat_deg, -MERCATOR_MAX_LAT_DEG), MERCATOR_MAX_LAT_DEG)
    lat_rad = math.radians(lat)
    fx = (lon_deg + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG
    fy = (1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0
    return fx, fy


def tile_for_coordinate(
    lat: float,
    lon: float,
    zoom: int,
    tile_size: int = TILE_SIZE,
) -> TilePosition:
    """Тайл, содержащий точку, и пиксельное смещение точки внутри тайла."""
    _check_finite(lat, lon)
    if zoom < 0:
        msg = f'Zoom must be >= 0, got {zoom}'
        raise ValueError(msg)
    n = 2**zoom
    fx, fy = _world_fraction(lat, lon)
    wx = fx * n
    wy = fy * n
    tile_x = min(max(math.floor(wx), 0), n - 1)
    tile_y = min(max(math.floor(wy), 0), n - 1)
    px = int((wx - tile_x) * tile_size)
    py = int((wy - tile_y) * tile_size)
    return TilePosition(tile_x, tile_y, px, py)


def _tile_lat(y: int, zoom: int) -> float:
    n = math.pi - 2.0 * math.pi * y / (2**zoom)
    return math.degrees(math.atan(math.sinh(n)))


def _tile_lon(x: int, zoom: int) -> float:
    return x / (2**zoom) * WORLD_LNG_SPAN_DEG - WORLD_LNG_HALF_SPAN_DEG


def bounding_box_for_tile(
    x: int,
    y: int,
    zoom: int,
) -> tuple[tuple[float, float], tuple[float, float]]:
    """Границы тайла: ((lat_south, lat_north), (lon_west, lon_east))."""
    lat_bounds = (_tile_lat(y + 1, zoom), _tile_lat(y, zoom))
    lon_bounds = (_tile_lon(x, zoom), _tile_lon(x + 1, zoom))
    return lat_bounds, lon_bounds


def tile_center(x: int, y: int, zoom: int) -> tuple[float, float]:
    """Центр тайла (lat, lon) — середина его географических границ."""
    (lat_s, lat_n), (lon_w, lon_e) = bounding_box_for_tile(x, y, zoom)
    return lat_n - (lat_n - lat_s) / 2.0, lon_e - (lon_e - lon_w) / 2.0


def covering_tiles(
    bbox: GeoBoundingBox,
    zoom: int,
    tile_size: int = TILE_SIZE,
) -> TileIndexSet:
    """
    Диапазон тайлов, покрывающих область, и обрезка до её точных границ.

    Перебираются четыре угла области; top/left берутся из смещения
    северо-западного края, bottom/right — из остатка тайла за юго-восточным
    краем. Если юго-восточный край лежит ровно на границе тайла, этот тайл
    не добавляется (иначе обрезка была бы равна целому тайлу).
    """
    corners = [
        tile_for_coordinate(lat, lon, zoom, tile_size)
        for lat in (bbox.min_lat, bbox.max_lat)
        for lon in (bbox.min_lon, bbox.max_lon)
    ]
    xs = [tile.x for tile in corners]
    ys = [tile.y for tile in corners]
    north_west = tile_for_coordinate(bbox.max_lat, bbox.min_lon, zoom, tile_size)
    south_east = tile_for_coordinate(bbox.min_lat, bbox.max_lon, zoom, tile_size)

    x_min, x_max = min(xs), max(xs)
    y_min, y_max = min(ys), max(ys)

    top = north_west.py
    left = north_west.px
    right = tile_size - south_east.px
    if south_east.px == 0 and x_max > x_min:
        x_max -= 1
        right = 0
    bottom = tile_size - south_east.py
    if south_east.py == 0 and y_max > y_min:
        y_max -= 1
        bottom = 0

    return TileIndexSet(
        zoom=zoom,
        xs=tuple(range(x_min, x_max + 1)),
        ys=tuple(range(y_min, y_max + 1)),
        insets=EdgeInsets(top=top, left=left, bottom=bottom, right=right),
    )


def _lat_rad(lat_deg: float) -> float:
    lat = min(max(lat_deg, -MERCATOR_MAX_LAT_DEG), MERCATOR_MAX_LAT_DEG)
    sin = math.sin(math.radians(lat))
    rad_x2 = math.log((1 + sin) / (1 - sin)) / 2.0
    return max(min(rad_x2, math.pi), -math.pi) / 2.0


def _zoom_for_fraction(map_px: int, world_px: int, fraction: float) -> int:
    if fraction <= 0:
        return MAX_ZOOM
    return math.floor(math.log(map_px / world_px / fraction) / math.log(2))


def zoom_level_for_bounds(bbox: GeoBoundingBox) -> int:
    """Максимальный зум, при котором область помещается в опорный вьюпорт."""
    lat_fraction = (_lat_rad(bbox.max_lat) - _lat_rad(bbox.min_lat)) / math.pi
    lng_diff = bbox.max_lon - bbox.min_lon
    lng_fraction = (lng_diff + 360.0 if lng_diff < 0 else lng_diff) / 360.0

    lat_zoom = _zoom_for_fraction(REFERENCE_VIEWPORT_HEIGHT_PX, TILE_SIZE, lat_fraction)
    lng_zoom = _zoom_for_fraction(REFERENCE_VIEWPORT_WIDTH_PX, TILE_SIZE, lng_fraction)
    return max(0, min(lat_zoom, lng_zoom, MAX_ZOOM))


@lru_cache(maxsize=1)
def _geod() -> Geod:
    return Geod(ellps='WGS84')


def meters_per_degree(lat_deg: float) -> tuple[float, float]:
    """Длина одного градуса широты и долготы (м) на эллипсоиде WGS84."""
    _check_finite(lat_deg)
    geod = _geod()
    lat_lo = max(lat_deg - 0.5, -90.0)
    lat_hi = min(lat_deg + 0.5, 90.0)
    _, _, d_lat = geod.inv(0.0, lat_lo, 0.0, lat_hi)
    _, _, d_lon = geod.inv(-0.5, lat_deg, 0.5, lat_deg)
    return d_lat / (lat_hi - lat_lo), d_lon


def terrain_size_m(bbox: GeoBoundingBox) -> tuple[float, float]:
    """Размер области (восток-запад, север-юг) в метрах у северо-восточного угла."""
    m_per_lat, m_per_lon = meters_per_degree(bbox.max_lat)
    width = (bbox.max_lon - bbox.min_lon) * m_per_lon
    height = (bbox.max_lat - bbox.min_lat) * m_per_lat
    return abs(width), abs(height)
