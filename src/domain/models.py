import math

from pydantic import BaseModel, field_validator, model_validator

from shared.constants import (
    ASYNC_MAX_CONCURRENCY,
    DEFAULT_TEXTURE_STYLE,
    HTTP_CACHE_ENABLED,
    MAPBOX_API_HOST,
    MAPBOX_TERRAIN_RGB_TILESET,
    MAX_REQUEST_ATTEMPTS,
    TILE_SIZE,
)


class GeoPoint(BaseModel):
    """Точка WGS84 (градусы)."""

    model_config = {'frozen': True}

    lat: float
    lon: float

    @field_validator('lat')
    @classmethod
    def validate_lat(cls, v: float) -> float:
        v = float(v)
        if not math.isfinite(v) or not (-90.0 <= v <= 90.0):
            msg = f'Latitude must be within [-90, 90], got {v}'
            raise ValueError(msg)
        return v

    @field_validator('lon')
    @classmethod
    def validate_lon(cls, v: float) -> float:
        v = float(v)
        if not math.isfinite(v) or not (-180.0 <= v <= 180.0):
            msg = f'Longitude must be within [-180, 180], got {v}'
            raise ValueError(msg)
        return v


class GeoBoundingBox(BaseModel):
    """Прямоугольная область по юго-западному и северо-восточному углам."""

    model_config = {'frozen': True}

    south_west: GeoPoint
    north_east: GeoPoint

    @model_validator(mode='after')
    def validate_corners(self) -> 'GeoBoundingBox':
        if self.south_west.lat >= self.north_east.lat:
            msg = 'south_west must be south of north_east'
            raise ValueError(msg)
        if self.south_west.lon >= self.north_east.lon:
            msg = 'south_west must be west of north_east'
            raise ValueError(msg)
        return self

    @classmethod
    def from_bounds(
        cls,
        min_lat: float,
        min_lon: float,
        max_lat: float,
        max_lon: float,
    ) -> 'GeoBoundingBox':
        return cls(
            south_west=GeoPoint(lat=min_lat, lon=min_lon),
            north_east=GeoPoint(lat=max_lat, lon=max_lon),
        )

    @property
    def min_lat(self) -> float:
        return self.south_west.lat

    @property
    def max_lat(self) -> float:
        return self.north_east.lat

    @property
    def min_lon(self) -> float:
        return self.south_west.lon

    @property
    def max_lon(self) -> float:
        return self.north_east.lon


class TerrainSettings(BaseModel):
    """Параметры загрузки тайлов и построения рельефа."""

    model_config = {
        'extra': 'ignore',  # игнорировать лишние поля из профилей
    }

    # Токен Mapbox (в логи не попадает)
    access_token: str = ''

    api_host: str = MAPBOX_API_HOST
    terrain_tileset: str = MAPBOX_TERRAIN_RGB_TILESET
    texture_style: str = DEFAULT_TEXTURE_STYLE

    tile_size: int = TILE_SIZE
    max_concurrency: int = ASYNC_MAX_CONCURRENCY
    max_attempts: int = MAX_REQUEST_ATTEMPTS

    # Множитель высот (вертикальное преувеличение)
    exaggeration: float = 1.0
    # Запас стен ниже минимума рельефа (м); 0 — без стен и дна
    wall_padding_m: float = 0.0
    # Сглаженные нормали для динамических теней
    smooth_normals: bool = False

    http_cache_enabled: bool = HTTP_CACHE_ENABLED

    @field_validator('tile_size', 'max_concurrency', 'max_attempts')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        v = int(v)
        if v < 1:
            msg = 'Значение должно быть >= 1'
            raise ValueError(msg)
        return v

    @field_validator('exaggeration')
    @classmethod
    def validate_exaggeration(cls, v: float) -> float:
        v = float(v)
        if not math.isfinite(v) or v <= 0:
            msg = 'Exaggeration must be a positive finite number'
            raise ValueError(msg)
        return v

    @field_validator('wall_padding_m')
    @classmethod
    def validate_wall_padding(cls, v: float) -> float:
        return max(0.0, float(v))

    @property
    def wall_height(self) -> float | None:
        """Высота стен для построителя сетки; None — стены не нужны."""
        return self.wall_padding_m if self.wall_padding_m > 0 else None
