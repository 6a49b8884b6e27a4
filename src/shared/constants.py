from enum import Enum

# Базовый хост Mapbox Web API
MAPBOX_API_HOST = 'https://api.mapbox.com'

# Тайлсет высот Terrain-RGB
MAPBOX_TERRAIN_RGB_TILESET = 'mapbox.terrain-rgb'

# Стиль текстуры по умолчанию
DEFAULT_TEXTURE_STYLE = 'mapbox/satellite-v9'

# Заголовок Accept для Static Images API
STYLE_ACCEPT_HEADER = 'image/*;q=0.8'

# Переменная окружения с токеном доступа
ACCESS_TOKEN_ENV = 'MAPBOX_ACCESS_TOKEN'


class TileImageFormat(str, Enum):
    """Форматы изображений, которые отдаёт Tilesets API."""

    PNG_RAW = 'pngraw'
    PNG = 'png'
    JPG = 'jpg'
    JPG90 = 'jpg90'
    JPG80 = 'jpg80'
    JPG70 = 'jpg70'


# Базовый размер тайла Web Mercator (пикселей)
TILE_SIZE = 256

# Static Images API возвращает картинку в 2 раза больше запрошенной области
STYLE_SCALE = 2

# Опорный вьюпорт для подбора зума по границам области (пикселей)
REFERENCE_VIEWPORT_WIDTH_PX = 1024
REFERENCE_VIEWPORT_HEIGHT_PX = 1024

# Максимальный уровень приближения
MAX_ZOOM = 22

# Максимальный зум, на котором гарантированно есть Terrain-RGB
MAX_TERRAIN_RGB_ZOOM = 14

# Максимальное число параллельных HTTP-запросов
ASYNC_MAX_CONCURRENCY = 10

# Число попыток загрузки высот (каждая следующая на зум ниже)
MAX_REQUEST_ATTEMPTS = 3

# Границы проекции Web Mercator
MERCATOR_MAX_LAT_DEG = 85.05112878
WORLD_LNG_SPAN_DEG = 360.0
WORLD_LNG_HALF_SPAN_DEG = 180.0

# Формула Terrain-RGB: h = BASE + (R*65536 + G*256 + B) * STEP
TERRAIN_RGB_BASE_M = -10000.0
TERRAIN_RGB_STEP_M = 0.1

# Допустимые коды ответа (включительно)
HTTP_ACCEPT_MIN = 200
HTTP_ACCEPT_MAX = 304

# HTTP: таймаут на запрос (секунды)
HTTP_TIMEOUT_DEFAULT = 20.0

# HTTP-кэш (aiohttp-client-cache, SQLite)
HTTP_CACHE_ENABLED = True
HTTP_CACHE_DIR = '.cache/tiles'
HTTP_CACHE_EXPIRE_HOURS = 168
HTTP_CACHE_RESPECT_HEADERS = True
HTTP_CACHE_STALE_IF_ERROR_HOURS = 72

# Логировать память каждые N загруженных тайлов
LOG_MEMORY_EVERY_TILES = 50

# Вектор «вверх» для нормалей без сглаживания
UP_NORMAL = (0.0, 1.0, 0.0)
DOWN_NORMAL = (0.0, -1.0, 0.0)

# Индекс секции «верх» при наличии стен (порядок слотов материалов)
TOP_SECTION_INDEX = 4

# Каталог профилей TOML по умолчанию
PROFILES_DIR = 'configs/profiles'

# Имя приложения для пользовательских каталогов
APP_DIR_NAME = 'terrainkit'
