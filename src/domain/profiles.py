import logging
import os
from pathlib import Path

import tomlkit

from domain.models import TerrainSettings
from shared.constants import ACCESS_TOKEN_ENV, APP_DIR_NAME, PROFILES_DIR

logger = logging.getLogger(__name__)


def _user_profiles_dir() -> Path:
    """
    Determine profiles directory.

    1) If <project_root>/configs/profiles exists, use it (run-from-repo setups).
    2) Otherwise fall back to ~/.config/terrainkit/configs/profiles
       (or $XDG_CONFIG_HOME when set).
    """
    project_root = Path(__file__).resolve().parent.parent.parent
    local_profiles = project_root / PROFILES_DIR
    if local_profiles.exists():
        return local_profiles

    config_home = os.getenv('XDG_CONFIG_HOME') or (Path.home() / '.config')
    return Path(config_home) / APP_DIR_NAME / PROFILES_DIR


def ensure_profiles_dir() -> Path:
    profiles_dir = _user_profiles_dir()
    profiles_dir.mkdir(parents=True, exist_ok=True)
    return profiles_dir


def list_profiles() -> list[str]:
    """Список имён профилей без расширения."""
    folder = ensure_profiles_dir()
    return sorted(p.stem for p in folder.glob('*.toml') if p.is_file())


def profile_path(name: str) -> Path:
    """Путь к файлу профиля по имени."""
    return ensure_profiles_dir() / f'{name}.toml'


def load_profile(name_or_path: str) -> TerrainSettings:
    """
    Загрузка и валидация профиля TOML -> TerrainSettings.

    Поддерживает как имя профиля (без .toml) из каталога profiles,
    так и путь до TOML файла. Пустой access_token подменяется значением
    переменной окружения MAPBOX_ACCESS_TOKEN.
    """
    p = Path(name_or_path)
    path = p if p.suffix.lower() == '.toml' else profile_path(name_or_path)
    if not path.exists():
        msg = f'Profile not found: {path}'
        raise FileNotFoundError(msg)
    text = path.read_text(encoding='utf-8')
    data = tomlkit.parse(text).unwrap()

    if not data.get('access_token'):
        env_token = os.getenv(ACCESS_TOKEN_ENV)
        if env_token:
            data['access_token'] = env_token

    settings = TerrainSettings.model_validate(data)
    logger.info(
        'Profile %s loaded: tile_size=%s concurrency=%s attempts=%s walls=%s',
        path.name,
        settings.tile_size,
        settings.max_concurrency,
        settings.max_attempts,
        settings.wall_height is not None,
    )
    return settings


def save_profile(name_or_path: str, settings: TerrainSettings) -> Path:
    """Сохранение профиля в TOML. Токен не сохраняется."""
    p = Path(name_or_path)
    path = p if p.suffix.lower() == '.toml' else profile_path(name_or_path)
    data = settings.model_dump(exclude={'access_token'})
    text = tomlkit.dumps(data)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')
    return path
