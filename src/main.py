"""Command line entry point: fetch terrain and texture for a bounding box."""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from domain.models import GeoBoundingBox, TerrainSettings
from domain.profiles import load_profile
from infrastructure.http.client import (
    HttpApiClient,
    make_http_session,
    resolve_cache_dir,
)
from shared.constants import ACCESS_TOKEN_ENV, APP_DIR_NAME
from shared.diagnostics import log_memory_usage
from shared.progress import CancelToken, ProgressAggregator
from terrain.model import TerrainModel
from tiles.fetcher import TileFetcher
from tiles.image_api import MapboxImageApi

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> Path:
    """Configure application logging (stdout + file in the user's data dir).

    Returns:
        Path to the log file.
    """
    base = Path(
        os.getenv('LOCALAPPDATA')
        or os.getenv('XDG_STATE_HOME')
        or Path.home() / '.local' / 'state'
    )
    log_dir = base / APP_DIR_NAME / 'log'
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / 'terrainkit.log'

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(log_file), encoding='utf-8'),
        ],
    )
    return log_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='terrainkit - рельеф и текстура Mapbox для области'
    )
    parser.add_argument('--profile', help='Имя профиля или путь к .toml')
    parser.add_argument('--min-lat', type=float, required=True)
    parser.add_argument('--min-lon', type=float, required=True)
    parser.add_argument('--max-lat', type=float, required=True)
    parser.add_argument('--max-lon', type=float, required=True)
    parser.add_argument(
        '--out-dir',
        type=Path,
        default=Path.cwd(),
        help='Каталог для texture.png и mesh.npz',
    )
    parser.add_argument('--no-texture', action='store_true')
    parser.add_argument('--verbose', '-v', action='store_true')
    return parser


def _load_settings(profile: str | None) -> TerrainSettings:
    if profile:
        return load_profile(profile)
    return TerrainSettings(access_token=os.getenv(ACCESS_TOKEN_ENV, ''))


async def _gather_or_cancel(coros: list[Coroutine[Any, Any, Any]]) -> list[Any]:
    """
    Выполняет задачи параллельно; при первой ошибке отменяет остальные.

    Возвращается только после завершения всех задач, чтобы ни одна
    не пережила закрытие HTTP-сессии.
    """
    tasks = [asyncio.create_task(c) for c in coros]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def run(
    bbox: GeoBoundingBox,
    settings: TerrainSettings,
    out_dir: Path,
    *,
    with_texture: bool = True,
    cancel: CancelToken | None = None,
) -> TerrainModel:
    """Загружает высоты и текстуру параллельно и сохраняет результат."""
    out_dir.mkdir(parents=True, exist_ok=True)
    model = TerrainModel(bbox, settings)

    def _report(fraction: float) -> None:
        logger.info('Progress: %3.0f%%', fraction * 100)

    weights = {'height': 0.4, 'mesh': 0.2}
    if with_texture:
        weights['texture'] = 0.4
    progress = ProgressAggregator(weights, on_change=_report)

    cache_dir = resolve_cache_dir() if settings.http_cache_enabled else None
    async with make_http_session(
        cache_dir, use_cache=settings.http_cache_enabled
    ) as session:
        client = HttpApiClient(session)
        fetcher = TileFetcher(client, settings.access_token, host=settings.api_host)
        api = MapboxImageApi(
            fetcher,
            tile_size=settings.tile_size,
            concurrency=settings.max_concurrency,
        )
        jobs = [
            model.fetch_terrain(
                api,
                height_progress=progress.stage('height'),
                mesh_progress=progress.stage('mesh'),
                cancel=cancel,
            )
        ]
        if with_texture:
            jobs.append(
                model.fetch_texture(
                    api, progress=progress.stage('texture'), cancel=cancel
                )
            )
        await _gather_or_cancel(jobs)

    mesh_path = out_dir / 'mesh.npz'
    model.mesh.save(mesh_path)
    logger.info('Mesh saved: %s', mesh_path)
    if model.texture is not None:
        texture_path = out_dir / 'texture.png'
        model.texture.save(texture_path)
        logger.info('Texture saved: %s', texture_path)
    log_memory_usage('after saving results')
    return model


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    log_file = setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    logger.info('Starting terrainkit, log file: %s', log_file)

    try:
        bbox = GeoBoundingBox.from_bounds(
            args.min_lat, args.min_lon, args.max_lat, args.max_lon
        )
        settings = _load_settings(args.profile)
    except (ValueError, FileNotFoundError) as e:
        logger.error('Invalid input: %s', e)
        return 2

    try:
        asyncio.run(
            run(bbox, settings, args.out_dir, with_texture=not args.no_texture)
        )
    except KeyboardInterrupt:
        logger.info('Interrupted by user')
        return 130
    except Exception:
        logger.exception('Terrain generation failed')
        return 1
    logger.info('Done')
    return 0


if __name__ == '__main__':
    sys.exit(main())
