"""HTTP client infrastructure."""
from infrastructure.http.client import (
    HttpApiClient,
    make_http_session,
    resolve_cache_dir,
    strip_query,
)

__all__ = [
    'HttpApiClient',
    'make_http_session',
    'resolve_cache_dir',
    'strip_query',
]
