"""Tests for shared.errors module."""

from shared.errors import (
    DecodeError,
    FetchError,
    HttpStatusError,
    TerrainKitError,
    TransportError,
    UnknownError,
    UrlConstructionError,
)


class TestErrorTaxonomy:
    def test_fetch_errors(self):
        for cls in (UrlConstructionError, TransportError, HttpStatusError, DecodeError):
            assert issubclass(cls, FetchError)
            assert issubclass(cls, TerrainKitError)

    def test_unknown_error(self):
        assert issubclass(UnknownError, TerrainKitError)
        assert not issubclass(UnknownError, FetchError)

    def test_http_status_error(self):
        err = HttpStatusError(429, 'https://api.example.test/v4/x')
        assert err.status == 429
        assert err.path == 'https://api.example.test/v4/x'
        assert '429' in str(err)
        assert str(HttpStatusError(500)) == 'Unacceptable HTTP status 500'
