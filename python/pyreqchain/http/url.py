"""URL helpers."""

import httpx

from pyreqchain.exceptions import BuilderError
from pyreqchain.types import UrlType


def parse_url(url: UrlType) -> httpx.URL:
    """Parse an absolute URL, raising BuilderError if it is invalid."""
    if isinstance(url, httpx.URL):
        parsed = url
    else:
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as exc:
            raise BuilderError(f"invalid URL {url!r}: {exc}") from exc
    if not parsed.is_absolute_url:
        raise BuilderError(f"URL must be absolute: {str(parsed)!r}")
    return parsed


def join_path(url: str, *segments: str) -> str:
    """Append path segments to an URL string, keeping its query string.

    >>> join_path("https://example.com?query=1", "test", "/test1")
    'https://example.com/test/test1?query=1'
    """
    for segment in segments:
        base, sep, query = url.partition("?")
        segment = segment.lstrip("/")
        base = base if base.endswith("/") else f"{base}/"
        url = f"{base}{segment}?{query}" if sep and query else f"{base}{segment}"
    return url
