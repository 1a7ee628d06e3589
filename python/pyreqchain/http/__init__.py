"""HTTP utils classes and types."""

from httpx import URL as Url
from httpx import Headers as HeaderMap

from pyreqchain.http.body import RequestBody
from pyreqchain.http.extensions import Extensions
from pyreqchain.http.url import join_path, parse_url

__all__ = [
    "Extensions",
    "HeaderMap",
    "RequestBody",
    "Url",
    "join_path",
    "parse_url",
]
