"""Common types and interfaces used in the library."""

from collections.abc import AsyncIterable, Iterable, Mapping, Sequence
from typing import Any

import httpx

UrlType = httpx.URL | str
HeadersType = Mapping[str, str] | Sequence[tuple[str, str]] | httpx.Headers
QueryParams = Mapping[str, Any] | Sequence[tuple[str, Any]]

SyncStream = Iterable[bytes] | Iterable[bytearray] | Iterable[memoryview]
Stream = AsyncIterable[bytes] | AsyncIterable[bytearray] | AsyncIterable[memoryview] | SyncStream
