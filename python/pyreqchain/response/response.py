"""Response value type and builder."""

from typing import Any, Self

import httpx
import orjson

from pyreqchain.http.url import parse_url
from pyreqchain.types import HeadersType, UrlType


class Response:
    """Buffered HTTP response.

    `url` is the URL of the hop that produced the response. Status, headers and url are mutable so middlewares can
    adjust the response on its way back.
    """

    __slots__ = ("_content", "headers", "status", "url", "version")

    def __init__(
        self,
        status: int,
        headers: HeadersType | None = None,
        content: bytes = b"",
        *,
        url: httpx.URL | None = None,
        version: str = "HTTP/1.1",
    ) -> None:
        self.status = status
        self.headers = httpx.Headers(headers)
        self.url = url
        self.version = version
        self._content = content

    @property
    def is_redirect(self) -> bool:
        """Whether the status is in the redirection class (300-399)."""
        return 300 <= self.status < 400

    @property
    def content(self) -> bytes:
        return self._content

    async def text(self) -> str:
        """Return the body decoded with the charset of the Content-Type header, UTF-8 by default."""
        return self._content.decode(self._charset() or "utf-8", errors="replace")

    async def json(self) -> Any:
        """Return the body parsed as JSON."""
        return orjson.loads(self._content)

    def _charset(self) -> str | None:
        content_type = self.headers.get("content-type", "")
        for param in content_type.split(";")[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "charset":
                return value.strip().strip('"') or None
        return None

    def __repr__(self) -> str:
        return f"Response(status={self.status}, url={str(self.url) if self.url is not None else None!r})"

    async def bytes(self) -> bytes:
        """Return the body bytes."""
        return self._content


class ResponseBuilder:
    """Builds responses, used by transports, mocks and middlewares returning custom responses."""

    def __init__(self) -> None:
        self._status = 200
        self._headers = httpx.Headers()
        self._content = b""
        self._url: httpx.URL | None = None
        self._version = "HTTP/1.1"

    def status(self, value: int) -> Self:
        if not 100 <= value <= 999:
            raise ValueError(f"invalid status code: {value}")
        self._status = value
        return self

    def header(self, name: str, value: str) -> Self:
        """Append a header. Repeated names are kept, like Set-Cookie."""
        self._headers = httpx.Headers([*self._headers.multi_items(), (name, value)])
        return self

    def headers(self, headers: HeadersType) -> Self:
        """Append headers."""
        items = headers.multi_items() if isinstance(headers, httpx.Headers) else httpx.Headers(headers).multi_items()
        self._headers = httpx.Headers([*self._headers.multi_items(), *items])
        return self

    def body_bytes(self, body: bytes | bytearray | memoryview) -> Self:
        self._content = bytes(body)
        return self

    def body_text(self, body: str) -> Self:
        self._content = body.encode()
        if "content-type" not in self._headers:
            self._headers["Content-Type"] = "text/plain; charset=utf-8"
        return self

    def body_json(self, body: Any) -> Self:
        self._content = orjson.dumps(body)
        if "content-type" not in self._headers:
            self._headers["Content-Type"] = "application/json"
        return self

    def url(self, url: UrlType) -> Self:
        self._url = parse_url(url)
        return self

    def version(self, version: str) -> Self:
        self._version = version
        return self

    def build(self) -> Response:
        """Build a new response. The builder can be reused."""
        return Response(self._status, self._headers, self._content, url=self._url, version=self._version)
