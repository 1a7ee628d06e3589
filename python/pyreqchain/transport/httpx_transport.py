"""Network transport backed by httpx."""

from typing import Self

import httpx

from pyreqchain.exceptions import (
    ConnectError,
    ConnectTimeoutError,
    PoolTimeoutError,
    ReadTimeoutError,
    TransportError,
    WriteTimeoutError,
)
from pyreqchain.request import Request
from pyreqchain.response import Response


# Checked in order, subclasses first
_ERROR_MAPPING: tuple[tuple[type[httpx.TransportError], type[TransportError]], ...] = (
    (httpx.ConnectTimeout, ConnectTimeoutError),
    (httpx.ReadTimeout, ReadTimeoutError),
    (httpx.WriteTimeout, WriteTimeoutError),
    (httpx.PoolTimeout, PoolTimeoutError),
    (httpx.ConnectError, ConnectError),
)


class HttpxTransport:
    """Sends requests with an `httpx.AsyncClient`. Redirects are never followed by httpx, the chain does that.

    httpx keeps a cookie jar per client. It is emptied around every send, cookies are handled by the chain only.

    Args:
        client: Client to send with. A new one is created (and owned) when not given.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(follow_redirects=False)

    async def execute(self, request: Request) -> Response:
        content = None
        if request.body is not None:
            content = request.body.aiter_bytes() if request.body.is_stream else request.body.copy_bytes()

        self._client.cookies.clear()
        http_request = self._client.build_request(
            request.method,
            request.url,
            headers=list(request.headers.multi_items()),
            content=content,
        )
        try:
            http_response = await self._client.send(http_request, follow_redirects=False)
        except httpx.TransportError as exc:
            raise _map_error(exc) from exc
        finally:
            self._client.cookies.clear()

        return Response(
            http_response.status_code,
            http_response.headers,
            http_response.content,
            url=http_response.url,
            version=http_response.http_version,
        )

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def _map_error(exc: httpx.TransportError) -> TransportError:
    for httpx_error, error in _ERROR_MAPPING:
        if isinstance(exc, httpx_error):
            return error.from_exception(exc)
    return TransportError.from_exception(exc)
