"""In-process transport for ASGI applications."""

import asyncio
from collections.abc import AsyncIterator, Callable, Coroutine
from datetime import timedelta
from typing import Any, Self
from urllib.parse import unquote

from pyreqchain.request import Request
from pyreqchain.response import Response

ASGIMessage = dict[str, Any]
ScopeUpdate = Callable[[dict[str, Any], Request], Coroutine[Any, Any, None]]

_DEFAULT_PORTS = {"http": 80, "https": 443}
_CLIENT_ADDR = ("127.0.0.1", 123)


class ASGITransport:
    """Transport that calls an ASGI 3 application directly, without any network.

    Use as an async context manager to run the application lifespan. State yielded by the lifespan is copied into
    the scope of every request.
    """

    def __init__(
        self,
        app: Callable[..., Any],
        *,
        timeout: timedelta | None = None,
        scope_update: ScopeUpdate | None = None,
    ):
        """Initialize the ASGI transport.

        Args:
            app: ASGI application callable
            timeout: Limit for a single request and for each lifespan step (default: 5 seconds)
            scope_update: Optional coroutine modifying the ASGI scope of every request
        """
        self._app = app
        self._scope_update = scope_update
        self._timeout = (timeout or timedelta(seconds=5)).total_seconds()
        self._state: dict[str, Any] = {}
        self._lifespan: _Lifespan | None = None

    async def __aenter__(self) -> Self:
        self._lifespan = _Lifespan(self._app, self._state, self._timeout)
        await self._lifespan.step("startup")
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._lifespan is None:
            raise RuntimeError("Lifespan was not started")
        lifespan, self._lifespan = self._lifespan, None
        await lifespan.step("shutdown")

    async def execute(self, request: Request) -> Response:
        scope = await self._scope(request)
        incoming = _request_messages(request)
        sent: list[ASGIMessage] = []
        done = asyncio.Event()

        async def receive() -> ASGIMessage:
            if (message := await anext(incoming, None)) is not None:
                return message
            # Report the disconnect only once the app has finished responding
            await done.wait()
            return {"type": "http.disconnect"}

        async def send(message: ASGIMessage) -> None:
            sent.append(message)

        try:
            await asyncio.wait_for(self._app(scope, receive, send), timeout=self._timeout)
        finally:
            done.set()

        return _response_from_messages(sent, request)

    async def _scope(self, request: Request) -> dict[str, Any]:
        url = request.url
        headers = [[name.encode(), value.encode()] for name, value in request.headers.multi_items()]
        if "host" not in request.headers:
            headers.insert(0, [b"host", url.netloc])

        scope: dict[str, Any] = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": request.method,
            "scheme": url.scheme,
            "path": unquote(url.path),
            "raw_path": url.raw_path.partition(b"?")[0],
            "root_path": "",
            "query_string": url.query,
            "headers": headers,
            "server": (url.host, url.port or _DEFAULT_PORTS.get(url.scheme, 80)),
            "client": _CLIENT_ADDR,
            "state": self._state.copy(),
        }
        if self._scope_update is not None:
            await self._scope_update(scope, request)
        return scope

    def __repr__(self) -> str:
        return f"ASGITransport(app={self._app!r})"


class _Lifespan:
    """Drives the lifespan protocol of an app in a background task."""

    def __init__(self, app: Callable[..., Any], state: dict[str, Any], timeout: float) -> None:
        self._to_app: asyncio.Queue[ASGIMessage] = asyncio.Queue()
        self._from_app: asyncio.Queue[ASGIMessage] = asyncio.Queue()
        self._timeout = timeout
        scope = {"type": "lifespan", "asgi": {"version": "3.0"}, "state": state}
        self._task = asyncio.create_task(app(scope, self._to_app.get, self._from_app.put))

    async def step(self, action: str) -> None:
        await self._to_app.put({"type": f"lifespan.{action}"})
        reply = await asyncio.wait_for(self._from_app.get(), timeout=self._timeout)
        if reply["type"] != f"lifespan.{action}.failed":
            return

        # Let the app task finish so its own exception can be raised
        await asyncio.sleep(0)
        if self._task.done() and (exc := self._task.exception()) is not None:
            raise exc
        raise RuntimeError(reply.get("message") or f"Lifespan {action} failed")


async def _request_messages(request: Request) -> AsyncIterator[ASGIMessage]:
    if request.body is None:
        yield {"type": "http.request", "body": b"", "more_body": False}
        return

    if not request.body.is_stream:
        yield {"type": "http.request", "body": request.body.copy_bytes() or b"", "more_body": False}
        return

    # One chunk of lookahead, so the last chunk can be flagged with more_body=False
    pending: bytes | None = None
    async for chunk in request.body.aiter_bytes():
        if pending is not None:
            yield {"type": "http.request", "body": pending, "more_body": True}
        pending = chunk
    yield {"type": "http.request", "body": pending or b"", "more_body": False}


def _response_from_messages(messages: list[ASGIMessage], request: Request) -> Response:
    start = next((m for m in messages if m["type"] == "http.response.start"), None)
    if start is None:
        raise RuntimeError("ASGI app finished without starting a response")

    headers = [(name.decode("latin-1"), value.decode("latin-1")) for name, value in start.get("headers", [])]
    body = b"".join(m.get("body", b"") for m in messages if m["type"] == "http.response.body")
    return Response(start["status"], headers, body, url=request.url)
