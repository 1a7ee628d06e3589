import asyncio
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import pytest
from pyreqchain.client import ClientBuilder
from pyreqchain.exceptions import TransportError
from pyreqchain.http import RequestBody
from pyreqchain.request import Request
from pyreqchain.transport import ASGITransport
from starlette.applications import Starlette
from starlette.requests import Request as StarletteRequest
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route

from tests.servers.echo_server import ECHO_URL, EchoServer


async def test_scope(echo_transport: ASGITransport):
    request = Request("POST", f"{ECHO_URL}some%20path?a=1&b=2", {"X-Test": "val"}, RequestBody.from_bytes(b"body"))

    resp = await echo_transport.execute(request)

    data = await resp.json()
    assert data["method"] == "POST"
    assert data["path"] == "/some path"
    assert data["query"] == [["a", "1"], ["b", "2"]]
    assert data["scheme"] == "http"
    assert data["body"] == "body"
    assert data["headers"] == [["host", "echo.test"], ["x-test", "val"]]
    assert resp.url == request.url


async def test_host_header_kept(echo_transport: ASGITransport):
    request = Request("GET", ECHO_URL, {"Host": "custom.test"})
    data = await (await echo_transport.execute(request)).json()
    assert data["headers"] == [["host", "custom.test"]]


@pytest.mark.parametrize("sync", [False, True])
async def test_stream_body(echo_transport: ASGITransport, sync: bool):
    async def gen() -> AsyncGenerator[bytes]:
        for part in (b"a", b"b", b"c"):
            yield part

    stream = [b"a", b"b", b"c"] if sync else gen()
    request = Request("POST", ECHO_URL, body=RequestBody.from_stream(stream))

    data = await (await echo_transport.execute(request)).json()
    assert data["body"] == "abc"


async def test_empty_stream_body(echo_transport: ASGITransport):
    request = Request("POST", ECHO_URL, body=RequestBody.from_stream([]))
    data = await (await echo_transport.execute(request)).json()
    assert data["body"] == ""


async def test_streaming_response():
    async def stream(_request: StarletteRequest) -> StreamingResponse:
        async def parts() -> AsyncIterator[bytes]:
            for i in range(3):
                yield f"part{i};".encode()

        return StreamingResponse(parts(), media_type="text/plain")

    transport = ASGITransport(Starlette(routes=[Route("/stream", stream)]))
    resp = await transport.execute(Request("GET", "http://app.test/stream"))

    assert resp.status == 200
    assert await resp.text() == "part0;part1;part2;"


async def test_lifespan():
    events: list[str] = []

    @asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[dict[str, Any]]:
        events.append("startup")
        yield {"value": "from lifespan"}
        events.append("shutdown")

    async def state(request: StarletteRequest) -> JSONResponse:
        return JSONResponse({"value": request.state.value})

    app = Starlette(routes=[Route("/state", state)], lifespan=lifespan)

    async with ASGITransport(app) as transport:
        assert events == ["startup"]
        async with ClientBuilder().transport(transport).build() as client:
            resp = await client.get("http://app.test/state").send()
            assert await resp.json() == {"value": "from lifespan"}

    assert events == ["startup", "shutdown"]


async def test_lifespan_startup_failure():
    @asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        raise RuntimeError("boom")
        yield

    with pytest.raises(RuntimeError, match="boom"):
        async with ASGITransport(Starlette(lifespan=lifespan)):
            pass


async def test_exit_without_lifespan():
    transport = ASGITransport(Starlette())
    with pytest.raises(RuntimeError, match="Lifespan was not started"):
        await transport.__aexit__(None, None, None)


async def test_scope_update(echo_server: EchoServer):
    async def add_header(scope: dict[str, Any], request: Request) -> None:
        scope["headers"].append([b"x-scope", request.method.encode()])

    transport = ASGITransport(echo_server, scope_update=add_header)
    data = await (await transport.execute(Request("PATCH", ECHO_URL))).json()
    assert ["x-scope", "PATCH"] in data["headers"]


async def test_timeout():
    async def slow(_scope: dict[str, Any], _receive: Any, _send: Any) -> None:
        await asyncio.sleep(10)

    transport = ASGITransport(slow, timeout=timedelta(milliseconds=50))
    client = ClientBuilder().transport(transport).build()

    with pytest.raises(TransportError) as e:
        await client.get(ECHO_URL).send()
    assert isinstance(e.value.__cause__, TimeoutError)


async def test_app_error_wrapped():
    async def broken(_scope: dict[str, Any], _receive: Any, _send: Any) -> None:
        raise ValueError("app failure")

    client = ClientBuilder().transport(ASGITransport(broken)).build()

    with pytest.raises(TransportError, match="app failure") as e:
        await client.get(ECHO_URL).send()
    assert isinstance(e.value.__cause__, ValueError)
