from collections.abc import AsyncGenerator

import pytest
from pyreqchain.client import Client, ClientBuilder
from pyreqchain.transport import ASGITransport
from starlette.applications import Starlette

from tests.servers.echo_server import EchoServer
from tests.servers.httpbin_app import create_app
from tests.utils import RecordingTransport


@pytest.fixture
def echo_server() -> EchoServer:
    return EchoServer()


@pytest.fixture
def echo_transport(echo_server: EchoServer) -> ASGITransport:
    return ASGITransport(echo_server)


@pytest.fixture
def httpbin_app() -> Starlette:
    return create_app()


@pytest.fixture
def httpbin_transport(httpbin_app: Starlette) -> RecordingTransport:
    return RecordingTransport(ASGITransport(httpbin_app))


@pytest.fixture
async def echo_client(echo_transport: ASGITransport) -> AsyncGenerator[Client]:
    async with ClientBuilder().transport(echo_transport).build() as client:
        yield client


@pytest.fixture
async def httpbin_client(httpbin_transport: RecordingTransport) -> AsyncGenerator[Client]:
    async with ClientBuilder().transport(httpbin_transport).build() as client:
        yield client
