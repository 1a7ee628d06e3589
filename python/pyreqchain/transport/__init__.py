"""Transports executing requests at the end of the middleware chain."""

from pyreqchain.transport.asgi import ASGITransport
from pyreqchain.transport.httpx_transport import HttpxTransport
from pyreqchain.transport.types import Transport

__all__ = ["ASGITransport", "HttpxTransport", "Transport"]
