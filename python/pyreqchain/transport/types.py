"""Transport types and interfaces."""

from typing import Protocol

from pyreqchain.request import Request
from pyreqchain.response import Response


class Transport(Protocol):
    """Terminal executor of the middleware chain, sending the request over the wire (or anywhere else)."""

    async def execute(self, request: Request) -> Response:
        """Send the request and return the buffered response.

        Redirects must not be followed. Any exception raised is wrapped into `TransportError` by the chain,
        unless it already is a `PyReqChainError`.
        """
        ...
