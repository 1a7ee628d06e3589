"""Middleware types and interfaces."""

from typing import Protocol

from pyreqchain.http import Extensions
from pyreqchain.middleware.next import Next
from pyreqchain.request import Request
from pyreqchain.response import Response


class Middleware(Protocol):
    """Middleware interface for processing HTTP requests and responses."""

    async def __call__(self, request: Request, extensions: Extensions, next_handler: Next) -> Response:
        """Invoked with a request before sending it.

        Call `await next_handler.run(request, extensions)` to continue processing the request.
        Alternatively, you can return a custom response built with `ResponseBuilder`, or call `next_handler.run`
        multiple times. `next_handler.execute` sends a request directly with the transport, skipping the rest of
        the chain.
        If you need to forward data down the middleware stack, you can use extensions.

        Args:
            request: HTTP request to process
            extensions: Type keyed values shared by all middlewares of this request
            next_handler: Next middleware in the chain to call

        Returns:
            HTTP response from the next middleware or a custom response.
        """
        ...
