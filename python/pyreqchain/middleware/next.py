"""Middleware chain executor."""

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pyreqchain.cookie.types import CookieProvider
from pyreqchain.exceptions import InternalError, PyReqChainError, TransportError
from pyreqchain.http import Extensions
from pyreqchain.http.cookie import Cookie
from pyreqchain.request import Request
from pyreqchain.response import Response
from pyreqchain.transport.types import Transport

if TYPE_CHECKING:
    from pyreqchain.middleware.types import Middleware

logger = logging.getLogger(__name__)


class Next:
    """Handle to the rest of the middleware chain, passed to every middleware.

    Immutable. Each hop creates a new Next pointing one middleware further. Cookies of the attached provider are
    injected into the request before every hop and the response Set-Cookie headers are stored after it, so the
    store also sees cookies set by intermediate redirect responses.
    """

    __slots__ = ("_cookie_provider", "_index", "_middlewares", "_transport")

    def __init__(
        self,
        transport: Transport,
        middlewares: Sequence["Middleware"] = (),
        cookie_provider: CookieProvider | None = None,
        *,
        index: int = 0,
    ) -> None:
        """Do not use directly. The chain is created by RequestBuilder.send."""
        self._transport = transport
        self._middlewares = tuple(middlewares)
        self._cookie_provider = cookie_provider
        self._index = index

    @property
    def remaining(self) -> int:
        """Number of middlewares not yet run."""
        return len(self._middlewares) - self._index

    async def run(self, request: Request, extensions: Extensions) -> Response:
        """Run the next middleware, or send the request with the transport when none remain.

        May be called multiple times by a middleware, for example to retry.
        """
        if self._index >= len(self._middlewares):
            return await self.execute(request)

        middleware = self._middlewares[self._index]
        next_handler = Next(self._transport, self._middlewares, self._cookie_provider, index=self._index + 1)

        self._inject_cookies(request)
        response = await middleware(request, extensions, next_handler)
        if not isinstance(response, Response):
            raise TypeError(f"Middleware {middleware!r} must return a Response, got {type(response).__name__}")
        self._store_cookies(request, response)
        return response

    async def execute(self, request: Request) -> Response:
        """Send the request with the transport, bypassing the remaining middlewares. Cookies are still handled."""
        self._inject_cookies(request)
        logger.debug("Sending %s %s", request.method, request.url)

        try:
            response = await self._transport.execute(request)
        except (PyReqChainError, AssertionError):
            raise
        except Exception as exc:
            raise TransportError.from_exception(exc) from exc

        logger.debug("Received %s from %s %s", response.status, request.method, request.url)
        self._store_cookies(request, response)
        return response

    def _inject_cookies(self, request: Request) -> None:
        if self._cookie_provider is None:
            return
        try:
            cookies = self._cookie_provider.cookies_for(request.url)
        except Exception as exc:
            raise InternalError.from_exception(exc, "Cookie provider failed to get cookies") from exc
        if cookies:
            logger.debug("Injecting %d cookie(s) for %s", len(cookies), request.url)
            request.headers["Cookie"] = "; ".join(cookies)
        elif "Cookie" in request.headers:
            # Left over from an earlier hop to another origin, or deleted since
            del request.headers["Cookie"]

    def _store_cookies(self, request: Request, response: Response) -> None:
        if self._cookie_provider is None:
            return
        set_cookie_headers = response.headers.get_list("set-cookie")
        if not set_cookie_headers:
            return

        url = response.url if response.url is not None else request.url
        cookies = Cookie.parse_set_cookie_headers(set_cookie_headers)
        logger.debug("Storing %d cookie(s) from %s", len(cookies), url)
        try:
            self._cookie_provider.store_cookies(cookies, url)
        except Exception as exc:
            raise InternalError.from_exception(exc, "Cookie provider failed to store cookies") from exc

    def __repr__(self) -> str:
        return f"Next(remaining={self.remaining})"
