"""Client and client builder."""

import logging
from collections.abc import Mapping
from typing import Self

import httpx

from pyreqchain.client.request_builder import RequestBuilder
from pyreqchain.cookie.types import CookieProvider
from pyreqchain.exceptions import BuilderError
from pyreqchain.http.url import parse_url
from pyreqchain.middleware import Middleware
from pyreqchain.request.request import validate_header
from pyreqchain.retry import ExponentialBackoff, RetryPolicy
from pyreqchain.transport import HttpxTransport, Transport
from pyreqchain.types import HeadersType, UrlType

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 10


class Client:
    """Asynchronous HTTP client sending requests through a middleware chain. Configuration is immutable.

    Use as an async context manager, or call `close()`, to release the transport.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        middlewares: tuple[Middleware, ...] = (),
        cookie_provider: CookieProvider | None = None,
        retry_policy: RetryPolicy | None = None,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        base_url: httpx.URL | None = None,
        default_headers: httpx.Headers | None = None,
    ) -> None:
        """Do not use directly. Instead, use ClientBuilder."""
        self._transport = transport
        self._middlewares = middlewares
        self._cookie_provider = cookie_provider
        self._retry_policy = retry_policy
        self._max_redirects = max_redirects
        self._base_url = base_url
        self._default_headers = default_headers if default_headers is not None else httpx.Headers()

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def middlewares(self) -> tuple[Middleware, ...]:
        return self._middlewares

    @property
    def cookie_provider(self) -> CookieProvider | None:
        return self._cookie_provider

    @property
    def retry_policy(self) -> RetryPolicy | None:
        return self._retry_policy

    @property
    def max_redirects(self) -> int:
        return self._max_redirects

    @property
    def base_url(self) -> httpx.URL | None:
        return self._base_url

    @property
    def default_headers(self) -> httpx.Headers:
        return self._default_headers.copy()

    def request(self, method: str, url: UrlType) -> RequestBuilder:
        """Start building a request. Relative URLs are joined to the base URL."""
        return RequestBuilder(self, method, self._resolve_url(url))

    def get(self, url: UrlType) -> RequestBuilder:
        return self.request("GET", url)

    def post(self, url: UrlType) -> RequestBuilder:
        return self.request("POST", url)

    def put(self, url: UrlType) -> RequestBuilder:
        return self.request("PUT", url)

    def patch(self, url: UrlType) -> RequestBuilder:
        return self.request("PATCH", url)

    def delete(self, url: UrlType) -> RequestBuilder:
        return self.request("DELETE", url)

    def head(self, url: UrlType) -> RequestBuilder:
        return self.request("HEAD", url)

    def options(self, url: UrlType) -> RequestBuilder:
        return self.request("OPTIONS", url)

    async def close(self) -> None:
        """Close the transport, if it supports closing."""
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _resolve_url(self, url: UrlType) -> httpx.URL:
        if self._base_url is not None and isinstance(url, str):
            try:
                url = self._base_url.join(url)
            except httpx.InvalidURL as exc:
                raise BuilderError(f"invalid URL {url!r}: {exc}") from exc
        return parse_url(url)

    def __repr__(self) -> str:
        return f"Client(transport={self._transport!r}, middlewares={self._middlewares!r})"


class ClientBuilder:
    """Fluent builder for Client instances."""

    def __init__(self) -> None:
        self._transport: Transport | None = None
        self._middlewares: list[Middleware] = []
        self._cookie_provider: CookieProvider | None = None
        self._retry_policy: RetryPolicy | None = None
        self._max_redirects = DEFAULT_MAX_REDIRECTS
        self._base_url: httpx.URL | None = None
        self._default_headers = httpx.Headers()

    def transport(self, transport: Transport) -> Self:
        """Transport sending the requests. Defaults to HttpxTransport with a new httpx.AsyncClient."""
        self._transport = transport
        return self

    def with_middleware(self, middleware: Middleware) -> Self:
        """Add a middleware run for every request, in the order added, before any per-request middleware."""
        self._middlewares.append(middleware)
        return self

    def cookie_store(self, cookie_provider: CookieProvider | None) -> Self:
        """Default cookie provider for every request, usually a CookieStore."""
        self._cookie_provider = cookie_provider
        return self

    def retry_policy(self, policy: RetryPolicy | None) -> Self:
        """Default retry policy for every request."""
        self._retry_policy = policy
        return self

    def retry_times(self, retries: int) -> Self:
        """Retry every request up to `retries` times with the default exponential backoff. 0 disables retrying."""
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self._retry_policy = ExponentialBackoff.with_max_retries(retries) if retries else None
        return self

    def max_redirects(self, max_redirects: int) -> Self:
        """Maximum number of redirects followed per request (default 10). 0 disables following redirects."""
        if max_redirects < 0:
            raise ValueError("max_redirects must be >= 0")
        self._max_redirects = max_redirects
        return self

    def base_url(self, url: UrlType) -> Self:
        """Base URL for relative request URLs. Must end with a slash."""
        base_url = parse_url(url)
        if not base_url.path.endswith("/"):
            raise ValueError(f"base_url must end with a trailing slash: {str(base_url)!r}")
        self._base_url = base_url
        return self

    def default_headers(self, headers: HeadersType) -> Self:
        """Headers sent with every request."""
        items = headers.items() if isinstance(headers, Mapping) else headers
        for name, value in items:
            validate_header(name, value)
            self._default_headers[name] = value
        return self

    def build(self) -> Client:
        transport = self._transport if self._transport is not None else HttpxTransport()
        logger.debug("Building client with transport %r and %d middleware(s)", transport, len(self._middlewares))
        return Client(
            transport,
            middlewares=tuple(self._middlewares),
            cookie_provider=self._cookie_provider,
            retry_policy=self._retry_policy,
            max_redirects=self._max_redirects,
            base_url=self._base_url,
            default_headers=self._default_headers.copy(),
        )
