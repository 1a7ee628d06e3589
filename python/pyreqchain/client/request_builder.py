"""Request builder."""

import base64
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Self, TypeVar

import httpx
import orjson

from pyreqchain.cookie.types import CookieProvider
from pyreqchain.exceptions import BuilderError
from pyreqchain.http import Extensions, RequestBody
from pyreqchain.middleware import Middleware, Next, RedirectMiddleware, RetryMiddleware
from pyreqchain.request import Request
from pyreqchain.request.request import validate_header, validate_method
from pyreqchain.response import Response
from pyreqchain.retry import ExponentialBackoff, RetryPolicy
from pyreqchain.types import HeadersType, QueryParams, Stream

if TYPE_CHECKING:
    from pyreqchain.client.client import Client

_T = TypeVar("_T")


class RequestBuilder:
    """Builds and sends a single request through the client middleware chain.

    Starts from the client defaults (headers, cookie store, retry policy, redirect limit), every setting can be
    overridden for this request only.
    """

    def __init__(self, client: "Client", method: str, url: httpx.URL) -> None:
        """Do not use directly. Instead, use Client.request, Client.get, etc."""
        self._client = client
        self._method = validate_method(method)
        self._url = url
        self._headers = client.default_headers.copy()
        self._body: RequestBody | None = None
        self._cookie_provider = client.cookie_provider
        self._retry_policy = client.retry_policy
        self._max_redirects = client.max_redirects
        self._middlewares: list[Middleware] = []
        self._extensions = Extensions()

    def header(self, name: str, value: str) -> Self:
        """Append a header to the request. Existing headers with the same name are kept."""
        validate_header(name, value)
        self._headers = httpx.Headers([*self._headers.multi_items(), (name, value)])
        return self

    def headers(self, headers: HeadersType) -> Self:
        """Set headers, replacing existing headers with the same names."""
        items = headers.items() if isinstance(headers, Mapping) else headers
        for name, value in items:
            validate_header(name, value)
            self._headers[name] = value
        return self

    def basic_auth(self, username: str, password: str | None = None) -> Self:
        credentials = base64.b64encode(f"{username}:{password or ''}".encode()).decode()
        return self.headers({"Authorization": f"Basic {credentials}"})

    def bearer_auth(self, token: str) -> Self:
        return self.headers({"Authorization": f"Bearer {token}"})

    def query(self, params: QueryParams) -> Self:
        """Add query parameters. Existing parameters are kept."""
        try:
            self._url = self._url.copy_merge_params(params)
        except TypeError as exc:
            raise BuilderError(f"invalid query params: {exc}") from exc
        return self

    def body_bytes(self, body: bytes | bytearray | memoryview) -> Self:
        self._body = RequestBody.from_bytes(body)
        return self

    def body_text(self, body: str) -> Self:
        self._body = RequestBody.from_text(body)
        self._set_default_content_type("text/plain; charset=utf-8")
        return self

    def body_json(self, body: Any) -> Self:
        try:
            self._body = RequestBody.from_bytes(orjson.dumps(body))
        except orjson.JSONEncodeError as exc:
            raise BuilderError(f"body is not JSON serializable: {exc}") from exc
        self._set_default_content_type("application/json")
        return self

    def body_stream(self, stream: Stream) -> Self:
        """Set a streamed body. Requests with a stream body are never retried and 307/308 redirects drop the body."""
        self._body = RequestBody.from_stream(stream)
        return self

    def cookie_store(self, cookie_provider: CookieProvider | None) -> Self:
        """Use this cookie provider for the request, None disables cookie handling."""
        self._cookie_provider = cookie_provider
        return self

    def retry_policy(self, policy: RetryPolicy | None) -> Self:
        """Retry failed attempts with this policy, None disables retrying."""
        self._retry_policy = policy
        return self

    def retry_times(self, retries: int) -> Self:
        """Retry up to `retries` times with the default exponential backoff. 0 disables retrying."""
        if retries < 0:
            raise BuilderError("retries must be >= 0")
        self._retry_policy = ExponentialBackoff.with_max_retries(retries) if retries else None
        return self

    def max_redirects(self, max_redirects: int) -> Self:
        """Follow up to `max_redirects` redirects. 0 disables following redirects."""
        if max_redirects < 0:
            raise BuilderError("max_redirects must be >= 0")
        self._max_redirects = max_redirects
        return self

    def with_middleware(self, middleware: Middleware) -> Self:
        """Add a middleware run after the client middlewares, in the order added."""
        self._middlewares.append(middleware)
        return self

    def extension(self, value: object) -> Self:
        """Insert a value into the extensions, keyed by its type."""
        self._extensions.insert(value)
        return self

    def remove_extension(self, cls: type[_T]) -> _T | None:
        """Remove and return the extension of the given type."""
        return self._extensions.remove(cls)

    @property
    def extensions(self) -> Extensions:
        """Extensions passed to the middlewares when the request is sent."""
        return self._extensions

    def middlewares(self) -> tuple[Middleware, ...]:
        """The full chain the request is sent through."""
        middlewares: list[Middleware] = [*self._client.middlewares, *self._middlewares]
        if self._max_redirects > 0:
            middlewares.append(RedirectMiddleware(self._max_redirects))
        if self._retry_policy is not None:
            middlewares.append(RetryMiddleware(self._retry_policy))
        return tuple(middlewares)

    def build(self) -> Request:
        """Build the request, with the Cookie header of the attached cookie store."""
        request = self._build_request()
        if self._cookie_provider is not None and (cookies := self._cookie_provider.cookies_for(request.url)):
            request.headers["Cookie"] = "; ".join(cookies)
        return request

    async def send(self) -> Response:
        """Send the request through the middleware chain."""
        next_handler = Next(self._client.transport, self.middlewares(), self._cookie_provider)
        return await next_handler.run(self._build_request(), self._extensions.copy())

    def try_clone(self) -> "RequestBuilder | None":
        """Copy the builder. Returns None when the body is a stream."""
        body = None
        if self._body is not None:
            body = self._body.try_clone()
            if body is None:
                return None

        clone = RequestBuilder.__new__(RequestBuilder)
        clone._client = self._client
        clone._method = self._method
        clone._url = self._url
        clone._headers = self._headers.copy()
        clone._body = body
        clone._cookie_provider = self._cookie_provider
        clone._retry_policy = self._retry_policy
        clone._max_redirects = self._max_redirects
        clone._middlewares = [*self._middlewares]
        clone._extensions = self._extensions.copy()
        return clone

    def _build_request(self) -> Request:
        return Request(self._method, self._url, self._headers.copy(), self._body)

    def _set_default_content_type(self, content_type: str) -> None:
        if "content-type" not in self._headers:
            self._headers["Content-Type"] = content_type

    def __repr__(self) -> str:
        return f"RequestBuilder({self._method!r}, {str(self._url)!r})"
