"""Request value type."""

import re

import httpx

from pyreqchain.exceptions import BuilderError
from pyreqchain.http import RequestBody
from pyreqchain.http.url import parse_url
from pyreqchain.types import HeadersType, UrlType

# RFC 9110 token, used for both methods and header names
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def validate_method(method: str) -> str:
    """Return the upper-cased method, raising BuilderError if it is not a valid token."""
    if not isinstance(method, str) or not _TOKEN_RE.match(method):
        raise BuilderError(f"invalid HTTP method: {method!r}")
    return method.upper()


def validate_header(name: str, value: str) -> None:
    """Raise BuilderError if the header name or value can not be sent."""
    if not isinstance(name, str) or not _TOKEN_RE.match(name):
        raise BuilderError(f"invalid header name: {name!r}")
    if not isinstance(value, str) or any(ch in value for ch in "\r\n\0"):
        raise BuilderError(f"invalid header value for {name!r}: {value!r}")


class Request:
    """HTTP request flowing through the middleware chain.

    The method, URL, headers and body are mutable so middlewares can adjust the request before passing it on.
    """

    __slots__ = ("_method", "_url", "body", "headers")

    def __init__(
        self,
        method: str,
        url: UrlType,
        headers: HeadersType | None = None,
        body: RequestBody | None = None,
    ) -> None:
        self._method = validate_method(method)
        self._url = parse_url(url)
        self.headers = httpx.Headers(headers)
        self.body = body

    @property
    def method(self) -> str:
        return self._method

    @method.setter
    def method(self, value: str) -> None:
        self._method = validate_method(value)

    @property
    def url(self) -> httpx.URL:
        return self._url

    @url.setter
    def url(self, value: UrlType) -> None:
        self._url = parse_url(value)

    def try_clone(self) -> "Request | None":
        """Copy the request. Returns None when the body is a stream, which can be consumed only once."""
        if self.body is None:
            return Request(self._method, self._url, self.headers.copy())
        body = self.body.try_clone()
        if body is None:
            return None
        return Request(self._method, self._url, self.headers.copy(), body)

    def copy(self) -> "Request":
        """Copy the request, raising TypeError when the body is a stream."""
        request = self.try_clone()
        if request is None:
            raise TypeError("Request with a stream body can not be copied")
        return request

    def repr_full(self) -> str:
        """Return a representation including headers and body."""
        headers = dict(self.headers.multi_items())
        return f"Request(method={self._method!r}, url={str(self._url)!r}, headers={headers!r}, body={self.body!r})"

    def __repr__(self) -> str:
        return f"Request({self._method!r}, {str(self._url)!r})"
