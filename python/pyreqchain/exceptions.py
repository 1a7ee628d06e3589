"""Exception classes."""

from typing import Any


class PyReqChainError(Exception):
    """Base class for all pyreqchain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class TransportError(PyReqChainError):
    """The transport failed to produce a response."""

    @classmethod
    def from_exception(cls, exc: BaseException, message: str | None = None) -> "TransportError":
        """Wrap an underlying transport exception. Caller should chain it with `raise ... from exc`."""
        return cls(message or str(exc) or type(exc).__name__, {"causes": _exception_causes(exc)})


class ConnectError(TransportError):
    """Connection could not be established."""


class ConnectTimeoutError(TransportError, TimeoutError):
    """Timed out while connecting."""


class ReadTimeoutError(TransportError, TimeoutError):
    """Timed out while reading the response."""


class WriteTimeoutError(TransportError, TimeoutError):
    """Timed out while sending the request."""


class PoolTimeoutError(TransportError, TimeoutError):
    """Timed out while waiting for a connection from the pool."""


class RedirectError(PyReqChainError):
    """Base class for redirect handling errors."""


class TooManyRedirectsError(RedirectError):
    """Response was still a redirect after the maximum number of redirects was followed."""

    def __init__(self, url: str, attempted_count: int) -> None:
        super().__init__(
            f"Too many redirects for {url}: {attempted_count} redirect(s) followed",
            {"url": url, "attempted_count": attempted_count},
        )
        self.url = url
        self.attempted_count = attempted_count


class RedirectLocationMissingError(RedirectError):
    """Redirect response without a Location header."""

    def __init__(self, url: str, status: int) -> None:
        super().__init__(
            f"Redirect response from {url} (status {status}) is missing the Location header",
            {"url": url, "status": status},
        )
        self.url = url
        self.status = status


class RedirectLocationInvalidError(RedirectError):
    """Redirect Location header could not be parsed as an URL."""

    def __init__(self, raw_value: str) -> None:
        super().__init__(f"The redirect url is invalid: {raw_value}", {"raw_value": raw_value})
        self.raw_value = raw_value


class BuilderError(PyReqChainError, ValueError):
    """Request could not be built (bad URL, header, method or body)."""


class InternalError(PyReqChainError):
    """Unexpected failure inside the library or a user supplied collaborator."""

    @classmethod
    def from_exception(cls, exc: BaseException, message: str) -> "InternalError":
        """Wrap an unexpected exception. Caller should chain it with `raise ... from exc`."""
        return cls(message, {"causes": _exception_causes(exc)})


def _exception_causes(exc: BaseException) -> list[str]:
    causes: list[str] = []
    current: BaseException | None = exc
    while current is not None and len(causes) < 10:
        causes.append(repr(current))
        current = current.__cause__ or current.__context__
    return causes
