"""HTTP cookie value type and Set-Cookie parsing."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from email.utils import format_datetime, parsedate_to_datetime
from typing import Literal, Self, TypeAlias, overload
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

SameSite: TypeAlias = Literal["Strict", "Lax", "None"]

_SAME_SITE_VALUES: dict[str, SameSite] = {"strict": "Strict", "lax": "Lax", "none": "None"}

# RFC 6265 cookie-octet, plus the characters the encoder must never touch
_SAFE_CHARS = "!#$&'()*+-./:<=>?@[]^_`{|}~"

# Legacy date layouts still seen in Expires attributes (RFC 6265 5.1.1 is very lenient)
_EXPIRES_FORMATS = (
    "%a, %d-%b-%Y %H:%M:%S GMT",
    "%A, %d-%b-%y %H:%M:%S GMT",
    "%a, %d-%b-%y %H:%M:%S GMT",
    "%a %b %d %H:%M:%S %Y",
)


@dataclass(frozen=True, slots=True, eq=False)
class Cookie(Sequence[str]):
    """An immutable HTTP cookie (name, value, and optional attributes).

    Behaves as a sequence over its `Set-Cookie` rendering, and compares equal to cookies (or strings) that render
    the same way. Use the `with_*` methods or `CookieBuilder` to derive modified cookies.
    """

    name: str
    value: str
    domain: str | None = None
    path: str | None = None
    expires_datetime: datetime | None = None
    max_age: timedelta | None = None
    secure: bool = False
    http_only: bool = False
    same_site: SameSite | None = None
    partitioned: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("cookie name must not be empty")
        if self.same_site is not None and self.same_site not in _SAME_SITE_VALUES.values():
            raise ValueError(f"invalid SameSite value: {self.same_site!r}")
        if self.expires_datetime is not None and self.expires_datetime.tzinfo is None:
            object.__setattr__(self, "expires_datetime", self.expires_datetime.replace(tzinfo=UTC))

    @staticmethod
    def parse(cookie: str) -> "Cookie":
        """Parse a cookie from a `Set-Cookie` header value. Raises ValueError if it is malformed."""
        return _parse(cookie, decode=False)

    @staticmethod
    def parse_encoded(cookie: str) -> "Cookie":
        """Like parse, but does percent-decoding of the name and value."""
        return _parse(cookie, decode=True)

    @staticmethod
    def split_parse(cookie: str) -> list["Cookie"]:
        """Parse a `Cookie` request header, a series of names and values separated by `;`."""
        return [_parse(part, decode=False) for part in cookie.split(";") if part.strip()]

    @staticmethod
    def split_parse_encoded(cookie: str) -> list["Cookie"]:
        """Like split_parse, but does percent-decoding of names and values."""
        return [_parse(part, decode=True) for part in cookie.split(";") if part.strip()]

    @staticmethod
    def parse_set_cookie_headers(headers: Iterable[str]) -> list["Cookie"]:
        """Parse all `Set-Cookie` header values, dropping the malformed ones."""
        cookies = []
        for header in headers:
            try:
                cookies.append(Cookie.parse_encoded(header))
            except ValueError as exc:
                logger.debug("Ignoring invalid Set-Cookie header %r: %s", header, exc)
        return cookies

    @property
    def value_trimmed(self) -> str:
        return self.value.strip()

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether the Expires attribute is at or before `now`. Max-Age is not considered."""
        if self.expires_datetime is None:
            return False
        return (now or datetime.now(UTC)) >= self.expires_datetime

    def stripped(self) -> str:
        """Return just the 'name=value' pair."""
        return f"{self.name}={self.value}"

    def encoded_stripped(self) -> str:
        """Return the percent-encoded 'name=value' pair, as sent in a `Cookie` request header."""
        return f"{quote(self.name, safe=_SAFE_CHARS)}={quote(self.value, safe=_SAFE_CHARS)}"

    def encode(self) -> str:
        """Return the cookie string with percent-encoding applied to the name and value."""
        return self._render(self.encoded_stripped())

    def with_name(self, name: str) -> Self:
        return replace(self, name=name)

    def with_value(self, value: str) -> Self:
        return replace(self, value=value)

    def with_domain(self, domain: str | None) -> Self:
        return replace(self, domain=domain)

    def with_path(self, path: str | None) -> Self:
        return replace(self, path=path)

    def with_expires_datetime(self, expires: datetime | None) -> Self:
        return replace(self, expires_datetime=expires)

    def with_max_age(self, max_age: timedelta | None) -> Self:
        return replace(self, max_age=max_age)

    def with_secure(self, secure: bool) -> Self:
        return replace(self, secure=secure)

    def with_http_only(self, http_only: bool) -> Self:
        return replace(self, http_only=http_only)

    def with_same_site(self, same_site: SameSite | None) -> Self:
        return replace(self, same_site=same_site)

    def with_partitioned(self, partitioned: bool) -> Self:
        return replace(self, partitioned=partitioned)

    def _render(self, pair: str) -> str:
        parts = [pair]
        if self.http_only:
            parts.append("HttpOnly")
        if self.same_site is not None:
            parts.append(f"SameSite={self.same_site}")
        if self.partitioned:
            parts.append("Partitioned")
        if self.secure:
            parts.append("Secure")
        if self.path is not None:
            parts.append(f"Path={self.path}")
        if self.domain is not None:
            parts.append(f"Domain={self.domain}")
        if self.max_age is not None:
            parts.append(f"Max-Age={int(self.max_age.total_seconds())}")
        if self.expires_datetime is not None:
            parts.append(f"Expires={format_datetime(self.expires_datetime.astimezone(UTC), usegmt=True)}")
        return "; ".join(parts)

    def __str__(self) -> str:
        return self._render(self.stripped())

    def __repr__(self) -> str:
        return f"Cookie({str(self)!r})"

    def __hash__(self) -> int:
        return hash(str(self))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Cookie | str):
            return str(self) == str(other)
        if type(other).__str__ is not object.__str__:
            return str(self) == str(other)
        return NotImplemented

    def __ne__(self, other: object) -> bool:
        eq = self.__eq__(other)
        return eq if eq is NotImplemented else not eq

    def __copy__(self) -> Self:
        return replace(self)

    def __len__(self) -> int:
        return len(str(self))

    @overload
    def __getitem__(self, index: int) -> str: ...
    @overload
    def __getitem__(self, index: slice) -> str: ...
    def __getitem__(self, index: int | slice) -> str:
        return str(self)[index]

    def __contains__(self, value: object) -> bool:
        return isinstance(value, str) and value in str(self)

    def index(self, value: str, start: int = 0, stop: int | None = None) -> int:  # type: ignore[override]
        return str(self).index(value, start, stop)

    def count(self, value: str) -> int:  # type: ignore[override]
        return str(self).count(value)


class CookieBuilder:
    """Fluent builder for Cookie instances."""

    def __init__(self, name: str, value: str) -> None:
        self._cookie = Cookie(name, value)

    @staticmethod
    def from_cookie(cookie: Cookie | str) -> "CookieBuilder":
        """Start a builder pre-populated from an existing cookie."""
        builder = CookieBuilder.__new__(CookieBuilder)
        builder._cookie = Cookie.parse(cookie) if isinstance(cookie, str) else cookie
        return builder

    def build(self) -> Cookie:
        return self._cookie

    def expires(self, expires: datetime | None) -> Self:
        self._cookie = self._cookie.with_expires_datetime(expires)
        return self

    def max_age(self, max_age: timedelta | None) -> Self:
        self._cookie = self._cookie.with_max_age(max_age)
        return self

    def domain(self, domain: str) -> Self:
        self._cookie = self._cookie.with_domain(domain)
        return self

    def path(self, path: str) -> Self:
        self._cookie = self._cookie.with_path(path)
        return self

    def secure(self, secure: bool) -> Self:
        self._cookie = self._cookie.with_secure(secure)
        return self

    def http_only(self, http_only: bool) -> Self:
        self._cookie = self._cookie.with_http_only(http_only)
        return self

    def same_site(self, same_site: SameSite) -> Self:
        self._cookie = self._cookie.with_same_site(same_site)
        return self

    def partitioned(self, partitioned: bool) -> Self:
        self._cookie = self._cookie.with_partitioned(partitioned)
        return self

    def permanent(self) -> Self:
        """Set an expiration twenty years in the future."""
        self._cookie = self._cookie.with_max_age(timedelta(days=365 * 20)).with_expires_datetime(
            datetime.now(UTC) + timedelta(days=365 * 20)
        )
        return self

    def removal(self) -> Self:
        """Configure as a removal cookie: empty value, zero max-age and an expiry in the past."""
        self._cookie = (
            self._cookie.with_value("")
            .with_max_age(timedelta(0))
            .with_expires_datetime(datetime.now(UTC) - timedelta(days=365))
        )
        return self


def _parse(cookie: str, *, decode: bool) -> Cookie:
    pair, *attributes = cookie.split(";")
    name, sep, value = pair.partition("=")
    if not sep:
        raise ValueError(f"cookie is missing the '=' separator: {cookie!r}")
    name, value = name.strip(), value.strip()
    if not name:
        raise ValueError(f"cookie name is empty: {cookie!r}")
    if decode:
        name, value = unquote(name), unquote(value)

    attrs: dict[str, object] = {}
    for attribute in attributes:
        key, _, attr_value = attribute.partition("=")
        key, attr_value = key.strip().lower(), attr_value.strip()
        if key == "domain":
            attrs["domain"] = attr_value or None
        elif key == "path":
            attrs["path"] = attr_value if attr_value.startswith("/") else None
        elif key == "expires":
            attrs["expires_datetime"] = _parse_expires(attr_value)
        elif key == "max-age":
            try:
                attrs["max_age"] = timedelta(seconds=int(attr_value))
            except ValueError:
                logger.debug("Ignoring invalid Max-Age %r", attr_value)
        elif key == "secure":
            attrs["secure"] = True
        elif key == "httponly":
            attrs["http_only"] = True
        elif key == "samesite":
            attrs["same_site"] = _SAME_SITE_VALUES.get(attr_value.lower())
        elif key == "partitioned":
            attrs["partitioned"] = True

    return Cookie(name, value, **attrs)  # type: ignore[arg-type]


def _parse_expires(value: str) -> datetime | None:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        parsed = None
        for fmt in _EXPIRES_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        logger.debug("Ignoring invalid Expires %r", value)
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
