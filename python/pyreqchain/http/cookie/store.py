"""Concurrent in-memory cookie store."""

import logging
import threading
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime, timedelta

import httpx

from pyreqchain.http.cookie.cookie import Cookie
from pyreqchain.http.url import parse_url
from pyreqchain.types import UrlType

logger = logging.getLogger(__name__)

# Path key used for every cookie when the store ignores paths
ANY_PATH = ""


def domain_match(cookie_domain: str, request_host: str) -> bool:
    """Check whether a cookie stored for `cookie_domain` may be sent to `request_host`.

    The relation is one-directional, a cookie domain matches itself and its subdomains only:
    - www.google.com matches cookie domain www.google.com
    - www.google.com matches cookie domain .google.com
    - img.static.google.com matches cookie domain static.google.com
    - google.com does not match cookie domain www.google.com
    - abc.google.com does not match cookie domain c.google.com
    """
    cookie_domain = cookie_domain.lower()
    request_host = request_host.lower()

    if cookie_domain == request_host:
        return True
    if cookie_domain.startswith("."):
        return request_host == cookie_domain[1:] or request_host.endswith(cookie_domain)
    return request_host.endswith(f".{cookie_domain}")


class _DomainBucket:
    """Cookies of a single domain: path -> name -> cookie. Guarded by its own lock."""

    __slots__ = ("lock", "paths")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.paths: dict[str, dict[str, Cookie]] = {}

    def upsert(self, path: str, cookie: Cookie) -> None:
        with self.lock:
            self.paths.setdefault(path, {})[cookie.name] = cookie

    def get(self, path: str, name: str) -> Cookie | None:
        with self.lock:
            return self.paths.get(path, {}).get(name)

    def pop(self, path: str, name: str) -> Cookie | None:
        with self.lock:
            cookies = self.paths.get(path)
            if cookies is None:
                return None
            cookie = cookies.pop(name, None)
            if not cookies:
                del self.paths[path]
            return cookie

    def cookies(self, path: str | None = None) -> list[Cookie]:
        with self.lock:
            if path is not None:
                return list(self.paths.get(path, {}).values())
            return [cookie for cookies in self.paths.values() for cookie in cookies.values()]

    def items(self) -> list[tuple[str, Cookie]]:
        with self.lock:
            return [(path, cookie) for path, cookies in self.paths.items() for cookie in cookies.values()]

    def evict_expired(self, now: datetime) -> int:
        evicted = 0
        with self.lock:
            for path in list(self.paths):
                cookies = self.paths[path]
                for name in [name for name, cookie in cookies.items() if cookie.is_expired(now)]:
                    del cookies[name]
                    evicted += 1
                if not cookies:
                    del self.paths[path]
        return evicted


class CookieStore:
    """Thread-safe in-memory cookie store indexed by domain, path and cookie name.

    Every domain has its own lock, so reading cookies of one domain is never blocked by a write to another one.
    Methods are synchronous and never hold a lock across an await, the store can be shared between any number of
    concurrent requests, threads and event loops.

    Args:
        ignore_path: Match cookies by domain only. Paths are not stored nor compared.
        skip_expiry_check: Keep and send cookies regardless of their Expires and Max-Age attributes.
        ignore_secure: Send Secure cookies also over plain http.
    """

    def __init__(self, *, ignore_path: bool = False, skip_expiry_check: bool = False, ignore_secure: bool = False):
        self._ignore_path = ignore_path
        self._skip_expiry_check = skip_expiry_check
        self._ignore_secure = ignore_secure
        self._domains: dict[str, _DomainBucket] = {}
        self._index_lock = threading.Lock()

    @property
    def ignore_path(self) -> bool:
        return self._ignore_path

    @property
    def skip_expiry_check(self) -> bool:
        return self._skip_expiry_check

    @property
    def ignore_secure(self) -> bool:
        return self._ignore_secure

    def store_cookies(self, cookies: Iterable[Cookie], url: UrlType) -> None:
        """Store cookies as if set by a response from url.

        Cookies carrying Max-Age<=0 or an Expires in the past remove their stored counterpart instead.
        """
        url = parse_url(url)
        now = datetime.now(UTC)

        for cookie in cookies:
            if cookie.http_only and url.scheme not in ("http", "https"):
                logger.debug("Ignoring HttpOnly cookie %r set from non-HTTP url %s", cookie.name, url)
                continue

            if not self._skip_expiry_check:
                if cookie.max_age is not None:
                    if cookie.max_age <= timedelta(0):
                        self.remove(cookie, url)
                        continue
                    cookie = cookie.with_expires_datetime(now + cookie.max_age).with_max_age(None)
                elif cookie.is_expired(now):
                    self.remove(cookie, url)
                    continue

            domain = self._resolve_domain(cookie, url)
            if domain is None:
                logger.debug("Ignoring cookie %r without domain for url %s", cookie.name, url)
                continue

            self._bucket(domain).upsert(self._resolve_path(cookie, url), cookie)

    def insert(self, cookie: Cookie | str, request_url: UrlType) -> None:
        """Insert a cookie as if set by a response for request_url."""
        self.store_cookies([Cookie.parse(cookie) if isinstance(cookie, str) else cookie], request_url)

    def set_cookies(self, cookies: Iterable[Cookie | str], origin_url: str) -> None:
        """Store cookies manually for origin_url. Raises BuilderError if the URL is invalid."""
        self.store_cookies(
            [Cookie.parse(cookie) if isinstance(cookie, str) else cookie for cookie in cookies], parse_url(origin_url)
        )

    def cookies_for(self, url: UrlType) -> list[str]:
        """Return the encoded 'name=value' pairs of all cookies to be sent to url."""
        return [cookie.encoded_stripped() for cookie in self.matches(url)]

    def header_value(self, url: UrlType) -> str | None:
        """Return the Cookie request header value for url, or None if no cookie matches."""
        cookies = self.cookies_for(url)
        return "; ".join(cookies) if cookies else None

    def matches(self, url: UrlType) -> list[Cookie]:
        """Return the cookies that domain- and path-match url and whose Secure attribute is compatible with it."""
        url = parse_url(url)
        if not url.host:
            return []
        if not self._skip_expiry_check:
            self.remove_expired()

        path = ANY_PATH if self._ignore_path else url.path
        skip_secure = not self._ignore_secure and url.scheme != "https"

        return [
            cookie
            for _, bucket in self._matching_buckets(url.host)
            for cookie in bucket.cookies(path)
            if not (skip_secure and cookie.secure)
        ]

    def remove(self, cookie: Cookie | str, url: UrlType) -> None:
        """Remove the cookie with this name from every bucket its domain (and path) resolves to for url."""
        if isinstance(cookie, str):
            cookie = Cookie.parse(cookie)
        url = parse_url(url)

        domain = self._resolve_domain(cookie, url)
        if domain is None:
            return
        path = self._resolve_path(cookie, url)

        for bucket_domain, bucket in self._matching_buckets(domain):
            if bucket.pop(path, cookie.name) is not None:
                logger.debug("Removed cookie %r from %s%s", cookie.name, bucket_domain, path)

    def remove_expired(self) -> int:
        """Evict every cookie whose expiry has passed. Returns the number of evicted cookies."""
        now = datetime.now(UTC)
        return sum(bucket.evict_expired(now) for _, bucket in self._snapshot())

    def contains(self, domain: str, path: str, name: str) -> bool:
        """Whether the store contains an unexpired cookie for the domain, path and name."""
        return self.get(domain, path, name) is not None

    def contains_any(self, domain: str, path: str, name: str) -> bool:
        """Whether the store contains any (even an expired) cookie for the domain, path and name."""
        return self.get_any(domain, path, name) is not None

    def get(self, domain: str, path: str, name: str) -> Cookie | None:
        """Return the unexpired cookie for the domain, path and name."""
        cookie = self.get_any(domain, path, name)
        return None if cookie is None or cookie.is_expired() else cookie

    def get_any(self, domain: str, path: str, name: str) -> Cookie | None:
        """Return the (possibly expired) cookie for the domain, path and name."""
        bucket = self._bucket(domain, create=False)
        return bucket.get(self._path_key(path), name) if bucket is not None else None

    def pop(self, domain: str, path: str, name: str) -> Cookie | None:
        """Remove the cookie for the exact domain, path and name, returning it if it was in the store."""
        bucket = self._bucket(domain, create=False)
        return bucket.pop(self._path_key(path), name) if bucket is not None else None

    def clear(self) -> None:
        """Remove all cookies from the store."""
        with self._index_lock:
            self._domains = {}

    def get_all_unexpired(self) -> list[Cookie]:
        """Return all unexpired cookies currently stored."""
        now = datetime.now(UTC)
        return [cookie for cookie in self.get_all_any() if not cookie.is_expired(now)]

    def get_all_any(self) -> list[Cookie]:
        """Return all cookies in the store, including expired ones."""
        return [cookie for _, bucket in self._snapshot() for cookie in bucket.cookies()]

    def serialize(self) -> list[tuple[Cookie, str]]:
        """Return every stored cookie along with an origin URL it can be restored from with `set_cookies`.

        The URL scheme is inferred from the cookie's Secure attribute, not from the URL that originally set it.
        """
        result = []
        for domain, bucket in self._snapshot():
            for path, cookie in bucket.items():
                scheme = "https" if cookie.secure else "http"
                result.append((cookie, f"{scheme}://{domain.lstrip('.')}{path}"))
        return result

    def __len__(self) -> int:
        return sum(len(bucket.cookies()) for _, bucket in self._snapshot())

    def __iter__(self) -> Iterator[Cookie]:
        return iter(self.get_all_any())

    def __repr__(self) -> str:
        return f"CookieStore({self.get_all_any()!r})"

    def _resolve_domain(self, cookie: Cookie, url: httpx.URL) -> str | None:
        domain = (cookie.domain or "").strip().lower() or url.host
        return domain or None

    def _resolve_path(self, cookie: Cookie, url: httpx.URL) -> str:
        if self._ignore_path:
            return ANY_PATH
        return cookie.path or url.path

    def _path_key(self, path: str) -> str:
        return ANY_PATH if self._ignore_path else path

    def _bucket(self, domain: str, create: bool = True) -> _DomainBucket | None:
        domain = domain.strip().lower()
        with self._index_lock:
            bucket = self._domains.get(domain)
            if bucket is None and create:
                bucket = self._domains[domain] = _DomainBucket()
            return bucket

    def _snapshot(self) -> list[tuple[str, _DomainBucket]]:
        with self._index_lock:
            return list(self._domains.items())

    def _matching_buckets(self, host: str) -> list[tuple[str, _DomainBucket]]:
        return [(domain, bucket) for domain, bucket in self._snapshot() if domain_match(domain, host)]
