"""Cookie types and interfaces."""

from collections.abc import Iterable
from typing import Protocol

from pyreqchain.http import Url
from pyreqchain.http.cookie import Cookie


class CookieProvider(Protocol):
    """Cookie provider that allows custom cookie handling.

    `CookieStore` is the default implementation. The middleware chain calls the provider before every hop to fill
    the `Cookie` request header, and after every hop with the cookies parsed from the `Set-Cookie` response headers.
    Implementations must be safe to call from concurrent requests.
    """

    def store_cookies(self, cookies: Iterable[Cookie], url: Url) -> None:
        """Store cookies received from url.

        Args:
            cookies: Cookies parsed from the Set-Cookie headers of the response
            url: The URL that sent the Set-Cookie headers
        """

    def cookies_for(self, url: Url) -> list[str]:
        """Get cookies for a given URL.

        Args:
            url: The URL for which cookies are requested

        Returns:
            Serialized 'name=value' pairs, joined with '; ' into the Cookie header. Empty list if there are none.
        """
        ...
