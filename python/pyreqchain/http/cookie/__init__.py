"""Cookie related classes."""

from pyreqchain.http.cookie.cookie import Cookie, CookieBuilder, SameSite
from pyreqchain.http.cookie.store import CookieStore, domain_match

__all__ = ["Cookie", "CookieBuilder", "CookieStore", "SameSite", "domain_match"]
