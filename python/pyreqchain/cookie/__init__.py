"""Cookie handling interfaces."""

from pyreqchain.cookie.types import CookieProvider

__all__ = ["CookieProvider"]
