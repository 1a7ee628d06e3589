"""Middleware chain and the bundled middlewares."""

from pyreqchain.middleware.next import Next
from pyreqchain.middleware.redirect import RedirectMiddleware
from pyreqchain.middleware.retry import RetryMiddleware
from pyreqchain.middleware.types import Middleware

__all__ = ["Middleware", "Next", "RedirectMiddleware", "RetryMiddleware"]
