"""Redirect following middleware."""

import logging

import httpx

from pyreqchain.exceptions import RedirectLocationInvalidError, RedirectLocationMissingError, TooManyRedirectsError
from pyreqchain.http import Extensions, RequestBody
from pyreqchain.middleware.next import Next
from pyreqchain.request import Request
from pyreqchain.response import Response

logger = logging.getLogger(__name__)

# Statuses that must repeat the original method and body
_PRESERVE_METHOD_STATUSES = frozenset({307, 308})


class RedirectMiddleware:
    """Follows 3xx responses up to `max_redirects` times.

    307 and 308 repeat the original method and body, any other redirect status is followed with a bodiless GET.
    The original headers are sent on every hop. Relative Location values are resolved against the original URL.
    Redirected requests are sent directly with the transport, skipping the middlewares after this one, with
    cookies handled on every hop.
    """

    def __init__(self, max_redirects: int) -> None:
        if max_redirects < 0:
            raise ValueError("max_redirects must be >= 0")
        self.max_redirects = max_redirects

    async def __call__(self, request: Request, extensions: Extensions, next_handler: Next) -> Response:
        origin_method = request.method
        origin_headers = request.headers.copy()
        origin_url = request.url
        origin_body = request.body.copy_bytes() if request.body is not None else None

        response = await next_handler.run(request, extensions)
        current_url = response.url if response.url is not None else origin_url
        redirect_count = 0

        while response.is_redirect:
            if redirect_count >= self.max_redirects:
                raise TooManyRedirectsError(str(current_url), redirect_count)

            location = response.headers.get("location")
            if location is None:
                raise RedirectLocationMissingError(str(current_url), response.status)
            target = _resolve_location(origin_url, location)

            if response.status in _PRESERVE_METHOD_STATUSES:
                method = origin_method
                body = RequestBody.from_bytes(origin_body) if origin_body is not None else None
            else:
                method = "GET"
                body = None

            redirect_count += 1
            logger.debug(
                "Following redirect %d/%d (%s): %s %s", redirect_count, self.max_redirects, response.status, method,
                target,
            )
            response = await next_handler.execute(Request(method, target, origin_headers.copy(), body))
            current_url = response.url if response.url is not None else target

        return response

    def __repr__(self) -> str:
        return f"RedirectMiddleware(max_redirects={self.max_redirects})"


def _resolve_location(origin_url: httpx.URL, location: str) -> httpx.URL:
    try:
        target = origin_url.join(location.strip())
    except (httpx.InvalidURL, ValueError, TypeError) as exc:
        raise RedirectLocationInvalidError(location) from exc
    if target.scheme not in ("http", "https") or not target.host:
        raise RedirectLocationInvalidError(location)
    return target
