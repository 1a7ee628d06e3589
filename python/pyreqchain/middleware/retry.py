"""Retrying middleware."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from pyreqchain.exceptions import InternalError, PyReqChainError, TooManyRedirectsError
from pyreqchain.http import Extensions
from pyreqchain.middleware.next import Next
from pyreqchain.request import Request
from pyreqchain.response import Response
from pyreqchain.retry.types import DoNotRetry, Retry, RetryPolicy

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[object]]


class RetryMiddleware:
    """Re-sends the request when it fails with a library error, as long as the policy allows.

    Requests with a stream body are sent once, without retries. TooManyRedirectsError is never retried and errors
    not raised by the library propagate immediately. Retries are sent directly with the transport, skipping the
    middlewares after this one. Only errors are retried, responses of any status are returned as is.
    """

    def __init__(self, policy: RetryPolicy, *, sleep: Sleep = asyncio.sleep) -> None:
        self.policy = policy
        self._sleep = sleep

    async def __call__(self, request: Request, extensions: Extensions, next_handler: Next) -> Response:
        original = request.try_clone()
        if original is None:
            logger.debug("Request %s %s has a stream body, not retrying", request.method, request.url)
            return await next_handler.run(request, extensions)

        start_time = datetime.now(UTC)
        try:
            return await next_handler.run(request, extensions)
        except TooManyRedirectsError:
            raise
        except PyReqChainError as exc:
            error = exc

        n_past_retries = 0
        while True:
            delay = self._next_delay(start_time, n_past_retries)
            if delay is None:
                logger.warning(
                    "Giving up %s %s after %d retries: %r", request.method, request.url, n_past_retries, error
                )
                raise error

            n_past_retries += 1
            logger.info(
                "Retrying %s %s (retry %d) in %.3fs after %r",
                request.method,
                request.url,
                n_past_retries,
                delay,
                error,
            )
            await self._sleep(delay)

            try:
                return await next_handler.execute(original.copy())
            except TooManyRedirectsError:
                raise
            except PyReqChainError as exc:
                error = exc

    def _next_delay(self, start_time: datetime, n_past_retries: int) -> float | None:
        decision = self.policy.should_retry(start_time, n_past_retries)
        if isinstance(decision, DoNotRetry):
            return None
        if not isinstance(decision, Retry):
            raise InternalError(f"Retry policy returned an unknown decision: {decision!r}")
        if decision.execute_after.tzinfo is None:
            raise InternalError(f"Retry policy returned a naive datetime: {decision.execute_after!r}")
        return max(0.0, (decision.execute_after - datetime.now(UTC)).total_seconds())

    def __repr__(self) -> str:
        return f"RetryMiddleware(policy={self.policy!r})"
