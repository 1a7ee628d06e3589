from datetime import datetime

from pyreqchain.exceptions import TransportError
from pyreqchain.request import Request
from pyreqchain.response import Response
from pyreqchain.retry import DoNotRetry, Retry, RetryDecision
from pyreqchain.transport import Transport


class RecordingTransport:
    """Delegates to another transport, recording every request sent."""

    def __init__(self, inner: Transport) -> None:
        self.inner = inner
        self.requests: list[Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def execute(self, request: Request) -> Response:
        self.requests.append(request)
        return await self.inner.execute(request)


class FailingTransport(RecordingTransport):
    """Fails the first `failures` requests, then delegates."""

    def __init__(self, inner: Transport, failures: int, error: Exception | None = None) -> None:
        super().__init__(inner)
        self.failures = failures
        self.error = error if error is not None else TransportError("connection reset")

    async def execute(self, request: Request) -> Response:
        if self.failures > 0:
            self.requests.append(request)
            self.failures -= 1
            raise self.error
        return await super().execute(request)


class ImmediateRetries:
    """Retry policy retrying without waiting, up to max_retries times."""

    def __init__(self, max_retries: int) -> None:
        self.max_retries = max_retries
        self.calls: list[int] = []

    def should_retry(self, request_start_time: datetime, n_past_retries: int) -> RetryDecision:
        self.calls.append(n_past_retries)
        if n_past_retries >= self.max_retries:
            return DoNotRetry()
        return Retry(request_start_time)


class NoSleep:
    """Sleep replacement recording the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
