import logging
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from pyreqchain.client import ClientBuilder
from pyreqchain.exceptions import InternalError, ReadTimeoutError, TooManyRedirectsError, TransportError
from pyreqchain.http import Extensions
from pyreqchain.middleware import Next, RetryMiddleware
from pyreqchain.request import Request
from pyreqchain.response import Response
from pyreqchain.retry import DoNotRetry, ExponentialBackoff, Retry, RetryDecision
from pyreqchain.transport import ASGITransport

from tests.servers.echo_server import ECHO_URL
from tests.servers.httpbin_app import HTTPBIN_URL
from tests.utils import FailingTransport, ImmediateRetries, NoSleep, RecordingTransport


async def test_retries_until_success(echo_transport: ASGITransport) -> None:
    transport = FailingTransport(echo_transport, failures=2)
    policy = ImmediateRetries(3)
    client = ClientBuilder().transport(transport).retry_policy(policy).build()

    resp = await client.get(ECHO_URL).send()

    assert resp.status == 200
    assert transport.calls == 3
    assert policy.calls == [0, 1]


async def test_gives_up(echo_transport: ASGITransport) -> None:
    transport = FailingTransport(echo_transport, failures=5)
    policy = ImmediateRetries(2)
    client = ClientBuilder().transport(transport).retry_policy(policy).build()

    with pytest.raises(TransportError, match="connection reset"):
        await client.get(ECHO_URL).send()

    assert transport.calls == 3
    assert policy.calls == [0, 1, 2]


async def test_retry_resends_body(echo_transport: ASGITransport) -> None:
    transport = FailingTransport(echo_transport, failures=1)
    client = ClientBuilder().transport(transport).retry_policy(ImmediateRetries(1)).build()

    resp = await client.post(ECHO_URL).body_text("payload").header("X-Test", "val").send()

    data = await resp.json()
    assert data["body"] == "payload"
    assert ["x-test", "val"] in data["headers"]
    assert transport.requests[0] is not transport.requests[1]
    assert [r.body.copy_bytes() for r in transport.requests if r.body is not None] == [b"payload", b"payload"]


async def test_every_retry_sends_fresh_copy(echo_transport: ASGITransport) -> None:
    class MutatingTransport(FailingTransport):
        async def execute(self, request: Request) -> Response:
            request.headers["X-Attempt"] = str(self.calls)
            return await super().execute(request)

    transport = MutatingTransport(echo_transport, failures=2)
    client = ClientBuilder().transport(transport).retry_policy(ImmediateRetries(2)).build()

    resp = await client.put(ECHO_URL).body_bytes(b"data").send()

    assert (await resp.json())["body"] == "data"
    assert len({id(r) for r in transport.requests}) == 3
    assert [r.headers.get_list("x-attempt") for r in transport.requests] == [["0"], ["1"], ["2"]]


async def test_timeout_errors_retried(echo_transport: ASGITransport) -> None:
    transport = FailingTransport(echo_transport, failures=1, error=ReadTimeoutError("read timed out"))
    client = ClientBuilder().transport(transport).retry_policy(ImmediateRetries(1)).build()

    assert (await client.get(ECHO_URL).send()).status == 200
    assert transport.calls == 2


async def test_error_status_not_retried(echo_transport: ASGITransport) -> None:
    transport = RecordingTransport(echo_transport)
    policy = ImmediateRetries(3)
    client = ClientBuilder().transport(transport).retry_policy(policy).build()

    resp = await client.get(ECHO_URL).query({"status": 503}).send()

    assert resp.status == 503
    assert transport.calls == 1
    assert policy.calls == []


class ServerErrorsAsFailures(RecordingTransport):
    async def execute(self, request: Request) -> Response:
        response = await super().execute(request)
        if response.status >= 500:
            raise TransportError(f"server error {response.status}")
        return response


async def test_error_status_retried_with_transport_wrapper(echo_transport: ASGITransport) -> None:
    transport = ServerErrorsAsFailures(echo_transport)
    client = ClientBuilder().transport(transport).retry_policy(ImmediateRetries(2)).build()

    with pytest.raises(TransportError, match="server error 503"):
        await client.get(ECHO_URL).query({"status": 503}).send()
    assert transport.calls == 3

    assert (await client.get(ECHO_URL).query({"status": 404}).send()).status == 404
    assert transport.calls == 4


async def test_stream_body_sent_once(echo_transport: ASGITransport) -> None:
    transport = FailingTransport(echo_transport, failures=1)
    policy = ImmediateRetries(3)
    client = ClientBuilder().transport(transport).retry_policy(policy).build()

    async def stream() -> AsyncGenerator[bytes]:
        yield b"part"

    with pytest.raises(TransportError):
        await client.post(ECHO_URL).body_stream(stream()).send()

    assert transport.calls == 1
    assert policy.calls == []


async def test_backoff_delays(echo_transport: ASGITransport) -> None:
    transport = FailingTransport(echo_transport, failures=3)
    sleep = NoSleep()
    policy = ExponentialBackoff(max_retries=3, min_interval=timedelta(seconds=1), jitter="none")
    client = ClientBuilder().transport(transport).build()

    resp = await client.get(ECHO_URL).with_middleware(RetryMiddleware(policy, sleep=sleep)).send()

    assert resp.status == 200
    assert sleep.delays == [pytest.approx(1, abs=0.5), pytest.approx(2, abs=0.5), pytest.approx(4, abs=0.5)]


async def test_retry_times_shorthand(echo_transport: ASGITransport) -> None:
    client = ClientBuilder().transport(echo_transport).retry_times(2).build()
    assert isinstance(client.retry_policy, ExponentialBackoff)
    assert client.retry_policy.max_retries == 2


async def test_too_many_redirects_not_retried(httpbin_transport: RecordingTransport) -> None:
    policy = ImmediateRetries(3)
    client = ClientBuilder().transport(httpbin_transport).retry_policy(policy).max_redirects(1).build()

    with pytest.raises(TooManyRedirectsError):
        await client.get(f"{HTTPBIN_URL}redirect/3").send()

    assert httpbin_transport.calls == 2
    assert policy.calls == []


async def test_too_many_redirects_reraised_inside_retry(httpbin_transport: RecordingTransport) -> None:
    policy = ImmediateRetries(3)
    client = ClientBuilder().transport(httpbin_transport).max_redirects(0).build()

    with pytest.raises(TooManyRedirectsError) as e:
        await (
            client.get(f"{HTTPBIN_URL}redirect/3")
            .with_middleware(RetryMiddleware(policy))
            .max_redirects(1)
            .send()
        )

    assert e.value.attempted_count == 1
    assert httpbin_transport.calls == 2
    assert policy.calls == []


async def test_foreign_errors_propagate(echo_transport: ASGITransport) -> None:
    policy = ImmediateRetries(3)

    async def failing(_request: Request, _extensions: Extensions, _next_handler: Next) -> Response:
        raise ValueError("not retried")

    client = ClientBuilder().transport(echo_transport).build()
    with pytest.raises(ValueError, match="not retried"):
        await client.get(ECHO_URL).with_middleware(RetryMiddleware(policy)).with_middleware(failing).send()

    assert policy.calls == []


async def test_request_start_time_is_aware(echo_transport: ASGITransport) -> None:
    start_times: list[datetime] = []

    class Recorder:
        def should_retry(self, request_start_time: datetime, n_past_retries: int) -> RetryDecision:
            start_times.append(request_start_time)
            return DoNotRetry()

    before = datetime.now(UTC)
    client = ClientBuilder().transport(FailingTransport(echo_transport, failures=1)).retry_policy(Recorder()).build()
    with pytest.raises(TransportError):
        await client.get(ECHO_URL).send()

    assert len(start_times) == 1
    assert start_times[0].tzinfo is not None
    assert before <= start_times[0] <= datetime.now(UTC)


@pytest.mark.parametrize(
    "decision",
    [Retry(datetime(2020, 1, 1)), "retry"],  # noqa: DTZ001
)
async def test_invalid_decision(echo_transport: ASGITransport, decision: object) -> None:
    class BadPolicy:
        def should_retry(self, request_start_time: datetime, n_past_retries: int) -> RetryDecision:
            return decision  # type: ignore[return-value]

    client = ClientBuilder().transport(FailingTransport(echo_transport, failures=1)).retry_policy(BadPolicy()).build()
    with pytest.raises(InternalError):
        await client.get(ECHO_URL).send()


async def test_future_execute_after_sleeps(echo_transport: ASGITransport) -> None:
    sleep = NoSleep()

    class InOneMinute:
        def should_retry(self, request_start_time: datetime, n_past_retries: int) -> RetryDecision:
            if n_past_retries:
                return DoNotRetry()
            return Retry(datetime.now(UTC) + timedelta(minutes=1))

    client = ClientBuilder().transport(FailingTransport(echo_transport, failures=1)).build()
    await client.get(ECHO_URL).with_middleware(RetryMiddleware(InOneMinute(), sleep=sleep)).send()

    assert sleep.delays == [pytest.approx(60, abs=1)]


async def test_logs_retries(echo_transport: ASGITransport, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="pyreqchain.middleware.retry")
    client = ClientBuilder().transport(FailingTransport(echo_transport, failures=5)).build()

    with pytest.raises(TransportError):
        await client.get(ECHO_URL).retry_policy(ImmediateRetries(1)).send()

    records = [(r.levelno, r.getMessage()) for r in caplog.records if r.name == "pyreqchain.middleware.retry"]
    assert records == [
        (logging.INFO, f"Retrying GET {ECHO_URL} (retry 1) in 0.000s after TransportError('connection reset')"),
        (logging.WARNING, f"Giving up GET {ECHO_URL} after 1 retries: TransportError('connection reset')"),
    ]


def test_retry_middleware_repr() -> None:
    policy = ImmediateRetries(1)
    assert repr(RetryMiddleware(policy)) == f"RetryMiddleware(policy={policy!r})"
