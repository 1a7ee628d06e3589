"""Rule based request mocking for pyreqchain clients in tests."""

from typing import Any, Self, TypeVar

import pytest

from pyreqchain.client import ClientBuilder
from pyreqchain.http import RequestBody
from pyreqchain.pytest_plugin.internal.matcher import (
    BodyCheck,
    CustomCheck,
    HeadersCheck,
    InternalMatcher,
    MethodCheck,
    PathCheck,
    QueryCheck,
    RequestCheck,
)
from pyreqchain.pytest_plugin.types import (
    BodyContentMatcher,
    CustomHandler,
    CustomMatcher,
    JsonMatcher,
    Matcher,
    MethodMatcher,
    QueryMatcher,
    UrlMatcher,
)
from pyreqchain.request import Request
from pyreqchain.response import Response, ResponseBuilder
from pyreqchain.transport import HttpxTransport, Transport

_C = TypeVar("_C", bound=RequestCheck)

_EXCLUSIVE_RESPONSE_MSG = "Cannot use response builder and custom handler together"


class Mock:
    """A single rule: request checks, plus the response (or error) served when all of them pass.

    Created with ClientMocker.mock() or one of its per-method shorthands. Every match_* call narrows the rule,
    every with_* call shapes the response.
    """

    def __init__(self, method: MethodMatcher | None = None, path: UrlMatcher | None = None) -> None:
        self._checks: dict[type[RequestCheck], RequestCheck] = {}
        if method is not None:
            self._checks[MethodCheck] = MethodCheck(method)
        if path is not None:
            self._checks[PathCheck] = PathCheck(path)

        self._responder: ResponseBuilder | CustomHandler | None = None
        self._error: Exception | None = None

        self._matched_requests: list[Request] = []
        self._unmatched_requests_repr_parts: list[dict[str, str | None]] = []

    # Expectations

    def assert_called(
        self,
        *,
        count: int | None = None,
        min_count: int | None = None,
        max_count: int | None = None,
    ) -> None:
        """Assert how many requests this rule served. Without arguments, exactly one."""
        __tracebackhide__ = True
        if count is None and min_count is None and max_count is None:
            count = 1

        calls = self.get_call_count()
        if count is not None:
            ok = calls == count
        else:
            ok = (min_count is None or calls >= min_count) and (max_count is None or calls <= max_count)
        if ok:
            return

        from pyreqchain.pytest_plugin.internal.assert_message import assert_fail

        assert_fail(self, count=count, min_count=min_count, max_count=max_count)

    def get_requests(self) -> list[Request]:
        """Requests served by this rule, oldest first."""
        return list(self._matched_requests)

    def get_call_count(self) -> int:
        return len(self._matched_requests)

    def reset_requests(self) -> None:
        self._matched_requests.clear()
        self._unmatched_requests_repr_parts.clear()

    # Request matching

    def match_query(self, query: QueryMatcher) -> Self:
        """Match the query. A dict matches the given parameters, anything else the whole query."""
        check = self._check(QueryCheck)
        if isinstance(query, dict):
            for name, value in query.items():
                check.set_param(name, value)
        else:
            check.set_whole(query)
        return self

    def match_query_param(self, name: str, value: Matcher | list[str]) -> Self:
        """Match a single query parameter. Repeated parameters compare as a list."""
        self._check(QueryCheck).set_param(name, value)
        return self

    def match_header(self, name: str, value: Matcher) -> Self:
        self._check(HeadersCheck).headers[name] = InternalMatcher(value)
        return self

    def match_body(self, matcher: BodyContentMatcher) -> Self:
        """Match the raw body. Bytes compare against bytes, anything else against the decoded text."""
        self._checks[BodyCheck] = BodyCheck(matcher, "content")
        return self

    def match_body_json(self, matcher: JsonMatcher) -> Self:
        """Match the body parsed as JSON."""
        self._checks[BodyCheck] = BodyCheck(matcher, "json")
        return self

    def match_request(self, matcher: CustomMatcher) -> Self:
        """Match with an async predicate over the whole request."""
        self._checks[CustomCheck] = CustomCheck(matcher)
        return self

    def match_request_with_response(self, handler: CustomHandler) -> Self:
        """Build the response with an async handler. Returning None counts as no match."""
        assert not isinstance(self._responder, ResponseBuilder), _EXCLUSIVE_RESPONSE_MSG
        self._responder = handler
        return self

    # Response

    def with_status(self, status: int) -> Self:
        self._builder().status(status)
        return self

    def with_header(self, name: str, value: str) -> Self:
        self._builder().header(name, value)
        return self

    def with_body_bytes(self, body: bytes | bytearray | memoryview) -> Self:
        self._builder().body_bytes(body)
        return self

    def with_body_text(self, body: str) -> Self:
        self._builder().body_text(body)
        return self

    def with_body_json(self, json_body: Any) -> Self:
        self._builder().body_json(json_body)
        return self

    def with_version(self, version: str) -> Self:
        self._builder().version(version)
        return self

    def with_error(self, error: Exception) -> Self:
        """Raise error instead of responding, for example a TransportError to exercise retries."""
        self._error = error
        return self

    async def _handle(self, request: Request) -> Response | None:
        failed = {check.part for check in self._checks.values() if not await check.matches(request)}

        response: Response | None = None
        if not failed:
            if self._responder is None or isinstance(self._responder, ResponseBuilder):
                response = self._builder().build()
            elif (response := await self._responder(request)) is None:
                failed.add("handler")

        if response is None:
            from pyreqchain.pytest_plugin.internal.assert_message import format_unmatched_request_parts

            self._unmatched_requests_repr_parts.append(format_unmatched_request_parts(request, unmatched=failed))
            return None

        self._matched_requests.append(request)
        if self._error is not None:
            raise self._error
        if response.url is None:
            response.url = request.url
        return response

    def _check(self, check_type: type[_C]) -> _C:
        if check_type not in self._checks:
            self._checks[check_type] = check_type()
        check = self._checks[check_type]
        assert isinstance(check, check_type)
        return check

    def _builder(self) -> ResponseBuilder:
        if self._responder is None:
            self._responder = ResponseBuilder()
        assert isinstance(self._responder, ResponseBuilder), _EXCLUSIVE_RESPONSE_MSG
        return self._responder

    def _sorted_checks(self) -> list[RequestCheck]:
        return sorted(self._checks.values(), key=lambda check: check.order)


class ClientMocker:
    """Registry of mock rules, shared by every client built while the client_mocker fixture is active.

    Rules are tried in registration order and the first matching one serves the request.
    """

    def __init__(self) -> None:
        self._mocks: list[Mock] = []
        self._strict = False

    def mock(self, method: MethodMatcher | None = None, path: UrlMatcher | None = None) -> Mock:
        """Register a rule. None matches any method or path."""
        rule = Mock(method, path)
        self._mocks.append(rule)
        return rule

    def get(self, path: UrlMatcher | None = None) -> Mock:
        return self.mock("GET", path)

    def post(self, path: UrlMatcher | None = None) -> Mock:
        return self.mock("POST", path)

    def put(self, path: UrlMatcher | None = None) -> Mock:
        return self.mock("PUT", path)

    def patch(self, path: UrlMatcher | None = None) -> Mock:
        return self.mock("PATCH", path)

    def delete(self, path: UrlMatcher | None = None) -> Mock:
        return self.mock("DELETE", path)

    def head(self, path: UrlMatcher | None = None) -> Mock:
        return self.mock("HEAD", path)

    def options(self, path: UrlMatcher | None = None) -> Mock:
        return self.mock("OPTIONS", path)

    def strict(self, enabled: bool = True) -> Self:
        """In strict mode a request matching no rule fails the test instead of reaching the real transport."""
        self._strict = enabled
        return self

    def get_requests(self) -> list[Request]:
        """Requests served by any rule, grouped by rule."""
        return [request for rule in self._mocks for request in rule.get_requests()]

    def get_call_count(self) -> int:
        return sum(rule.get_call_count() for rule in self._mocks)

    def clear(self) -> None:
        """Remove all rules."""
        self._mocks.clear()

    def reset_requests(self) -> None:
        for rule in self._mocks:
            rule.reset_requests()

    def transport(self, fallback: Transport | None = None) -> "MockTransport":
        """Transport serving from these rules, sending unmatched requests to fallback."""
        return MockTransport(self, fallback)


class MockTransport:
    """Transport serving responses from the rules of a ClientMocker."""

    def __init__(self, mocker: ClientMocker, fallback: Transport | None = None) -> None:
        self._mocker = mocker
        self._fallback = fallback

    async def execute(self, request: Request) -> Response:
        if request.body is not None and request.body.is_stream:
            # Body checks need the whole content
            request.body = RequestBody.from_bytes(await request.body.read_all())

        for rule in self._mocker._mocks:
            if (response := await rule._handle(request)) is not None:
                return response

        if self._mocker._strict or self._fallback is None:
            raise AssertionError(f"No mock rule matched request: {request.method} {request.url}")
        return await self._fallback.execute(request)

    async def aclose(self) -> None:
        aclose = getattr(self._fallback, "aclose", None)
        if aclose is not None:
            await aclose()

    def __repr__(self) -> str:
        return f"MockTransport(rules={len(self._mocker._mocks)}, fallback={self._fallback!r})"


@pytest.fixture
def client_mocker(monkeypatch: pytest.MonkeyPatch) -> ClientMocker:
    """Mock the transport of every client built while the fixture is active.

    The builder's own transport, or a default HttpxTransport, receives the requests no rule matches.
    Clients built before the fixture runs are not affected.
    """
    mocker = ClientMocker()
    build = ClientBuilder.build

    def build_mocked(self: ClientBuilder) -> Any:
        own_transport = self._transport
        self._transport = mocker.transport(own_transport if own_transport is not None else HttpxTransport())
        try:
            return build(self)
        finally:
            self._transport = own_transport

    monkeypatch.setattr(ClientBuilder, "build", build_mocked)
    return mocker
