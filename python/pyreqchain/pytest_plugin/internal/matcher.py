from re import Pattern
from typing import Any, ClassVar, Literal

import httpx
import orjson

from pyreqchain.pytest_plugin.types import CustomMatcher
from pyreqchain.request import Request


class InternalMatcher:
    """Uniform matching over plain values, regex patterns, sets of alternatives and dirty-equals matchers."""

    def __init__(self, matcher: Any) -> None:
        self.matcher = matcher

    def matches(self, value: Any) -> bool:
        if isinstance(self.matcher, Pattern):
            return isinstance(value, str) and self.matcher.fullmatch(value) is not None
        if isinstance(self.matcher, set | frozenset):
            return value in self.matcher
        if isinstance(self.matcher, httpx.URL):
            return str(self.matcher) == str(value)
        return bool(self.matcher == value)

    def __repr__(self) -> str:
        if isinstance(self.matcher, Pattern):
            return f"{self.matcher.pattern} (regex)"
        if isinstance(self.matcher, set | frozenset):
            return " or ".join(sorted(map(str, self.matcher)))
        return str(self.matcher)


class RequestCheck:
    """One part of a mock rule. `part` names the request part reported when the check fails."""

    part: ClassVar[str]
    order: ClassVar[int]

    async def matches(self, request: Request) -> bool:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError


class MethodCheck(RequestCheck):
    part = "method"
    order = 0

    def __init__(self, method: Any) -> None:
        self.method = InternalMatcher(method)

    async def matches(self, request: Request) -> bool:
        return self.method.matches(request.method)

    def describe(self) -> str:
        return f"Method: {self.method!r}"


class PathCheck(RequestCheck):
    part = "path"
    order = 1

    def __init__(self, path: Any) -> None:
        self.path = InternalMatcher(path)

    async def matches(self, request: Request) -> bool:
        # A full URL matches against the whole request URL, anything else against the path only
        if isinstance(self.path.matcher, httpx.URL):
            return self.path.matches(request.url)
        return self.path.matches(request.url.path)

    def describe(self) -> str:
        return f"Path: {self.path!r}"


class QueryCheck(RequestCheck):
    part = "query"
    order = 2

    def __init__(self) -> None:
        self.params: dict[str, InternalMatcher] = {}
        self.whole: InternalMatcher | None = None

    def set_whole(self, matcher: Any) -> None:
        self.params.clear()
        self.whole = InternalMatcher(matcher)

    def set_param(self, name: str, matcher: Any) -> None:
        self.whole = None
        self.params[name] = InternalMatcher(matcher)

    async def matches(self, request: Request) -> bool:
        actual = query_dict_multi_value(request.url)
        if self.whole is None:
            return all(name in actual and expected.matches(actual[name]) for name, expected in self.params.items())
        if isinstance(self.whole.matcher, str | Pattern):
            return self.whole.matches(request.url.query.decode())
        return self.whole.matches(actual)

    def describe(self) -> str:
        if self.whole is not None:
            return f"Query: {self.whole!r}"
        return f"Query: {', '.join(f'{name}={expected!r}' for name, expected in self.params.items())}"


class HeadersCheck(RequestCheck):
    part = "headers"
    order = 3

    def __init__(self) -> None:
        self.headers: dict[str, InternalMatcher] = {}

    async def matches(self, request: Request) -> bool:
        for name, expected in self.headers.items():
            value = request.headers.get(name)
            if value is None or not expected.matches(value):
                return False
        return True

    def describe(self) -> str:
        return f"Headers: {', '.join(f'{name}: {expected!r}' for name, expected in self.headers.items())}"


class BodyCheck(RequestCheck):
    part = "body"
    order = 4

    def __init__(self, matcher: Any, kind: Literal["content", "json"]) -> None:
        self.body = InternalMatcher(matcher)
        self.kind = kind

    async def matches(self, request: Request) -> bool:
        if request.body is None:
            return False
        content = request.body.copy_bytes()
        assert content is not None, "Stream body should have been read by the mock transport"

        if self.kind == "json":
            try:
                return self.body.matches(orjson.loads(content))
            except orjson.JSONDecodeError:
                return False
        if isinstance(self.body.matcher, bytes):
            return self.body.matches(content)
        return self.body.matches(content.decode())

    def describe(self) -> str:
        return f"Body ({'JSON' if self.kind == 'json' else 'content'}): {self.body!r}"


class CustomCheck(RequestCheck):
    part = "custom"
    order = 5

    def __init__(self, matcher: CustomMatcher) -> None:
        self.matcher = matcher

    async def matches(self, request: Request) -> bool:
        return await self.matcher(request)

    def describe(self) -> str:
        return f"Custom matcher: {callable_name(self.matcher)}"


def query_dict_multi_value(url: httpx.URL) -> dict[str, str | list[str]]:
    """Query params as a dict, repeated keys collected into lists."""
    result: dict[str, str | list[str]] = {}
    for key in url.params:
        values = url.params.get_list(key)
        result[key] = values[0] if len(values) == 1 else values
    return result


def callable_name(fn: object) -> str:
    return getattr(fn, "__name__", repr(fn))
