"""Types used in the pytest plugin."""

from collections.abc import Awaitable, Callable
from re import Pattern
from typing import TYPE_CHECKING, Any, TypeAlias, Union

from pyreqchain.http import Url
from pyreqchain.request import Request
from pyreqchain.response import Response

if TYPE_CHECKING:
    from dirty_equals import DirtyEquals

Matcher: TypeAlias = Union["DirtyEquals[Any]", str, Pattern[str]]
JsonMatcher: TypeAlias = Union["DirtyEquals[Any]", Any]

MethodMatcher: TypeAlias = Matcher | set[str]
UrlMatcher: TypeAlias = Matcher | Url
QueryMatcher: TypeAlias = dict[str, Matcher | list[str]] | Matcher
BodyContentMatcher: TypeAlias = bytes | Matcher
CustomMatcher = Callable[[Request], Awaitable[bool]]
CustomHandler = Callable[[Request], Awaitable[Response | None]]
