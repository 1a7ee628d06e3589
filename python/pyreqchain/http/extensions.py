"""Type keyed request extensions."""

from collections.abc import Iterator, MutableMapping
from typing import Any, TypeVar, overload

_T = TypeVar("_T")


class Extensions(MutableMapping[type, Any]):
    """Side channel for passing values between middlewares, keyed by the value type.

    One instance lives for one `send` call and is handed to every middleware together with the request.

    >>> ext = Extensions()
    >>> ext.insert(TraceId("abc"))
    >>> ext.get(TraceId)
    TraceId('abc')
    """

    __slots__ = ("_values",)

    def __init__(self, values: "Extensions | None" = None) -> None:
        self._values: dict[type, Any] = dict(values._values) if values is not None else {}

    def insert(self, value: _T) -> _T | None:
        """Insert a value under its own type, returning the previous value of that type."""
        previous = self._values.get(type(value))
        self._values[type(value)] = value
        return previous

    @overload
    def get(self, key: type[_T], /) -> _T | None: ...
    @overload
    def get(self, key: type[_T], /, default: _T) -> _T: ...
    def get(self, key: type[_T], /, default: _T | None = None) -> _T | None:
        return self._values.get(key, default)

    def remove(self, key: type[_T]) -> _T | None:
        """Remove and return the value of the given type."""
        return self._values.pop(key, None)

    def copy(self) -> "Extensions":
        return Extensions(self)

    def __getitem__(self, key: type[_T]) -> _T:
        return self._values[key]

    def __setitem__(self, key: type, value: Any) -> None:
        if not isinstance(value, key):
            raise TypeError(f"extension value {value!r} is not an instance of {key.__name__}")
        self._values[key] = value

    def __delitem__(self, key: type) -> None:
        del self._values[key]

    def __iter__(self) -> Iterator[type]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Extensions({list(self._values.values())!r})"
