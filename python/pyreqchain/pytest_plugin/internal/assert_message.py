from typing import TYPE_CHECKING

from pyreqchain.pytest_plugin.internal.matcher import callable_name
from pyreqchain.request import Request
from pyreqchain.response import ResponseBuilder

if TYPE_CHECKING:
    from pyreqchain.pytest_plugin.mock import Mock

_MAX_SHOWN_UNMATCHED = 5
_MAX_SHOWN_MATCHED = 3


def assert_fail(
    mock: "Mock",
    *,
    count: int | None = None,
    min_count: int | None = None,
    max_count: int | None = None,
) -> None:
    __tracebackhide__ = True
    raise AssertionError(format_assert_called_error(mock, count=count, min_count=min_count, max_count=max_count))


def format_assert_called_error(
    mock: "Mock",
    *,
    count: int | None = None,
    min_count: int | None = None,
    max_count: int | None = None,
) -> str:
    actual_count = len(mock._matched_requests)

    if count is not None:
        expected_desc = f"exactly {count}"
    else:
        expectations = []
        if min_count is not None:
            expectations.append(f"at least {min_count}")
        if max_count is not None:
            expectations.append(f"at most {max_count}")
        expected_desc = " and ".join(expectations)

    error_parts = [f"Expected {expected_desc} request(s) but received {actual_count}."]

    error_parts.append("\nMock configuration:")
    error_parts.append(_format_mock_matchers(mock))

    unmatched = mock._unmatched_requests_repr_parts
    if unmatched:
        error_parts.append(f"\nUnmatched requests ({len(unmatched)}):")
        for i, parts in enumerate(unmatched[-_MAX_SHOWN_UNMATCHED:], 1):
            error_parts.append(f"  {i}. {_format_unmatched_parts(parts)}")
        if len(unmatched) > _MAX_SHOWN_UNMATCHED:
            error_parts.append(f"  ... and {len(unmatched) - _MAX_SHOWN_UNMATCHED} more")

    if mock._matched_requests:
        error_parts.append(f"\nMatched requests ({len(mock._matched_requests)}):")
        for i, request in enumerate(mock._matched_requests[-_MAX_SHOWN_MATCHED:], 1):
            error_parts.append(f"  {i}. {request.repr_full()}")
        if len(mock._matched_requests) > _MAX_SHOWN_MATCHED:
            error_parts.append(f"  ... and {len(mock._matched_requests) - _MAX_SHOWN_MATCHED} more")

    return "\n".join(error_parts)


def format_unmatched_request_parts(request: Request, *, unmatched: set[str]) -> dict[str, str | None]:
    """Describe a request that did not match, marking the parts that failed. Captured eagerly as it may change."""
    body = request.body.copy_bytes() if request.body is not None else None
    return {
        "method": _mark(request.method, "method" in unmatched),
        "url": _mark(str(request.url), bool({"path", "query"} & unmatched)),
        "headers": _mark(repr(dict(request.headers.multi_items())), "headers" in unmatched),
        "body": _mark(repr(body), "body" in unmatched) if body is not None else None,
        "custom": "custom matcher failed" if "custom" in unmatched else None,
        "handler": "custom handler returned None" if "handler" in unmatched else None,
    }


def _mark(value: str, failed: bool) -> str:
    return f"{value} (no match)" if failed else value


def _format_unmatched_parts(parts: dict[str, str | None]) -> str:
    return ", ".join(f"{key}={value}" for key, value in parts.items() if value is not None)


def _format_mock_matchers(mock: "Mock") -> str:
    checks = {check.part: check for check in mock._sorted_checks()}
    lines = [
        f"  {checks.pop('method').describe()}" if "method" in checks else "  Method: Any",
        f"  {checks.pop('path').describe()}" if "path" in checks else "  Path: Any",
        *(f"  {check.describe()}" for check in checks.values()),
    ]
    if mock._responder is not None and not isinstance(mock._responder, ResponseBuilder):
        lines.append(f"  Custom handler: {callable_name(mock._responder)}")
    return "\n".join(lines)
