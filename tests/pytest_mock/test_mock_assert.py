import re

import pytest
from dirty_equals import IsPartialDict
from pyreqchain.client import Client, ClientBuilder
from pyreqchain.pytest_plugin import ClientMocker
from pyreqchain.request import Request
from pyreqchain.response import Response, ResponseBuilder


@pytest.fixture
def client(client_mocker: ClientMocker) -> Client:
    return ClientBuilder().build()


def assert_error_message(exc_info: pytest.ExceptionInfo[AssertionError], *lines: str) -> str:
    message = str(exc_info.value)
    for line in lines:
        assert line in message.splitlines(), f"{line!r} not in:\n{message}"
    return message


async def test_assert_called_default_exactly_once_success(client_mocker: ClientMocker, client: Client) -> None:
    mock = client_mocker.get("/test").with_body_text("response")

    await client.get("http://api.example.com/test").send()

    mock.assert_called()


async def test_assert_called_default_exactly_once_failure(client_mocker: ClientMocker, client: Client) -> None:
    mock = client_mocker.get("/test").with_body_text("response")
    client_mocker.get("/different").with_body_text("different response")

    await client.get("http://api.example.com/different").send()

    with pytest.raises(AssertionError, match=re.escape("request(s) but received")) as exc_info:
        mock.assert_called()

    message = assert_error_message(
        exc_info,
        "Expected exactly 1 request(s) but received 0.",
        "Mock configuration:",
        "  Method: GET",
        "  Path: /test",
        "Unmatched requests (1):",
    )
    assert "  1. method=GET, url=http://api.example.com/different (no match), headers=" in message
    assert "Matched requests" not in message


async def test_assert_called_exact_count_failure(client_mocker: ClientMocker, client: Client) -> None:
    mock = (
        client_mocker.post("/users")
        .match_header("Authorization", "Bearer token123")
        .match_body_json({"name": "John", "age": 30})
        .with_status(201)
        .with_body_json({"id": 1})
    )
    client_mocker.post("/users").with_status(403).with_body_text("Forbidden")
    client_mocker.get("/users").with_body_json({"users": []})

    res = await (
        client.post("http://api.example.com/users")
        .header("Authorization", "Bearer token123")
        .body_json({"name": "John", "age": 30})
        .send()
    )
    assert await res.json() == {"id": 1}

    res = await (
        client.post("http://api.example.com/users")
        .header("Authorization", "Bearer wrong-token")
        .body_json({"name": "Jane", "age": 25})
        .send()
    )
    assert res.status == 403

    res = await client.get("http://api.example.com/users").send()
    assert await res.json() == {"users": []}

    with pytest.raises(AssertionError, match=re.escape("request(s) but received")) as exc_info:
        mock.assert_called(count=3)

    message = assert_error_message(
        exc_info,
        "Expected exactly 3 request(s) but received 1.",
        "  Method: POST",
        "  Path: /users",
        "  Headers: Authorization: Bearer token123",
        "  Body (JSON): {'name': 'John', 'age': 30}",
        "Unmatched requests (2):",
        "Matched requests (1):",
    )
    unmatched = message.split("Unmatched requests (2):")[1].split("Matched requests")[0]
    assert "1. method=POST, url=http://api.example.com/users, headers=" in unmatched
    assert "'authorization': 'Bearer wrong-token'" in unmatched
    assert """body=b'{"name":"Jane","age":25}' (no match)""" in unmatched
    assert "2. method=GET (no match), url=http://api.example.com/users, headers=" in unmatched
    assert "1. Request(method='POST', url='http://api.example.com/users'" in message


async def test_assert_called_min_count(client_mocker: ClientMocker, client: Client) -> None:
    mock = client_mocker.get("/endpoint").match_query({"filter": "active"}).with_body_json({"data": []})
    client_mocker.get("/endpoint").with_body_json({"data": ["inactive"]})

    await client.get("http://api.example.com/endpoint?filter=active").send()
    await client.get("http://api.example.com/endpoint?filter=inactive").send()

    mock.assert_called(min_count=1)
    with pytest.raises(AssertionError) as exc_info:
        mock.assert_called(min_count=3)

    message = assert_error_message(
        exc_info,
        "Expected at least 3 request(s) but received 1.",
        "  Query: filter=active",
        "Unmatched requests (1):",
        "Matched requests (1):",
    )
    assert "url=http://api.example.com/endpoint?filter=inactive (no match)" in message


async def test_assert_called_max_count(client_mocker: ClientMocker, client: Client) -> None:
    mock = client_mocker.get("/test").with_body_text("response")

    for _ in range(5):
        await client.get("http://api.example.com/test").send()

    mock.assert_called(max_count=5)
    with pytest.raises(AssertionError) as exc_info:
        mock.assert_called(max_count=3)

    message = assert_error_message(
        exc_info,
        "Expected at most 3 request(s) but received 5.",
        "Matched requests (5):",
        "  ... and 2 more",
    )
    assert "Unmatched requests" not in message


async def test_assert_called_min_max_range(client_mocker: ClientMocker, client: Client) -> None:
    mock = client_mocker.get("/test").with_body_text("response")

    await client.get("http://api.example.com/test").send()

    mock.assert_called(min_count=0, max_count=1)
    with pytest.raises(AssertionError) as exc_info:
        mock.assert_called(min_count=3, max_count=5)

    assert_error_message(exc_info, "Expected at least 3 and at most 5 request(s) but received 1.")


async def test_assert_called_regex_and_set_matchers(client_mocker: ClientMocker, client: Client) -> None:
    mock = (
        client_mocker.mock({"PUT", "PATCH"}, re.compile(r"/items/\d+"))
        .match_header("Authorization", re.compile(r"Bearer \w+"))
        .match_body(re.compile(r".*update.*"))
    )
    client_mocker.mock().with_status(404)

    await client.put("http://api.example.com/items/abc").body_text("update").send()

    with pytest.raises(AssertionError) as exc_info:
        mock.assert_called()

    message = assert_error_message(
        exc_info,
        "  Method: PATCH or PUT",
        "  Path: /items/\\d+ (regex)",
        "  Headers: Authorization: Bearer \\w+ (regex)",
        "  Body (content): .*update.* (regex)",
    )
    assert "url=http://api.example.com/items/abc (no match)" in message
    assert "headers={'content-type': 'text/plain; charset=utf-8'} (no match)" in message
    assert "body=b'update'" in message
    assert "b'update' (no match)" not in message


async def test_assert_called_custom_matcher_and_handler(client_mocker: ClientMocker, client: Client) -> None:
    async def is_admin(request: Request) -> bool:
        return request.headers.get("X-Role") == "admin"

    async def never_respond(_request: Request) -> Response | None:
        return None

    matcher_mock = client_mocker.get("/admin").match_request(is_admin).with_status(200)
    handler_mock = client_mocker.get("/admin").match_request_with_response(never_respond)
    client_mocker.get("/admin").with_status(403)

    resp = await client.get("http://api.example.com/admin").header("X-Role", "user").send()
    assert resp.status == 403

    with pytest.raises(AssertionError) as exc_info:
        matcher_mock.assert_called()
    message = assert_error_message(exc_info, "  Custom matcher: is_admin")
    assert "custom=custom matcher failed" in message

    with pytest.raises(AssertionError) as exc_info:
        handler_mock.assert_called()
    message = assert_error_message(exc_info, "  Custom handler: never_respond")
    assert "handler=custom handler returned None" in message


async def test_assert_called_dirty_equals_json(client_mocker: ClientMocker, client: Client) -> None:
    mock = client_mocker.post("/events").match_body_json(IsPartialDict(type="click"))
    client_mocker.post("/events").with_status(202)

    await client.post("http://api.example.com/events").body_json({"type": "scroll", "x": 1}).send()

    with pytest.raises(AssertionError) as exc_info:
        mock.assert_called()

    message = assert_error_message(exc_info, "  Body (JSON): IsPartialDict(type='click')")
    assert """body=b'{"type":"scroll","x":1}' (no match)""" in message


async def test_unmatched_requests_truncated(client_mocker: ClientMocker, client: Client) -> None:
    mock = client_mocker.get("/never")
    client_mocker.get().with_status(200)

    for i in range(7):
        await client.get(f"http://api.example.com/other/{i}").send()

    with pytest.raises(AssertionError) as exc_info:
        mock.assert_called()

    message = assert_error_message(exc_info, "Unmatched requests (7):", "  ... and 2 more")
    assert "/other/6 (no match)" in message
    assert "/other/1 (no match)" not in message


async def test_unmatched_request_captured_before_change(client_mocker: ClientMocker, client: Client) -> None:
    mock = client_mocker.get("/expected")

    async def mutate(request: Request) -> Response | None:
        request.url = "http://api.example.com/mutated"
        return ResponseBuilder().status(200).build()

    client_mocker.mock().match_request_with_response(mutate)

    await client.get("http://api.example.com/original").send()

    with pytest.raises(AssertionError) as exc_info:
        mock.assert_called()

    message = str(exc_info.value)
    assert "url=http://api.example.com/original (no match)" in message
    assert "mutated" not in message
