"""Basic usage examples for pyreqchain.

Run directly (optionally naming the examples to run):
    python -m examples.basic_client [cookies retries ...]

Set HTTPBIN env var to point elsewhere if needed.
"""

import asyncio
import os
import sys
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from pyreqchain.client import ClientBuilder
from pyreqchain.exceptions import TooManyRedirectsError, TransportError
from pyreqchain.http import Extensions, Url
from pyreqchain.http.cookie import CookieStore
from pyreqchain.middleware import Next
from pyreqchain.request import Request
from pyreqchain.response import Response
from pyreqchain.retry import ExponentialBackoff
from pyreqchain.transport import Transport

HTTPBIN = Url(os.environ.get("HTTPBIN", "https://httpbin.org/"))


async def example_simple_get() -> None:
    """Example 1: Simple GET"""
    async with ClientBuilder().base_url(HTTPBIN).build() as client:
        resp = await client.get("anything").query({"q": "pyreqchain"}).send()
        data = await resp.json()
        print({"example": "simple_get", "status": resp.status, "args": data.get("args")})


async def example_post_json() -> None:
    """Example 2: POST JSON"""
    async with ClientBuilder().base_url(HTTPBIN).build() as client:
        payload: dict[str, str] = {"message": "hello"}
        resp = await client.post("anything").body_json(payload).send()
        data = await resp.json()
        print({"example": "post_json", "status": resp.status, "method": data.get("method"), "data": data.get("data")})


async def example_concurrent_requests() -> None:
    """Example 3: Concurrency"""
    async with ClientBuilder().base_url(HTTPBIN).build() as client:

        async def fetch(i: int) -> Any:
            r = await client.get("anything").query({"i": i}).send()
            return await r.json()

        results = await asyncio.gather(*(fetch(i) for i in range(3)))
        print(
            {
                "example": "concurrent_requests",
                "count": len(results),
                "indices": sorted(int(r["args"]["i"]) for r in results),
            }
        )


async def example_cookies() -> None:
    """Example 4: Cookies set during redirects"""
    store = CookieStore(ignore_path=True)
    async with ClientBuilder().base_url(HTTPBIN).cookie_store(store).build() as client:
        resp = await client.get("cookies/set").query({"flavour": "oatmeal"}).send()
        data = await resp.json()
        print(
            {
                "example": "cookies",
                "status": resp.status,
                "sent": data.get("cookies"),
                "stored": store.cookies_for(HTTPBIN),
            }
        )


async def example_redirects() -> None:
    """Example 5: Redirect limits"""
    async with ClientBuilder().base_url(HTTPBIN).build() as client:
        resp = await client.get("redirect/3").send()
        print({"example": "redirects", "status": resp.status, "followed": resp.url != HTTPBIN.join("redirect/3")})

        manual = await client.get("redirect/1").max_redirects(0).send()
        print({"example": "redirects", "status": manual.status, "has_location": "location" in manual.headers})

        try:
            await client.get("redirect/3").max_redirects(2).send()
            raise RuntimeError("should have raised")
        except TooManyRedirectsError as e:
            print({"example": "redirects", "error": type(e).__name__, "attempted": e.details["attempted_count"]})


@dataclass
class TraceId:
    value: str


async def example_middleware() -> None:
    """Example 6: Custom middleware with extensions"""
    seen: list[str] = []

    async def trace_middleware(request: Request, extensions: Extensions, next_handler: Next) -> Response:
        trace = extensions.get(TraceId, TraceId("untraced"))
        request.headers["X-Trace-Id"] = trace.value
        response = await next_handler.run(request, extensions)
        seen.append(f"{request.method} {trace.value} {response.status}")
        return response

    async with ClientBuilder().base_url(HTTPBIN).with_middleware(trace_middleware).build() as client:
        resp = await client.get("anything").extension(TraceId("abc123")).send()
        data = await resp.json()
        headers = {k.lower(): v for k, v in data.get("headers", {}).items()}
        await client.delete("anything").send()
        print({"example": "middleware", "trace_header": headers.get("x-trace-id"), "seen": seen})


class FlakyTransport:
    """Fails the first requests with a connection error, then delegates."""

    def __init__(self, inner: Transport, failures: int) -> None:
        self.inner = inner
        self.failures = failures

    async def execute(self, request: Request) -> Response:
        if self.failures > 0:
            self.failures -= 1
            raise TransportError("connection reset by peer")
        return await self.inner.execute(request)


async def example_retries() -> None:
    """Example 7: Retries with exponential backoff"""
    policy = ExponentialBackoff(max_retries=3, min_interval=timedelta(milliseconds=10), jitter="none")
    async with ClientBuilder().base_url(HTTPBIN).build() as plain_client:
        transport = FlakyTransport(plain_client.transport, failures=2)
        async with ClientBuilder().base_url(HTTPBIN).transport(transport).retry_policy(policy).build() as client:
            resp = await client.get("anything").send()
            print({"example": "retries", "status": resp.status, "remaining_failures": transport.failures})


if __name__ == "__main__":  # pragma: no cover
    from ._utils import run_examples, selected_from_argv

    asyncio.run(run_examples(sys.modules[__name__], selected_from_argv()))
