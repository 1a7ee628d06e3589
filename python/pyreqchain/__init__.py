"""pyreqchain - Middleware pipeline for asynchronous HTTP clients.

Wraps any HTTP transport with a composable request chain:
- Automatic cookie handling backed by a concurrent domain/path aware cookie store
- Automatic redirect following with browser compatible method rewriting
- Automatic retries with pluggable policies (exponential backoff included)
- Custom global and per-request middlewares
- Type keyed extensions for passing data down the middleware stack
- httpx and in-process ASGI transports
- Mocking and testing utilities
"""
