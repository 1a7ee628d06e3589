"""Request body."""

from collections.abc import AsyncIterable, AsyncIterator
from typing import Self

from pyreqchain.types import Stream


class RequestBody:
    """Request body holding either buffered bytes or a byte stream.

    Buffered bodies can be copied any number of times. Stream bodies are single-use and can not be copied, which
    disables retrying and body replay on redirects for requests carrying them.
    """

    __slots__ = ("_bytes", "_stream")

    def __init__(self, *, content: bytes | None = None, stream: Stream | None = None) -> None:
        """Do not use directly. Instead, use from_bytes, from_text or from_stream."""
        if (content is None) == (stream is None):
            raise ValueError("exactly one of content or stream must be given")
        self._bytes = content
        self._stream = stream

    @classmethod
    def from_bytes(cls, body: bytes | bytearray | memoryview) -> Self:
        """Create a buffered body from bytes."""
        return cls(content=bytes(body))

    @classmethod
    def from_text(cls, body: str) -> Self:
        """Create a buffered body from text encoded as UTF-8."""
        return cls(content=body.encode())

    @classmethod
    def from_stream(cls, stream: Stream) -> Self:
        """Create a streamed body from an async or sync iterable of bytes."""
        return cls(stream=stream)

    def copy_bytes(self) -> bytes | None:
        """Return the buffered bytes, or None for a stream body."""
        return self._bytes

    def get_stream(self) -> Stream | None:
        """Return the stream, or None for a buffered body."""
        return self._stream

    @property
    def is_stream(self) -> bool:
        return self._stream is not None

    def try_clone(self) -> "RequestBody | None":
        """Copy a buffered body. Streams can not be copied and None is returned."""
        if self._bytes is None:
            return None
        return type(self)(content=self._bytes)

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Iterate the body in chunks. Consumes a stream body."""
        if self._bytes is not None:
            yield self._bytes
            return

        stream = self._stream
        if isinstance(stream, AsyncIterable):
            async for chunk in stream:
                yield bytes(chunk)
        elif stream is not None:
            for chunk in stream:
                yield bytes(chunk)

    async def read_all(self) -> bytes:
        """Read the whole body into bytes. Consumes a stream body."""
        return b"".join([chunk async for chunk in self.aiter_bytes()])

    def __repr__(self) -> str:
        if self._bytes is not None:
            return f"RequestBody({self._bytes!r})"
        return "RequestBody(<stream>)"
