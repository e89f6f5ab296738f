"""Child stdout/stderr adapters.

codex-bridge runtime module v0.1.0

- LineStream: pull-based async iteration over stdout text lines. Iteration
  finishes by awaiting a finalize callback, so exhausting the stream also
  joins on the child's exit status.
- StderrBuffer: drains stderr concurrently and keeps every byte for error
  reporting.

Lines are split manually from fixed-size reads rather than with
StreamReader.readline(), which has a 64 KiB line limit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

__all__ = [
    "LineStream",
    "StderrBuffer",
    "READ_CHUNK_SIZE",
]

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


def _decode(line: bytes) -> str:
    if line.endswith(b"\r"):
        line = line[:-1]
    return line.decode("utf-8", errors="replace")


class LineStream:
    """Async iterable of newline-delimited text lines.

    Lines are yielded without their terminator (``\\n`` or ``\\r\\n``). A
    trailing line with no terminator is still yielded. The stream may only be
    iterated once.

    Backpressure is implicit: nothing is read ahead of the consumer beyond one
    chunk, so a child that outpaces its reader blocks on its own pipe.

    Args:
        reader: Child stdout
        finalize: Awaited after EOF; any exception it raises propagates to the
            consumer once every line has been yielded
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        finalize: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._reader = reader
        self._finalize = finalize
        self._started = False
        self._finished = False
        self._eof = False
        self._buffer = bytearray()
        self._pos = 0  # start of the next line in _buffer
        self._scan = 0  # bytes before this offset hold no newline

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise RuntimeError("LineStream can only be iterated once")
        self._started = True
        return self

    async def __anext__(self) -> str:
        while not self._eof:
            newline = self._buffer.find(b"\n", self._scan)
            if newline >= 0:
                line = bytes(self._buffer[self._pos:newline])
                self._pos = self._scan = newline + 1
                return _decode(line)

            del self._buffer[: self._pos]
            self._pos = 0
            self._scan = len(self._buffer)

            chunk = await self._reader.read(READ_CHUNK_SIZE)
            if chunk:
                self._buffer.extend(chunk)
            else:
                self._eof = True

        if self._buffer:
            line = bytes(self._buffer)
            self._buffer.clear()
            return _decode(line)

        if not self._finished:
            self._finished = True
            if self._finalize is not None:
                await self._finalize()
        raise StopAsyncIteration


class StderrBuffer:
    """In-memory sink for everything a child writes to stderr.

    Args:
        on_stderr: Optional callback invoked with each raw chunk; errors it
            raises are logged and do not stop the drain
    """

    def __init__(self, on_stderr: Callable[[bytes], None] | None = None) -> None:
        self._chunks: list[bytes] = []
        self._on_stderr = on_stderr

    async def drain(self, reader: asyncio.StreamReader | None) -> None:
        """Read ``reader`` until EOF. Must run concurrently with stdout
        consumption so a chatty child cannot deadlock on a full stderr pipe.
        """
        if reader is None:
            return
        while True:
            chunk = await reader.read(4096)
            if not chunk:
                break
            self._chunks.append(chunk)
            if self._on_stderr:
                try:
                    self._on_stderr(chunk)
                except Exception as e:
                    logger.warning(f"on_stderr callback failed: {e}")

    @property
    def size(self) -> int:
        return sum(len(c) for c in self._chunks)

    def text(self) -> str:
        """Decoded stderr captured so far."""
        return b"".join(self._chunks).decode("utf-8", errors="replace")
