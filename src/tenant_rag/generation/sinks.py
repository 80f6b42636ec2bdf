"""Fragment sinks — where relayed completion fragments end up.

A sink receives fragments in arrival order and is closed exactly once,
with the error that ended the query if there was one.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator

_END = object()


class SinkClosedError(RuntimeError):
    """Raised when a sink is used after it has been closed."""


class FragmentSink(ABC):
    """Base sink enforcing the send-then-close-once protocol."""

    def __init__(self) -> None:
        self._closed = False
        self._error: BaseException | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error(self) -> BaseException | None:
        return self._error

    async def send(self, fragment: str) -> None:
        if self._closed:
            raise SinkClosedError("cannot send to a closed sink")
        await self._deliver(fragment)

    async def close(self, error: BaseException | None = None) -> None:
        if self._closed:
            raise SinkClosedError("sink already closed")
        self._closed = True
        self._error = error
        await self._finish()

    @abstractmethod
    async def _deliver(self, fragment: str) -> None:
        ...

    @abstractmethod
    async def _finish(self) -> None:
        ...


class QueueSink(FragmentSink):
    """Streaming sink: fragments are consumed with ``async for``.

    Iteration ends when the sink is closed; if it was closed with an error
    that error is raised after the already-delivered fragments.
    """

    def __init__(self) -> None:
        super().__init__()
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    async def _deliver(self, fragment: str) -> None:
        self._queue.put_nowait(fragment)

    async def _finish(self) -> None:
        self._queue.put_nowait(_END)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END:
                break
            yield item  # type: ignore[misc]
        if self._error is not None:
            raise self._error


class BufferSink(FragmentSink):
    """Buffered sink: fragments are concatenated into one answer."""

    def __init__(self) -> None:
        super().__init__()
        self._parts: list[str] = []
        self._done = asyncio.Event()

    async def _deliver(self, fragment: str) -> None:
        self._parts.append(fragment)

    async def _finish(self) -> None:
        self._done.set()

    @property
    def fragments(self) -> list[str]:
        return list(self._parts)

    async def wait(self) -> str:
        """Wait for the sink to close and return the concatenated text."""
        await self._done.wait()
        if self._error is not None:
            raise self._error
        return "".join(self._parts)
