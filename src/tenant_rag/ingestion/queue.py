"""Bounded job queue between the upload path and ingestion workers.

The pipeline only talks to :class:`JobQueue`, so a durable backend (Redis
Streams, SQS, ...) can replace :class:`InProcessJobQueue` without touching
worker logic.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from tenant_rag.ingestion.models import IngestJob


class JobQueue(ABC):
    """Bounded FIFO of :class:`IngestJob` objects."""

    @property
    @abstractmethod
    def maxsize(self) -> int:
        ...

    @abstractmethod
    def qsize(self) -> int:
        ...

    @abstractmethod
    def try_put(self, job: IngestJob) -> bool:
        """Insert *job* without waiting.  Return ``False`` when full."""
        ...

    @abstractmethod
    async def get(self) -> IngestJob:
        """Wait for and remove the next job."""
        ...

    @abstractmethod
    def task_done(self) -> None:
        """Mark the most recently fetched job as fully processed."""
        ...

    @abstractmethod
    async def join(self) -> None:
        """Wait until every job put so far has been marked done."""
        ...


class InProcessJobQueue(JobQueue):
    """:class:`asyncio.Queue`-backed queue; jobs are lost on restart."""

    def __init__(self, maxsize: int = 256) -> None:
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self._maxsize = maxsize
        self._queue: asyncio.Queue[IngestJob] = asyncio.Queue(maxsize=maxsize)

    @property
    def maxsize(self) -> int:
        return self._maxsize

    def qsize(self) -> int:
        return self._queue.qsize()

    def try_put(self, job: IngestJob) -> bool:
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> IngestJob:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()
