"""Asynchronous ingestion pipeline — bounded queue + fixed worker pool.

Flow for one document::

    pending ──dequeue──► processing ──split → embed → upsert──► ready
                              │
                              └──── zero chunks / error / deadline ──► failed

Uploads never wait on this module: :meth:`IngestionPipeline.enqueue` is a
non-blocking attempt.  When the queue is full the document simply stays
``pending`` until something re-submits it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tenant_rag.config import settings
from tenant_rag.exceptions import DocumentNotFoundError, InvalidStatusTransition, TenantRAGError
from tenant_rag.ingestion.chunker import split_document
from tenant_rag.ingestion.models import Chunk, DocumentStatus, IngestJob
from tenant_rag.ingestion.queue import InProcessJobQueue, JobQueue

if TYPE_CHECKING:
    from tenant_rag.ingestion.embedder import EmbeddingProvider
    from tenant_rag.ingestion.models import Document
    from tenant_rag.ingestion.repository import DocumentRepository
    from tenant_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


class EmptyDocumentError(TenantRAGError):
    """Chunking produced nothing to embed."""


class IngestionPipeline:
    """Drives chunker → embedding provider → vector store for queued documents.

    Parameters
    ----------
    repository:
        Metadata store receiving status transitions.
    embedder:
        Provider used to embed chunk batches.
    store:
        Tenant-scoped vector store receiving the chunks.
    queue:
        Job queue; defaults to an in-process bounded queue.
    workers:
        Number of concurrent worker tasks.
    batch_size:
        Chunks per embedding request / upsert call.
    job_timeout:
        Hard per-document deadline in seconds.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        embedder: EmbeddingProvider,
        store: VectorStoreBase,
        *,
        queue: JobQueue | None = None,
        workers: int = settings.ingest_workers,
        batch_size: int = settings.embed_batch_size,
        job_timeout: float = settings.ingest_job_timeout,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
    ) -> None:
        if workers <= 0:
            raise ValueError(f"workers must be positive, got {workers}")
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._repository = repository
        self._embedder = embedder
        self._store = store
        self._queue = queue if queue is not None else InProcessJobQueue(settings.ingest_queue_capacity)
        self._worker_count = workers
        self._batch_size = batch_size
        self._job_timeout = job_timeout
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._tasks: list[asyncio.Task[None]] = []

    # -- lifecycle ------------------------------------------------------------

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    @property
    def queue(self) -> JobQueue:
        return self._queue

    def start(self) -> None:
        """Spawn the worker pool on the running event loop."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"ingest-worker-{i}")
            for i in range(self._worker_count)
        ]

    async def stop(self) -> None:
        """Cancel every worker and wait for them to exit."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Ingestion workers stopped")

    async def join(self) -> None:
        """Wait until every enqueued job has been processed."""
        await self._queue.join()

    async def __aenter__(self) -> IngestionPipeline:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # -- public API -----------------------------------------------------------

    def enqueue(self, document: Document) -> bool:
        """Try to queue *document* without blocking.

        Returns ``False`` when the queue is full; the document then stays
        ``pending`` and must be re-submitted by an external sweep.
        """
        if self._queue.try_put(IngestJob(document=document)):
            return True
        logger.warning(
            "Ingestion queue full (capacity=%d), document %s left pending",
            self._queue.maxsize,
            document.id,
        )
        return False

    async def process(self, document: Document) -> DocumentStatus:
        """Run one document through the pipeline under its deadline.

        Never raises for job-level failures; the outcome is recorded as the
        document's status and returned.  A document deleted while its job
        runs has any chunks written meanwhile removed again and is reported
        as ``failed``.
        """
        try:
            chunk_count = await asyncio.wait_for(self._ingest(document), timeout=self._job_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Ingestion of document %s exceeded %.1fs deadline", document.id, self._job_timeout
            )
            return await self._mark_failed(document)
        except EmptyDocumentError:
            logger.error("Document %s produced no chunks", document.id)
            return await self._mark_failed(document)
        except DocumentNotFoundError:
            logger.info("Document %s was deleted during ingestion, job abandoned", document.id)
            await self._discard_chunks(document)
            return DocumentStatus.FAILED
        except Exception:
            logger.exception("Ingestion of document %s failed", document.id)
            return await self._mark_failed(document)

        logger.info("Document %s ingested (%d chunks)", document.id, chunk_count)
        return DocumentStatus.READY

    # -- internals ------------------------------------------------------------

    async def _worker(self, worker_id: int) -> None:
        logger.info("Ingestion worker %d started", worker_id)
        while True:
            job = await self._queue.get()
            try:
                await self.process(job.document)
            except Exception:
                # Status bookkeeping itself failed; keep the worker alive.
                logger.exception("Worker %d could not record outcome for %s", worker_id, job.document.id)
            finally:
                self._queue.task_done()

    async def _ingest(self, document: Document) -> int:
        await self._repository.update_status(document.id, DocumentStatus.PROCESSING)

        pieces = split_document(document, self._chunk_size, self._chunk_overlap)
        if not pieces:
            raise EmptyDocumentError("chunking yielded zero chunks", {"document_id": document.id})

        chunks = [
            Chunk(
                org_id=document.org_id,
                document_id=document.id,
                doc_name=document.name,
                chunk_index=piece.metadata["chunk_index"],
                content=piece.page_content,
            )
            for piece in pieces
        ]

        for start in range(0, len(chunks), self._batch_size):
            batch = chunks[start : start + self._batch_size]
            vectors = await self._embedder.embed_batch([c.content for c in batch])
            for chunk, vector in zip(batch, vectors):
                chunk.embedding = vector
            await self._store.upsert(batch)
            logger.debug(
                "Document %s: stored %d / %d chunks",
                document.id,
                min(start + self._batch_size, len(chunks)),
                len(chunks),
            )

        # Only reached once every batch upsert has been acknowledged.
        await self._repository.update_status(document.id, DocumentStatus.READY, len(chunks))
        return len(chunks)

    async def _mark_failed(self, document: Document) -> DocumentStatus:
        try:
            await self._repository.update_status(document.id, DocumentStatus.FAILED, 0)
        except DocumentNotFoundError:
            logger.info("Document %s was deleted during ingestion, job abandoned", document.id)
            await self._discard_chunks(document)
        except InvalidStatusTransition as exc:
            logger.warning("Could not mark document %s failed: %s", document.id, exc)
        return DocumentStatus.FAILED

    async def _discard_chunks(self, document: Document) -> None:
        # Batches upserted after the document's delete would otherwise be unreachable.
        removed = await self._store.delete_by_document(document.org_id, document.id)
        if removed:
            logger.info("Removed %d orphaned chunk(s) of document %s", removed, document.id)
