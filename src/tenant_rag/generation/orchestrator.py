"""Query orchestrator — tenant-scoped retrieval, prompt assembly, fragment relay.

Usage::

    orchestrator = QueryOrchestrator(store, embedder, completion)

    # streaming
    async for fragment in orchestrator.stream("org-1", "What is our refund policy?"):
        print(fragment, end="")

    # buffered
    answer = await orchestrator.answer("org-1", "What is our refund policy?")
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing, asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from pydantic import BaseModel, Field, field_validator

from tenant_rag.config import settings
from tenant_rag.exceptions import ProviderError, QueryError, ValidationError, VectorStoreError
from tenant_rag.generation.prompts import build_prompt
from tenant_rag.generation.sinks import BufferSink, FragmentSink, QueueSink

if TYPE_CHECKING:
    from tenant_rag.generation.llm import CompletionProvider
    from tenant_rag.ingestion.embedder import EmbeddingProvider
    from tenant_rag.retrieval.base import VectorStoreBase
    from tenant_rag.retrieval.models import SearchHit

logger = logging.getLogger(__name__)


class QueryRequest(BaseModel):
    """One question from one tenant; non-positive ``top_k`` means the default."""

    org_id: str
    question: str
    top_k: int = Field(default=0, validate_default=True)

    @field_validator("top_k")
    @classmethod
    def _resolve_top_k(cls, value: int) -> int:
        return value if value > 0 else settings.default_top_k


@asynccontextmanager
async def _sink_scope(sink: FragmentSink) -> AsyncIterator[FragmentSink]:
    """Close *sink* exactly once on every exit path.

    Cancellation closes the sink without an error; any other exception is
    handed to the sink and re-raised.
    """
    error: BaseException | None = None
    try:
        yield sink
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        error = exc
        raise
    finally:
        await sink.close(error)


class QueryOrchestrator:
    """Answers questions from a single tenant's documents.

    Parameters
    ----------
    store:
        Tenant-scoped vector store.
    embedder:
        Provider used to embed the question.
    completion:
        Streaming completion provider.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingProvider,
        completion: CompletionProvider,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._completion = completion

    async def retrieve(self, request: QueryRequest) -> list[SearchHit]:
        vector = await self._embedder.embed_one(request.question)
        return await self._store.search(request.org_id, vector, request.top_k)

    async def query(self, org_id: str, question: str, top_k: int, sink: FragmentSink) -> None:
        """Retrieve, prompt and relay fragments into *sink*.

        Fragments reach the sink unchanged and in arrival order.  The sink
        is closed once, after the last delivered fragment, whether the
        query succeeds, fails or is cancelled.

        Raises
        ------
        ValidationError
            Missing tenant or empty question.
        QueryError
            Retrieval or completion failed; fragments already relayed stay
            relayed.
        """
        async with _sink_scope(sink):
            if not org_id:
                raise ValidationError("org_id is required", field="org_id")
            if not question or not question.strip():
                raise ValidationError("question is required", field="question")
            request = QueryRequest(org_id=org_id, question=question, top_k=top_k)

            try:
                hits = await self.retrieve(request)
                system, user = build_prompt(request.question, hits)
                logger.debug("Org %s: %d chunk(s) retrieved for query", org_id, len(hits))

                async with aclosing(self._completion.stream(system, user)) as fragments:
                    async for fragment in fragments:
                        await sink.send(fragment)
            except (ProviderError, VectorStoreError) as exc:
                logger.error("Query for org %s failed: %s", org_id, exc)
                raise QueryError(f"query failed: {exc.message}", {"org_id": org_id}) from exc

    async def stream(self, org_id: str, question: str, top_k: int = 0) -> AsyncIterator[str]:
        """Yield fragments as soon as they are relayed.

        Abandoning the iteration cancels the underlying query, which stops
        the completion provider.
        """
        sink = QueueSink()
        task = asyncio.create_task(self.query(org_id, question, top_k, sink))
        try:
            async for fragment in sink:
                yield fragment
        finally:
            task.cancel()
            await asyncio.wait([task])
            if not task.cancelled():
                # Same error already surfaced through the sink.
                task.exception()

    async def answer(self, org_id: str, question: str, top_k: int = 0) -> str:
        """Return the whole answer once the completion has finished."""
        sink = BufferSink()
        await self.query(org_id, question, top_k, sink)
        return await sink.wait()
