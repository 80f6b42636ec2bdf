"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Sequence

import chromadb

from tenant_rag.config import settings
from tenant_rag.exceptions import VectorStoreError
from tenant_rag.retrieval.base import VectorStoreBase
from tenant_rag.retrieval.models import MetadataFilter, SearchHit

if TYPE_CHECKING:
    from tenant_rag.ingestion.embedder import EmbeddingProvider
    from tenant_rag.ingestion.models import Chunk

logger = logging.getLogger(__name__)

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_chroma_where(
    org_id: str,
    filters: list[MetadataFilter] | None = None,
    **equals: Any,
) -> dict[str, Any]:
    """Build a Chroma ``where`` clause that always pins ``org_id``."""
    clauses: list[dict[str, Any]] = [{"org_id": {"$eq": org_id}}]
    clauses.extend({key: {"$eq": value}} for key, value in equals.items())
    for f in filters or []:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    The Chroma client is synchronous, so every call is pushed to a worker
    thread to keep the event loop responsive.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    embedder:
        Provider used for text queries.
    client:
        Pre-built Chroma client (tests inject a fake here).
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        embedder: EmbeddingProvider | None = None,
        client: Any = None,
    ) -> None:
        super().__init__(collection_name, embedder)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection = self._client.get_or_create_collection(
            collection_name, metadata={"hnsw:space": "cosine"}
        )

    # -- VectorStoreBase overrides --------------------------------------------

    async def upsert(self, chunks: Sequence[Chunk]) -> None:
        if not chunks:
            return
        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[c.id for c in chunks],
                embeddings=[c.embedding for c in chunks],
                documents=[c.content for c in chunks],
                metadatas=[c.metadata() for c in chunks],
            )
        except Exception as exc:
            raise VectorStoreError(f"chroma upsert failed: {exc}", {"chunks": len(chunks)}) from exc

    async def search_by_vector(
        self,
        org_id: str,
        query_embedding: Sequence[float],
        top_k: int,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        try:
            results = await asyncio.to_thread(
                self._collection.query,
                query_embeddings=[list(query_embedding)],
                n_results=top_k,
                where=_build_chroma_where(org_id, filters),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise VectorStoreError(f"chroma query failed: {exc}") from exc

        hits: list[SearchHit] = []
        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        for chunk_id, content, meta, dist in zip(ids, docs, metas, distances):
            # Cosine space: distance = 1 - cosine similarity.
            hits.append(
                SearchHit(
                    id=chunk_id,
                    content=content or "",
                    score=1.0 - dist,
                    metadata=dict(meta or {}),
                )
            )
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits

    async def delete_by_document(self, org_id: str, document_id: str) -> int:
        where = _build_chroma_where(org_id, document_id=document_id)
        try:
            existing = await asyncio.to_thread(self._collection.get, where=where, include=[])
            ids = existing.get("ids") or []
            if ids:
                await asyncio.to_thread(self._collection.delete, ids=ids)
        except Exception as exc:
            raise VectorStoreError(
                f"chroma delete failed: {exc}", {"document_id": document_id}
            ) from exc
        logger.info("Deleted %d chunk(s) of document %s", len(ids), document_id)
        return len(ids)

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self._client.heartbeat)
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
