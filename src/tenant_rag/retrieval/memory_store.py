"""In-process vector store with exact cosine similarity.

Chunks are partitioned by ``org_id`` so a search only ever compares the
query against the requesting tenant's vectors.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Sequence

import numpy as np

from tenant_rag.exceptions import VectorStoreError
from tenant_rag.retrieval.base import VectorStoreBase
from tenant_rag.retrieval.models import MetadataFilter, SearchHit

if TYPE_CHECKING:
    from tenant_rag.ingestion.embedder import EmbeddingProvider
    from tenant_rag.ingestion.models import Chunk

logger = logging.getLogger(__name__)


class InMemoryVectorStore(VectorStoreBase):
    """Brute-force store for tests, notebooks and single-node deployments."""

    def __init__(
        self,
        collection_name: str = "in-memory",
        embedder: EmbeddingProvider | None = None,
    ) -> None:
        super().__init__(collection_name, embedder)
        # org_id -> chunk id -> chunk; dict order gives stable tie-breaking.
        self._partitions: dict[str, dict[str, Chunk]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return sum(len(p) for p in self._partitions.values())

    async def upsert(self, chunks: Sequence[Chunk]) -> None:
        async with self._lock:
            for chunk in chunks:
                if not chunk.embedding:
                    raise VectorStoreError(
                        "chunk has no embedding", {"chunk_id": chunk.id}
                    )
                partition = self._partitions.setdefault(chunk.org_id, {})
                # Replacing in place keeps the original insertion position.
                partition[chunk.id] = chunk.model_copy()

    async def search_by_vector(
        self,
        org_id: str,
        query_embedding: Sequence[float],
        top_k: int,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        partition = self._partitions.get(org_id)
        if not partition:
            return []

        candidates = [
            c for c in partition.values()
            if all(f.matches(c.metadata()) for f in filters or [])
        ]
        if not candidates:
            return []

        query = np.asarray(query_embedding, dtype=np.float64)
        stored_dims = {len(c.embedding) for c in candidates}
        if stored_dims != {query.shape[0]}:
            raise VectorStoreError(
                "query dimension does not match stored vectors",
                {"query_dim": int(query.shape[0]), "stored_dims": sorted(stored_dims)},
            )
        matrix = np.asarray([c.embedding for c in candidates], dtype=np.float64)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        scores = np.divide(matrix @ query, norms, out=np.zeros(len(candidates)), where=norms > 0)

        # Stable sort keeps insertion order among equal scores.
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            SearchHit(
                id=candidates[i].id,
                content=candidates[i].content,
                score=float(scores[i]),
                metadata=candidates[i].metadata(),
            )
            for i in order
        ]

    async def delete_by_document(self, org_id: str, document_id: str) -> int:
        async with self._lock:
            partition = self._partitions.get(org_id, {})
            doomed = [cid for cid, c in partition.items() if c.document_id == document_id]
            for cid in doomed:
                del partition[cid]
        logger.info("Deleted %d chunk(s) of document %s", len(doomed), document_id)
        return len(doomed)

    async def health_check(self) -> bool:
        return True
