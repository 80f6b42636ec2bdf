"""Abstract base class for vector-store backends.

Adding a new backend (pgvector, Qdrant, ...) only requires subclassing
:class:`VectorStoreBase` and implementing the abstract methods.  Tenant
isolation is part of the contract: a backend must never return a chunk
whose stored ``org_id`` differs from the one searched, whatever the
vector proximity.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

from tenant_rag.exceptions import ValidationError, VectorStoreError
from tenant_rag.retrieval.models import MetadataFilter, SearchHit

if TYPE_CHECKING:
    from tenant_rag.ingestion.embedder import EmbeddingProvider
    from tenant_rag.ingestion.models import Chunk

QueryInput = str | Sequence[float]


class VectorStoreBase(ABC):
    """Backend-agnostic, tenant-scoped vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    embedder:
        Optional provider used when :meth:`search` receives raw text.
    """

    def __init__(self, collection_name: str, embedder: EmbeddingProvider | None = None) -> None:
        self.collection_name = collection_name
        self._embedder = embedder

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def upsert(self, chunks: Sequence[Chunk]) -> None:
        """Insert or replace *chunks*, keyed by ``(document_id, chunk_index)``."""
        ...

    @abstractmethod
    async def search_by_vector(
        self,
        org_id: str,
        query_embedding: Sequence[float],
        top_k: int,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        """Return up to *top_k* hits for *org_id*, highest score first.

        Each hit's ``metadata`` **must** contain ``org_id``,
        ``document_id``, ``doc_name`` and ``chunk_index``.
        """
        ...

    @abstractmethod
    async def delete_by_document(self, org_id: str, document_id: str) -> int:
        """Remove every chunk of *document_id* owned by *org_id*."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- shared behaviour -----------------------------------------------------

    async def search(
        self,
        org_id: str,
        query: QueryInput,
        top_k: int,
        *,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        """Tenant-scoped similarity search by vector or by text.

        Hits from any other tenant are discarded here as well, so a backend
        whose native filter misbehaves still cannot leak data.
        """
        if not org_id:
            raise ValidationError("org_id is required for search", field="org_id")
        if top_k <= 0:
            raise ValidationError("top_k must be positive", field="top_k")

        if isinstance(query, str):
            if self._embedder is None:
                raise VectorStoreError(
                    f"{type(self).__name__} needs an embedding provider to search by text"
                )
            query = await self._embedder.embed_one(query)

        hits = await self.search_by_vector(org_id, query, top_k, filters)
        return [h for h in hits if h.org_id == org_id][:top_k]
