"""
Retrieval — tenant-scoped vector search.

Every search is pinned to one organization; backends must never return
another tenant's chunks.

Public surface
--------------
- :class:`VectorStoreBase` — abstract backend (subclass for pgvector, etc.).
- :class:`InMemoryVectorStore` — exact cosine search in process.
- :class:`ChromaVectorStore` — Chroma backend.
- :class:`SearchHit`, :class:`MetadataFilter` — data models.
"""

from tenant_rag.retrieval.base import VectorStoreBase
from tenant_rag.retrieval.memory_store import InMemoryVectorStore
from tenant_rag.retrieval.models import MetadataFilter, SearchHit

__all__ = [
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "MetadataFilter",
    "SearchHit",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from tenant_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
