"""Embedding provider interface and its LangChain-backed implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from tenant_rag.config import settings
from tenant_rag.exceptions import EmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Turns text into fixed-dimension vectors.

    Batch size is chosen by the caller; implementations should send each
    call to the backend as a single request where possible.
    """

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order."""
        ...

    @abstractmethod
    async def embed_one(self, text: str) -> list[float]:
        """Return the vector for a single query text."""
        ...


class LangChainEmbeddingProvider(EmbeddingProvider):
    """Adapter over any :class:`langchain_core.embeddings.Embeddings`.

    Backend exceptions are re-raised as :class:`EmbeddingError` so the
    ingestion pipeline sees a single failure type.
    """

    def __init__(self, embeddings: Embeddings | None = None) -> None:
        self._embeddings = embeddings if embeddings is not None else get_embeddings()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = await self._embeddings.aembed_documents(texts)
        except Exception as exc:
            raise EmbeddingError(f"embedding batch failed: {exc}", {"batch_size": len(texts)}) from exc
        if len(vectors) != len(texts):
            raise EmbeddingError(
                "embedding provider returned a mismatched number of vectors",
                {"expected": len(texts), "received": len(vectors)},
            )
        return vectors

    async def embed_one(self, text: str) -> list[float]:
        try:
            return await self._embeddings.aembed_query(text)
        except Exception as exc:
            raise EmbeddingError(f"query embedding failed: {exc}") from exc


def get_embeddings() -> Embeddings:
    """Return the configured LangChain embeddings backend."""
    if settings.embedding_backend == "openai":
        from langchain_openai import OpenAIEmbeddings

        logger.info("Using OpenAI embeddings: %s", settings.embedding_model)
        return OpenAIEmbeddings(model=settings.embedding_model, api_key=settings.openai_api_key)

    from langchain_huggingface import HuggingFaceEmbeddings

    logger.info("Using HuggingFace embeddings: %s", settings.embedding_model)
    return HuggingFaceEmbeddings(model_name=settings.embedding_model)
