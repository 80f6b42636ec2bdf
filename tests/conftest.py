"""Shared pytest configuration, fakes and fixtures.

No test talks to OpenAI, HuggingFace or Chroma: providers are replaced by
deterministic in-process fakes.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable

import pytest

from tenant_rag.exceptions import CompletionError, EmbeddingError
from tenant_rag.generation.llm import CompletionProvider
from tenant_rag.generation.sinks import FragmentSink
from tenant_rag.ingestion.embedder import EmbeddingProvider
from tenant_rag.ingestion.repository import InMemoryDocumentRepository
from tenant_rag.retrieval.memory_store import InMemoryVectorStore

EMBEDDING_DIM = 16


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


def word_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Bag-of-words vector; stable across processes unlike ``hash()``."""
    vector = [0.0] * dim
    for word in text.lower().split():
        vector[sum(map(ord, word)) % dim] += 1.0
    if not any(vector):
        vector[0] = 1.0
    return vector


class FakeEmbeddingProvider(EmbeddingProvider):
    """Deterministic embedder recording every batch it receives."""

    def __init__(self, *, fail_on_call: int | None = None, delay: float = 0.0) -> None:
        self.batches: list[list[str]] = []
        self.queries: list[str] = []
        self._fail_on_call = fail_on_call
        self._delay = delay

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail_on_call is not None and len(self.batches) == self._fail_on_call:
            raise EmbeddingError("rate limited")
        return [word_vector(t) for t in texts]

    async def embed_one(self, text: str) -> list[float]:
        self.queries.append(text)
        return word_vector(text)


class FakeCompletionProvider(CompletionProvider):
    """Streams canned fragments, optionally failing or pausing mid-stream."""

    def __init__(
        self,
        fragments: list[str] | None = None,
        *,
        fail_after: int | None = None,
        delay: float = 0.0,
    ) -> None:
        self.fragments = fragments if fragments is not None else ["Hello", ", ", "world", "!"]
        self.fail_after = fail_after
        self.delay = delay
        self.prompts: list[tuple[str, str]] = []
        self.produced = 0
        self.closed = False

    async def stream(self, system_prompt: str, user_prompt: str) -> AsyncIterator[str]:
        self.prompts.append((system_prompt, user_prompt))
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i == self.fail_after:
                    raise CompletionError("upstream 500")
                if self.delay:
                    await asyncio.sleep(self.delay)
                self.produced += 1
                yield fragment
        finally:
            self.closed = True


class RecordingSink(FragmentSink):
    """Sink that records fragments and how many times it was closed."""

    def __init__(self) -> None:
        super().__init__()
        self.received: list[str] = []
        self.close_calls = 0

    async def close(self, error: BaseException | None = None) -> None:
        self.close_calls += 1
        await super().close(error)

    async def _deliver(self, fragment: str) -> None:
        self.received.append(fragment)

    async def _finish(self) -> None:
        pass


def words(n: int, prefix: str = "w") -> str:
    """``n`` distinct words, handy for exact chunk-boundary assertions."""
    return " ".join(f"{prefix}{i}" for i in range(n))


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture()
def store(embedder: FakeEmbeddingProvider) -> InMemoryVectorStore:
    return InMemoryVectorStore(embedder=embedder)


@pytest.fixture()
def repository() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


@pytest.fixture()
def make_words() -> Callable[..., str]:
    return words
