"""Unit tests for prompt assembly, fragment sinks and the query orchestrator."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeCompletionProvider, FakeEmbeddingProvider, RecordingSink, word_vector
from tenant_rag.exceptions import QueryError, ValidationError
from tenant_rag.generation.orchestrator import QueryOrchestrator, QueryRequest
from tenant_rag.generation.prompts import INSUFFICIENT_INFORMATION, SYSTEM_PROMPT, build_prompt
from tenant_rag.generation.sinks import BufferSink, QueueSink, SinkClosedError
from tenant_rag.ingestion.models import Chunk
from tenant_rag.retrieval.memory_store import InMemoryVectorStore
from tenant_rag.retrieval.models import SearchHit


def _hit(i: int, doc: str = "doc-1", name: str = "guide.md") -> SearchHit:
    return SearchHit(
        id=f"{doc}_{i}",
        content=f"content {i}",
        score=1.0 - i / 10,
        metadata={"org_id": "org-a", "document_id": doc, "doc_name": name, "chunk_index": i},
    )


async def _seed(store: InMemoryVectorStore, org: str, texts: list[str], doc: str = "doc-1") -> None:
    await store.upsert([
        Chunk(
            org_id=org, document_id=doc, doc_name=f"{doc}.txt",
            chunk_index=i, content=t, embedding=word_vector(t),
        )
        for i, t in enumerate(texts)
    ])


@pytest.fixture()
def completion() -> FakeCompletionProvider:
    return FakeCompletionProvider()


@pytest.fixture()
def orchestrator(
    store: InMemoryVectorStore,
    embedder: FakeEmbeddingProvider,
    completion: FakeCompletionProvider,
) -> QueryOrchestrator:
    return QueryOrchestrator(store, embedder, completion)


# ── Prompts ────────────────────────────────────────────────────────────


class TestPrompts:
    def test_system_prompt_demands_grounding(self) -> None:
        assert "ONLY the provided context" in SYSTEM_PROMPT
        assert INSUFFICIENT_INFORMATION in SYSTEM_PROMPT

    def test_chunks_are_labelled_by_position_and_source(self) -> None:
        _, user = build_prompt("Why?", [_hit(0), _hit(1, doc="doc-2", name="faq.md")])
        assert "--- Chunk 1 (doc: doc-1 / guide.md) ---\ncontent 0" in user
        assert "--- Chunk 2 (doc: doc-2 / faq.md) ---\ncontent 1" in user
        assert user.index("Chunk 1") < user.index("Chunk 2")
        assert user.endswith("Question: Why?")

    def test_question_is_verbatim(self) -> None:
        question = "  What's the *exact* limit?\n(see §4)  "
        _, user = build_prompt(question, [])
        assert user.endswith(f"Question: {question}")

    def test_empty_context_block(self) -> None:
        system, user = build_prompt("Anything?", [])
        assert system == SYSTEM_PROMPT
        assert user == "Context:\n\n\nQuestion: Anything?"

    def test_prompt_is_deterministic(self) -> None:
        hits = [_hit(i) for i in range(3)]
        assert build_prompt("q", hits) == build_prompt("q", list(hits))


class TestQueryRequest:
    @pytest.mark.parametrize("top_k", [0, -3])
    def test_non_positive_top_k_defaults_to_five(self, top_k: int) -> None:
        assert QueryRequest(org_id="o", question="q", top_k=top_k).top_k == 5

    def test_omitted_top_k_defaults_to_five(self) -> None:
        assert QueryRequest(org_id="o", question="q").top_k == 5

    def test_positive_top_k_is_kept(self) -> None:
        assert QueryRequest(org_id="o", question="q", top_k=2).top_k == 2

    @pytest.mark.asyncio
    async def test_retrieve_with_default_request(
        self, orchestrator: QueryOrchestrator, store: InMemoryVectorStore
    ) -> None:
        await _seed(store, "org-a", [f"fact number {i}" for i in range(8)])
        hits = await orchestrator.retrieve(QueryRequest(org_id="org-a", question="fact"))
        assert len(hits) == 5


# ── Sinks ──────────────────────────────────────────────────────────────


class TestSinks:
    @pytest.mark.asyncio
    async def test_send_after_close_is_rejected(self) -> None:
        sink = BufferSink()
        await sink.close()
        with pytest.raises(SinkClosedError):
            await sink.send("late")

    @pytest.mark.asyncio
    async def test_second_close_is_rejected(self) -> None:
        sink = QueueSink()
        await sink.close()
        with pytest.raises(SinkClosedError):
            await sink.close()

    @pytest.mark.asyncio
    async def test_queue_sink_raises_error_after_fragments(self) -> None:
        sink = QueueSink()
        await sink.send("a")
        await sink.close(QueryError("boom"))
        received: list[str] = []
        with pytest.raises(QueryError):
            async for fragment in sink:
                received.append(fragment)
        assert received == ["a"]


# ── Orchestrator: relay ────────────────────────────────────────────────


class TestRelay:
    @pytest.mark.asyncio
    async def test_fragments_relayed_unchanged_and_in_order(
        self, orchestrator: QueryOrchestrator, completion: FakeCompletionProvider
    ) -> None:
        completion.fragments = ["Line one\n", "", "  spaced  ", "é", "end"]
        sink = RecordingSink()
        await orchestrator.query("org-a", "question", 5, sink)
        assert sink.received == ["Line one\n", "", "  spaced  ", "é", "end"]
        assert sink.close_calls == 1
        assert sink.error is None

    @pytest.mark.asyncio
    async def test_retrieval_is_tenant_scoped(
        self,
        orchestrator: QueryOrchestrator,
        store: InMemoryVectorStore,
        completion: FakeCompletionProvider,
    ) -> None:
        await _seed(store, "org-a", ["refund window is 30 days"], doc="a-policy")
        await _seed(store, "org-b", ["refund window is 90 days"], doc="b-policy")

        await orchestrator.query("org-a", "refund window", 5, RecordingSink())

        _, user = completion.prompts[0]
        assert "30 days" in user
        assert "90 days" not in user
        assert "b-policy" not in user

    @pytest.mark.asyncio
    async def test_top_k_limits_context(
        self,
        orchestrator: QueryOrchestrator,
        store: InMemoryVectorStore,
        completion: FakeCompletionProvider,
    ) -> None:
        await _seed(store, "org-a", [f"fact number {i}" for i in range(8)])
        await orchestrator.query("org-a", "fact", 0, RecordingSink())
        _, user = completion.prompts[0]
        assert user.count("--- Chunk ") == 5

    @pytest.mark.asyncio
    async def test_empty_tenant_still_answers(
        self, store: InMemoryVectorStore, embedder: FakeEmbeddingProvider
    ) -> None:
        completion = FakeCompletionProvider([INSUFFICIENT_INFORMATION])
        orchestrator = QueryOrchestrator(store, embedder, completion)

        answer = await orchestrator.answer("org-empty", "What is the SLA?")

        assert answer == INSUFFICIENT_INFORMATION
        assert completion.prompts[0][1] == "Context:\n\n\nQuestion: What is the SLA?"

    @pytest.mark.asyncio
    async def test_empty_question_is_rejected(self, orchestrator: QueryOrchestrator) -> None:
        sink = RecordingSink()
        with pytest.raises(ValidationError):
            await orchestrator.query("org-a", "   ", 5, sink)
        assert sink.close_calls == 1


# ── Orchestrator: failures and cancellation ────────────────────────────


class TestFailureAndCancellation:
    @pytest.mark.asyncio
    async def test_provider_failure_closes_sink_once_with_error(
        self, orchestrator: QueryOrchestrator, completion: FakeCompletionProvider
    ) -> None:
        completion.fail_after = 2
        sink = RecordingSink()
        with pytest.raises(QueryError):
            await orchestrator.query("org-a", "q", 5, sink)
        assert sink.received == ["Hello", ", "]
        assert sink.close_calls == 1
        assert isinstance(sink.error, QueryError)

    @pytest.mark.asyncio
    async def test_cancellation_stops_relay_and_closes_once(
        self, orchestrator: QueryOrchestrator, completion: FakeCompletionProvider
    ) -> None:
        completion.fragments = [f"t{i}" for i in range(100)]
        completion.delay = 0.01
        sink = RecordingSink()

        task = asyncio.create_task(orchestrator.query("org-a", "q", 5, sink))
        while len(sink.received) < 3:
            await asyncio.sleep(0.005)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        delivered = len(sink.received)
        await asyncio.sleep(0.05)
        assert len(sink.received) == delivered < 100
        assert sink.close_calls == 1
        assert sink.error is None
        assert completion.closed

    @pytest.mark.asyncio
    async def test_stream_mode_yields_fragments(self, orchestrator: QueryOrchestrator) -> None:
        fragments = [f async for f in orchestrator.stream("org-a", "q")]
        assert fragments == ["Hello", ", ", "world", "!"]

    @pytest.mark.asyncio
    async def test_stream_mode_raises_after_partial_output(
        self, orchestrator: QueryOrchestrator, completion: FakeCompletionProvider
    ) -> None:
        completion.fail_after = 3
        received: list[str] = []
        with pytest.raises(QueryError):
            async for fragment in orchestrator.stream("org-a", "q"):
                received.append(fragment)
        assert received == ["Hello", ", ", "world"]

    @pytest.mark.asyncio
    async def test_abandoning_stream_cancels_provider(
        self, orchestrator: QueryOrchestrator, completion: FakeCompletionProvider
    ) -> None:
        completion.fragments = [f"t{i}" for i in range(100)]
        completion.delay = 0.01

        stream = orchestrator.stream("org-a", "q")
        first = await stream.__anext__()
        await stream.aclose()

        produced = completion.produced
        await asyncio.sleep(0.05)
        assert first == "t0"
        assert completion.closed
        assert completion.produced == produced < 100

    @pytest.mark.asyncio
    async def test_buffered_answer_concatenates(self, orchestrator: QueryOrchestrator) -> None:
        assert await orchestrator.answer("org-a", "q", top_k=3) == "Hello, world!"

    @pytest.mark.asyncio
    async def test_buffered_answer_surfaces_failure(
        self, orchestrator: QueryOrchestrator, completion: FakeCompletionProvider
    ) -> None:
        completion.fail_after = 0
        with pytest.raises(QueryError):
            await orchestrator.answer("org-a", "q")
