"""
Generation — prompt assembly and streaming answer relay.

Public API
----------
- :class:`QueryOrchestrator` — ``query`` / ``stream`` / ``answer``.
- :class:`CompletionProvider` — streaming LLM interface.
- :class:`QueueSink`, :class:`BufferSink` — fragment sinks.
"""

from tenant_rag.generation.llm import CompletionProvider
from tenant_rag.generation.orchestrator import QueryOrchestrator, QueryRequest
from tenant_rag.generation.sinks import BufferSink, FragmentSink, QueueSink

__all__ = [
    "BufferSink",
    "CompletionProvider",
    "FragmentSink",
    "QueryOrchestrator",
    "QueryRequest",
    "QueueSink",
]
