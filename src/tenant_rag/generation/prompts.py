"""Prompt templates for grounded question answering.

Prompt assembly is deterministic: the same question and hits always
produce byte-identical prompts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tenant_rag.retrieval.models import SearchHit

INSUFFICIENT_INFORMATION = "I don't have enough information to answer that."

SYSTEM_PROMPT = f"""\
You are a helpful knowledge-base assistant.
Answer the user's question using ONLY the provided context chunks.
If the answer is not in the context, say "{INSUFFICIENT_INFORMATION}"
Be concise and cite chunk numbers when referencing specific information.
"""


def format_context(hits: list[SearchHit]) -> str:
    """Numbered listing of chunks labelled with their source document."""
    parts: list[str] = []
    for i, hit in enumerate(hits, 1):
        parts.append(
            f"--- Chunk {i} (doc: {hit.document_id} / {hit.doc_name}) ---\n{hit.content}\n\n"
        )
    return "".join(parts)


def build_prompt(question: str, hits: list[SearchHit]) -> tuple[str, str]:
    """Return the ``(system, user)`` prompt pair for one question.

    Parameters
    ----------
    question:
        The user question, embedded verbatim.
    hits:
        Retrieved chunks in rank order; may be empty.
    """
    user = f"Context:\n{format_context(hits)}\n\nQuestion: {question}"
    return SYSTEM_PROMPT, user
