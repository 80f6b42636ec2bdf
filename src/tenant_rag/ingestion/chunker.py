"""Word-window text chunking."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from langchain_text_splitters import TextSplitter

from tenant_rag.config import settings

if TYPE_CHECKING:
    from langchain_core.documents import Document as LCDocument

    from tenant_rag.ingestion.models import Document


def _validate(chunk_size: int, chunk_overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise ValueError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise ValueError(
            f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
        )


class WordWindowSplitter(TextSplitter):
    """Sliding window over whitespace-delimited words.

    Every chunk holds at most ``chunk_size`` words and each chunk after the
    first starts with the last ``chunk_overlap`` words of its predecessor.
    The window stops as soon as it covers the end of the text, so only the
    final chunk can be shorter than ``chunk_size``.
    """

    def __init__(self, chunk_size: int = 512, chunk_overlap: int = 64, **kwargs: Any) -> None:
        _validate(chunk_size, chunk_overlap)
        super().__init__(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=lambda text: len(text.split()),
            **kwargs,
        )

    def split_text(self, text: str) -> list[str]:
        words = text.split()
        if not words:
            return []

        stride = self._chunk_size - self._chunk_overlap
        chunks: list[str] = []
        start = 0
        while True:
            chunks.append(" ".join(words[start : start + self._chunk_size]))
            if start + self._chunk_size >= len(words):
                break
            start += stride
        return chunks


def split(
    content: str,
    chunk_size: int = 512,
    chunk_overlap: int = 64,
) -> list[str]:
    """Split *content* into overlapping word windows.

    Parameters
    ----------
    content:
        Raw document text.
    chunk_size:
        Maximum number of words per chunk.
    chunk_overlap:
        Number of trailing words of a chunk repeated at the start of the next.

    Returns
    -------
    list[str]
        Ordered chunks; empty only when *content* has no words.
    """
    return WordWindowSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap).split_text(content)


def split_document(
    document: Document,
    chunk_size: int | None = None,
    chunk_overlap: int | None = None,
) -> list[LCDocument]:
    """Split *document* and attach tenant / document metadata to each chunk."""
    splitter = WordWindowSplitter(
        chunk_size=chunk_size or settings.chunk_size,
        chunk_overlap=settings.chunk_overlap if chunk_overlap is None else chunk_overlap,
    )
    chunks = splitter.create_documents(
        [document.content],
        metadatas=[
            {
                "org_id": document.org_id,
                "document_id": document.id,
                "doc_name": document.name,
            }
        ],
    )
    for index, chunk in enumerate(chunks):
        chunk.metadata["chunk_index"] = index
    return chunks
