"""Domain models for documents, chunks and ingestion jobs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Lifecycle of a document inside the ingestion pipeline."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.READY, DocumentStatus.FAILED)


# Status only moves forward.  ``pending -> failed`` covers a job whose
# deadline expired before ``processing`` was recorded.
ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.PROCESSING, DocumentStatus.FAILED}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.READY, DocumentStatus.FAILED}),
    DocumentStatus.READY: frozenset(),
    DocumentStatus.FAILED: frozenset(),
}


def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
    """Return ``True`` when *current* may move to *target*."""
    return target in ALLOWED_TRANSITIONS[current]


class Document(BaseModel):
    """An uploaded free-text document owned by one organization.

    Attributes
    ----------
    id:
        Document identifier (UUID4 string).
    org_id:
        Owning tenant.  Every read and write is scoped by it.
    name:
        Human-readable document name.
    content:
        Raw text.  Never included in listings.
    status:
        Current :class:`DocumentStatus`.
    chunk_count:
        Number of chunks stored once the document is ``ready``; ``0`` otherwise.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    org_id: str
    name: str
    content: str = ""
    status: DocumentStatus = DocumentStatus.PENDING
    chunk_count: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def summary(self) -> dict[str, Any]:
        """Metadata-only view used by listings and the HTTP layer."""
        return self.model_dump(mode="json", exclude={"content"})


class Chunk(BaseModel):
    """One embedded slice of a document, the unit of retrieval.

    ``org_id`` is copied from the parent document so tenant-scoped search
    can narrow candidates without a join.
    """

    org_id: str
    document_id: str
    chunk_index: int
    content: str
    embedding: list[float] = Field(default_factory=list)
    doc_name: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def id(self) -> str:
        """Deterministic identifier; upserting the same slot overwrites it."""
        return f"{self.document_id}_{self.chunk_index}"

    def metadata(self) -> dict[str, Any]:
        return {
            "org_id": self.org_id,
            "document_id": self.document_id,
            "doc_name": self.doc_name,
            "chunk_index": self.chunk_index,
            "created_at": self.created_at.isoformat(),
        }


class IngestJob(BaseModel):
    """In-memory unit of work placed on the ingestion queue."""

    document: Document
