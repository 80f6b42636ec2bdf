"""Document metadata store consumed by the pipeline and document service."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from tenant_rag.exceptions import DocumentNotFoundError, InvalidStatusTransition
from tenant_rag.ingestion.models import Document, DocumentStatus, can_transition


class DocumentRepository(ABC):
    """CRUD contract for document metadata rows."""

    @abstractmethod
    async def create(self, document: Document) -> None:
        ...

    @abstractmethod
    async def get(self, document_id: str) -> Document:
        """Return the document or raise :class:`DocumentNotFoundError`."""
        ...

    @abstractmethod
    async def list_by_org(self, org_id: str) -> list[Document]:
        """Return the tenant's documents, newest first, without content."""
        ...

    @abstractmethod
    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunk_count: int = 0,
    ) -> Document:
        """Move the document to *status*.

        Raises :class:`InvalidStatusTransition` when the move would go
        backwards or leave a terminal state.
        """
        ...

    @abstractmethod
    async def delete(self, document_id: str, org_id: str) -> bool:
        """Delete the row if it belongs to *org_id*; return whether it existed."""
        ...


class InMemoryDocumentRepository(DocumentRepository):
    """Process-local repository used for tests and single-node deployments."""

    def __init__(self) -> None:
        self._rows: dict[str, Document] = {}
        self._lock = asyncio.Lock()

    async def create(self, document: Document) -> None:
        async with self._lock:
            self._rows[document.id] = document.model_copy()

    async def get(self, document_id: str) -> Document:
        row = self._rows.get(document_id)
        if row is None:
            raise DocumentNotFoundError(document_id)
        return row.model_copy()

    async def list_by_org(self, org_id: str) -> list[Document]:
        rows = [r for r in self._rows.values() if r.org_id == org_id]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(update={"content": ""}) for r in rows]

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunk_count: int = 0,
    ) -> Document:
        async with self._lock:
            row = self._rows.get(document_id)
            if row is None:
                raise DocumentNotFoundError(document_id)
            if not can_transition(row.status, status):
                raise InvalidStatusTransition(document_id, row.status.value, status.value)
            updated = row.model_copy(
                update={
                    "status": status,
                    "chunk_count": chunk_count,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            self._rows[document_id] = updated
            return updated.model_copy()

    async def delete(self, document_id: str, org_id: str) -> bool:
        async with self._lock:
            row = self._rows.get(document_id)
            if row is None or row.org_id != org_id:
                return False
            del self._rows[document_id]
            return True
