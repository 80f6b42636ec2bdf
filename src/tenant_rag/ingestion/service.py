"""Document operations exposed to the API layer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tenant_rag.exceptions import DocumentNotFoundError, ValidationError
from tenant_rag.ingestion.models import Document, DocumentStatus

if TYPE_CHECKING:
    from tenant_rag.ingestion.pipeline import IngestionPipeline
    from tenant_rag.ingestion.repository import DocumentRepository
    from tenant_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


def _require(value: str, field: str) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{field} is required", field=field)


class DocumentService:
    """Upload, list, inspect and delete a tenant's documents.

    Uploads return as soon as the metadata row exists; embedding happens
    later on the ingestion pipeline and is observed by polling :meth:`get`.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        pipeline: IngestionPipeline,
        store: VectorStoreBase,
    ) -> None:
        self._repository = repository
        self._pipeline = pipeline
        self._store = store

    async def upload(self, org_id: str, name: str, content: str) -> Document:
        _require(org_id, "org_id")
        _require(name, "name")
        _require(content, "content")

        document = Document(org_id=org_id, name=name, content=content)
        await self._repository.create(document)
        # A full queue is not an upload failure; the document stays pending.
        self._pipeline.enqueue(document)
        return document

    async def list(self, org_id: str) -> list[Document]:
        _require(org_id, "org_id")
        return await self._repository.list_by_org(org_id)

    async def get(self, document_id: str, org_id: str) -> Document:
        document = await self._repository.get(document_id)
        if document.org_id != org_id:
            raise DocumentNotFoundError(document_id)
        return document

    async def delete(self, document_id: str, org_id: str) -> None:
        """Remove a document and its chunks.

        Vector chunks go first: a crash in between leaves a visible row
        whose delete can be retried, never chunks nobody can reach.  A
        second sweep after the row is gone catches batches an in-flight
        ingestion job wrote in between; anything written later is removed
        by the job itself when its status update finds no document.
        """
        await self.get(document_id, org_id)
        removed = await self._store.delete_by_document(org_id, document_id)
        if not await self._repository.delete(document_id, org_id):
            raise DocumentNotFoundError(document_id)
        removed += await self._store.delete_by_document(org_id, document_id)
        logger.info("Deleted document %s (%d chunks)", document_id, removed)

    async def requeue(self, document_id: str, org_id: str) -> bool:
        """Re-submit a document still ``pending``, e.g. after queue overflow."""
        document = await self.get(document_id, org_id)
        if document.status is not DocumentStatus.PENDING:
            raise ValidationError(
                f"only pending documents can be requeued (status={document.status.value})",
                field="status",
            )
        return self._pipeline.enqueue(document)
