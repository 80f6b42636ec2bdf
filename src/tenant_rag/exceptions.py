"""Exception hierarchy for the tenant RAG core.

Validation errors are raised synchronously and never reach the ingestion
queue.  Provider and store errors are fatal to the ingestion job they occur
in and are surfaced to the caller of a query.
"""

from __future__ import annotations

from typing import Any


class TenantRAGError(Exception):
    """Base exception for all tenant RAG errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(TenantRAGError):
    """Raised when caller input is rejected before any work is scheduled."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class DocumentNotFoundError(TenantRAGError):
    """Raised when a document does not exist for the requesting tenant."""

    def __init__(self, document_id: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["document_id"] = document_id
        super().__init__(f"Document not found: {document_id}", details)


class InvalidStatusTransition(TenantRAGError):
    """Raised when a document status change would move backwards."""

    def __init__(self, document_id: str, current: str, target: str) -> None:
        super().__init__(
            f"Cannot move document {document_id} from {current!r} to {target!r}",
            {"document_id": document_id, "current": current, "target": target},
        )


class ProviderError(TenantRAGError):
    """Base class for failures reported by an external model provider."""


class EmbeddingError(ProviderError):
    """The embedding provider failed to return vectors."""


class CompletionError(ProviderError):
    """The completion provider failed while producing fragments."""


class VectorStoreError(TenantRAGError):
    """The vector retrieval store rejected or failed an operation."""


class QueryError(TenantRAGError):
    """A query could not be answered; partial output is not retracted."""
