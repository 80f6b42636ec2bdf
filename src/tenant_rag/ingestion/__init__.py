"""
Ingestion — chunking, embedding and storing uploaded documents.

Uploads are accepted immediately and processed by a fixed pool of asyncio
workers fed from a bounded queue.  Each document moves
``pending → processing → ready | failed``.

Public surface
--------------
- :class:`DocumentService` — upload / list / get / delete / requeue.
- :class:`IngestionPipeline` — queue + worker pool.
- :func:`split` — word-window chunker.
- :class:`Document`, :class:`DocumentStatus`, :class:`Chunk` — data models.
"""

from tenant_rag.ingestion.chunker import split, split_document
from tenant_rag.ingestion.models import Chunk, Document, DocumentStatus, IngestJob
from tenant_rag.ingestion.pipeline import IngestionPipeline
from tenant_rag.ingestion.service import DocumentService

__all__ = [
    "Chunk",
    "Document",
    "DocumentService",
    "DocumentStatus",
    "IngestJob",
    "IngestionPipeline",
    "split",
    "split_document",
]
