"""FastAPI application exposing document ingestion and RAG queries.

Authentication happens upstream; the gateway forwards the caller's tenant
in the ``X-Org-ID`` header.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated, AsyncIterator

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from tenant_rag.config import configure_logging
from tenant_rag.exceptions import DocumentNotFoundError, QueryError, TenantRAGError, ValidationError
from tenant_rag.generation.orchestrator import QueryOrchestrator
from tenant_rag.ingestion.pipeline import IngestionPipeline
from tenant_rag.ingestion.service import DocumentService

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Long-lived collaborators shared by every request."""

    documents: DocumentService
    orchestrator: QueryOrchestrator
    pipeline: IngestionPipeline


def build_components() -> Components:
    """Wire the production stack from :mod:`tenant_rag.config` settings."""
    from tenant_rag.generation.llm import LangChainCompletionProvider
    from tenant_rag.ingestion.embedder import LangChainEmbeddingProvider
    from tenant_rag.ingestion.repository import InMemoryDocumentRepository
    from tenant_rag.retrieval.chroma_store import ChromaVectorStore

    embedder = LangChainEmbeddingProvider()
    store = ChromaVectorStore(embedder=embedder)
    repository = InMemoryDocumentRepository()
    pipeline = IngestionPipeline(repository, embedder, store)
    return Components(
        documents=DocumentService(repository, pipeline, store),
        orchestrator=QueryOrchestrator(store, embedder, LangChainCompletionProvider()),
        pipeline=pipeline,
    )


# ── Request schemas ───────────────────────────────────────────────────
class UploadRequest(BaseModel):
    """New document body."""

    name: str
    content: str


class QueryBody(BaseModel):
    """Question from the user; ``top_k <= 0`` selects the default."""

    question: str
    top_k: int = 0


# ── Dependencies ──────────────────────────────────────────────────────
def get_components(request: Request) -> Components:
    components = getattr(request.app.state, "components", None)
    if components is None:
        raise HTTPException(status_code=503, detail="service not started")
    return components


def get_org_id(x_org_id: Annotated[str | None, Header()] = None) -> str:
    if not x_org_id:
        raise HTTPException(status_code=401, detail="missing X-Org-ID header")
    return x_org_id


ComponentsDep = Annotated[Components, Depends(get_components)]
OrgDep = Annotated[str, Depends(get_org_id)]


def _sse(fragment: str) -> str:
    # One event per fragment; raw newlines would split the SSE frame.
    return "data: " + fragment.replace("\n", "\\n") + "\n\n"


def create_app(components: Components | None = None) -> FastAPI:
    """Build the API.  Without *components* the production stack is wired at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        app.state.components = components or build_components()
        app.state.components.pipeline.start()
        logger.info("Tenant RAG API started")
        try:
            yield
        finally:
            await app.state.components.pipeline.stop()

    app = FastAPI(
        title="Tenant RAG API",
        version="0.1.0",
        description="Multi-tenant document ingestion and retrieval-augmented answers.",
        lifespan=lifespan,
    )

    @app.exception_handler(TenantRAGError)
    async def _handle_domain_error(request: Request, exc: TenantRAGError) -> JSONResponse:
        if isinstance(exc, ValidationError):
            status = 400
        elif isinstance(exc, DocumentNotFoundError):
            status = 404
        elif isinstance(exc, QueryError):
            status = 502
        else:
            status = 500
        return JSONResponse(status_code=status, content={"error": exc.message})

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.post("/documents", status_code=202)
    async def upload_document(body: UploadRequest, org_id: OrgDep, c: ComponentsDep) -> dict:
        """Accept a document; embedding happens asynchronously."""
        document = await c.documents.upload(org_id, body.name, body.content)
        return document.summary()

    @app.get("/documents")
    async def list_documents(org_id: OrgDep, c: ComponentsDep) -> dict:
        documents = await c.documents.list(org_id)
        return {"documents": [d.summary() for d in documents], "count": len(documents)}

    @app.get("/documents/{document_id}")
    async def get_document(document_id: str, org_id: OrgDep, c: ComponentsDep) -> dict:
        """Poll a document's ingestion status."""
        document = await c.documents.get(document_id, org_id)
        return document.summary()

    @app.delete("/documents/{document_id}", status_code=204)
    async def delete_document(document_id: str, org_id: OrgDep, c: ComponentsDep) -> Response:
        await c.documents.delete(document_id, org_id)
        return Response(status_code=204)

    @app.post("/query")
    async def query(body: QueryBody, org_id: OrgDep, c: ComponentsDep) -> StreamingResponse:
        """Stream the answer as server-sent events, ending with ``[DONE]``."""
        if not body.question.strip():
            raise ValidationError("question is required", field="question")

        async def events() -> AsyncIterator[str]:
            try:
                async for fragment in c.orchestrator.stream(org_id, body.question, body.top_k):
                    yield _sse(fragment)
            except TenantRAGError as exc:
                yield f"event: error\ndata: {exc.message}\n\n"
                return
            yield "data: [DONE]\n\n"

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.post("/query/sync")
    async def query_sync(body: QueryBody, org_id: OrgDep, c: ComponentsDep) -> dict[str, str]:
        """Non-streaming variant returning the whole answer."""
        answer = await c.orchestrator.answer(org_id, body.question, body.top_k)
        return {"answer": answer}

    return app


app = create_app()


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("tenant_rag.serving.app:app", host="0.0.0.0", port=8080)


if __name__ == "__main__":
    main()
