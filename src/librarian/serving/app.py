"""FastAPI application exposing the librarian core as a REST API."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from librarian.config import settings
from librarian.errors import LibrarianError, NotFoundError
from librarian.ingestion.pipeline import IngestPipeline, get_ingest_pipeline
from librarian.retrieval.base import VectorStoreBase
from librarian.retrieval.factory import get_repository, get_vector_store
from librarian.retrieval.models import DocumentDetail, SearchResponse
from librarian.retrieval.retriever import QueryPipeline, get_query_pipeline
from librarian.storage.catalogs import CatalogTree
from librarian.storage.repository import DocumentRepository

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Librarian API",
    version="0.1.0",
    description="Hybrid (vector + filename) document search over an ingested library.",
)

_STATUS_BY_KIND = {
    "validation": 422,
    "not_found": 404,
    "external_service": 502,
}


@app.exception_handler(LibrarianError)
async def librarian_error_handler(request: Request, exc: LibrarianError) -> JSONResponse:
    status = _STATUS_BY_KIND.get(exc.kind, 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


# ── Request / Response schemas ────────────────────────────────────────
class SearchRequest(BaseModel):
    """Incoming search query."""

    query: str = Field(min_length=1)
    catalog_id: str | None = None
    limit: int = Field(default=settings.search_default_limit, ge=1, le=50)
    rewrite: bool = True


class IngestResponse(BaseModel):
    """Outcome of an upload."""

    document_id: str
    chunk_count: int
    indexed: int
    failed: int


class CatalogRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    parent_id: str | None = None


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
def health(store: VectorStoreBase = Depends(get_vector_store)) -> dict[str, str]:
    """Liveness probe plus vector-store reachability."""
    return {"status": "ok", "vector_store": "ok" if store.health_check() else "unavailable"}


@app.post("/search", response_model=SearchResponse)
def search(request: SearchRequest, pipeline: QueryPipeline = Depends(get_query_pipeline)) -> SearchResponse:
    """Hybrid search over the library."""
    return pipeline.search(
        request.query,
        catalog_id=request.catalog_id,
        limit=request.limit,
        rewrite=request.rewrite,
    )


@app.post("/documents", response_model=IngestResponse, status_code=201)
def upload_document(
    file: UploadFile = File(...),
    catalog_id: str | None = Form(default=None),
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> IngestResponse:
    """Upload a PDF, DOCX, TXT or Markdown file and index it."""
    data = file.file.read()
    report = pipeline.ingest_file(
        file.filename or "upload",
        data,
        mime_type=file.content_type,
        catalog_id=catalog_id or None,
    )
    return IngestResponse(
        document_id=report.document_id,
        chunk_count=report.chunk_count,
        indexed=report.indexed,
        failed=report.failed,
    )


@app.get("/documents/{document_id}", response_model=DocumentDetail)
def get_document(document_id: str, pipeline: QueryPipeline = Depends(get_query_pipeline)) -> DocumentDetail:
    document = pipeline.get_document(document_id)
    if document is None:
        raise NotFoundError(f"Document {document_id} not found")
    return document


@app.delete("/documents/{document_id}", status_code=204)
def delete_document(document_id: str, pipeline: IngestPipeline = Depends(get_ingest_pipeline)) -> Response:
    if not pipeline.delete_document(document_id):
        raise NotFoundError(f"Document {document_id} not found")
    return Response(status_code=204)


@app.delete("/index")
def clear_index(store: VectorStoreBase = Depends(get_vector_store)) -> dict[str, int]:
    """Remove every point from the vector index; stored documents are kept."""
    return store.delete_all()


@app.post("/index/rebuild")
def rebuild_index(pipeline: IngestPipeline = Depends(get_ingest_pipeline)) -> dict[str, int]:
    """Clear the vector index and re-index every stored document."""
    reports = pipeline.reindex_all()
    return {
        "documents": len(reports),
        "indexed": sum(r.indexed for r in reports),
        "failed": sum(r.failed for r in reports),
    }


@app.get("/catalogs")
def list_catalogs(repository: DocumentRepository = Depends(get_repository)) -> list[dict]:
    """Catalog hierarchy as nested ``{id, name, children}`` objects."""
    return CatalogTree(repository.list_catalogs()).to_dict()


@app.post("/catalogs", status_code=201)
def create_catalog(
    request: CatalogRequest, repository: DocumentRepository = Depends(get_repository)
) -> dict[str, str | None]:
    catalog = repository.create_catalog(request.name, description=request.description, parent_id=request.parent_id)
    return {
        "id": catalog.id,
        "name": catalog.name,
        "description": catalog.description,
        "parent_id": catalog.parent_id,
    }
