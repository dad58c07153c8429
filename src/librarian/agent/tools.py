"""LangChain tool definitions exposed to the librarian agent.

Each tool wraps one capability of the retrieval core.  Tools never
raise: failures come back as ``{"success": False, "message": ...}`` so
the agent can tell the user what went wrong.

Dependency-injection note
-------------------------
The ``run_*`` functions take the pipeline / repository explicitly and
hold all the logic; the ``@tool`` wrappers only bind the process-wide
defaults.  Tests call the ``run_*`` functions with fakes.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.tools import tool

from librarian.retrieval.factory import get_repository
from librarian.retrieval.models import SearchHit
from librarian.retrieval.retriever import QueryPipeline, get_query_pipeline
from librarian.storage.repository import DocumentRepository

logger = logging.getLogger(__name__)

DOCUMENT_TEXT_PREVIEW_CHARS = 1000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _relevance_floor(hits: list[SearchHit], high_score: float = 0.4, window: float = 0.05) -> float:
    top = hits[0].score if hits else 0.0
    return top - window if top > high_score else 0.35


def _format_hit(hit: SearchHit) -> dict[str, Any]:
    return {
        "documentId": hit.document_id,
        "filename": hit.filename,
        "score": hit.score,
        "matchType": hit.match_type.value,
        "relevance": hit.relevance,
        "preview": hit.preview,
        "isFullContent": hit.is_full_content,
        "catalog": hit.catalog.model_dump() if hit.catalog else None,
    }


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------


def run_search(
    pipeline: QueryPipeline,
    query: str,
    catalog_id: str | None = None,
    limit: int = 5,
) -> dict[str, Any]:
    """Search and keep only results close to the best one."""
    try:
        response = pipeline.search(query, catalog_id=catalog_id, limit=limit)
    except Exception as exc:
        logger.exception("search_documents failed for %r", query)
        return {"success": False, "message": f"Search failed: {exc}", "results": [], "searchQuery": query}

    if response.is_empty:
        logger.info("search_documents found nothing for %r", query)
        return {
            "success": True,
            "message": "No documents found",
            "results": [],
            "searchQuery": response.search_query,
            "totalResults": 0,
        }

    ordered = sorted(response.results, key=lambda h: h.score, reverse=True)
    floor = _relevance_floor(ordered)
    relevant = [h for h in ordered if h.score >= floor]
    logger.info(
        "search_documents: %d of %d results above %.3f for %r",
        len(relevant),
        len(ordered),
        floor,
        query,
    )
    return {
        "success": True,
        "message": f"Found {len(response.results)} document(s)",
        "results": [_format_hit(h) for h in relevant],
        "searchQuery": response.search_query,
        "totalResults": len(response.results),
    }


def run_get_document(pipeline: QueryPipeline, document_id: str) -> dict[str, Any]:
    try:
        doc = pipeline.get_document(document_id)
    except Exception as exc:
        logger.exception("get_document failed for %s", document_id)
        return {"success": False, "message": f"Failed to load document: {exc}", "document": None}

    if doc is None:
        return {"success": False, "message": "Document not found", "document": None}
    return {
        "success": True,
        "message": "Document found",
        "document": {
            "id": doc.id,
            "filename": doc.original_filename,
            "mimeType": doc.mime_type,
            "size": doc.size,
            "contentText": (doc.content_text or "")[:DOCUMENT_TEXT_PREVIEW_CHARS],
            "catalog": doc.catalog.model_dump() if doc.catalog else None,
            "chunksCount": doc.chunk_count,
            "createdAt": doc.created_at.isoformat() if doc.created_at else None,
        },
    }


def run_create_catalog(
    repository: DocumentRepository,
    name: str,
    description: str | None = None,
    parent_id: str | None = None,
) -> dict[str, Any]:
    try:
        catalog = repository.create_catalog(name, description=description, parent_id=parent_id)
    except Exception as exc:
        logger.exception("create_catalog failed for %r", name)
        return {"success": False, "message": f"Failed to create catalog: {exc}", "catalog": None}
    return {
        "success": True,
        "message": "Catalog created",
        "catalog": {
            "id": catalog.id,
            "name": catalog.name,
            "description": catalog.description,
            "parentId": catalog.parent_id,
        },
    }


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@tool
def search_documents(query: str, catalog_id: str | None = None, limit: int = 5) -> dict[str, Any]:
    """Search the document library by meaning and by filename.

    Use this tool whenever the user asks about a topic, a document or a
    file.  Highly relevant results carry the full document text in
    ``preview`` (``isFullContent`` is true); answer from that text.

    Parameters
    ----------
    query:
        Natural-language search query.
    catalog_id:
        Optional catalog id to restrict the search to.
    limit:
        Number of results (default 5).
    """
    return run_search(get_query_pipeline(), query, catalog_id=catalog_id, limit=limit)


@tool
def get_document(document_id: str) -> dict[str, Any]:
    """Get details of one document by its id.

    Use this after a search when the user wants more about a specific
    document.  Returns metadata, catalog, chunk count and the first part
    of the text.
    """
    return run_get_document(get_query_pipeline(), document_id)


@tool
def create_catalog(name: str, description: str | None = None, parent_id: str | None = None) -> dict[str, Any]:
    """Create a document catalog, optionally nested under ``parent_id``."""
    return run_create_catalog(get_repository(), name, description=description, parent_id=parent_id)


TOOL_REGISTRY: dict[str, Any] = {
    "search_documents": search_documents,
    "get_document": get_document,
    "create_catalog": create_catalog,
}
"""Mapping of tool name → tool callable, for binding to a chat model."""
