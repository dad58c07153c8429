"""Hybrid retriever: the primary public interface for search.

A query flows through: rewrite → embed → (vector search ∥ filename
match) → hybrid ranking → result assembly.  The class is decoupled from
LangChain so that non-agent callers (the HTTP app, scripts, tests) can
use it directly.

Usage::

    from librarian.retrieval.retriever import get_query_pipeline

    response = get_query_pipeline().search("hackathon rules", limit=3)
    for hit in response.results:
        print(hit.filename, hit.score, hit.match_type)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache

from librarian.agent.llm import get_llm
from librarian.agent.rewriter import QueryRewriter
from librarian.config import settings
from librarian.errors import ValidationError
from librarian.ingestion.embedder import EmbeddingClient, get_embedding_client
from librarian.retrieval.base import VectorStoreBase
from librarian.retrieval.factory import get_repository, get_vector_store
from librarian.retrieval.lexical import LexicalMatcher
from librarian.retrieval.models import (
    CatalogRef,
    DocumentDetail,
    SearchHit,
    SearchResponse,
    build_filter,
)
from librarian.retrieval.ranker import HybridRanker, RankingThresholds
from librarian.storage.repository import DocumentRepository

logger = logging.getLogger(__name__)


class QueryPipeline:
    """Answers search queries by combining vector and filename retrieval.

    Parameters
    ----------
    store:
        Vector index holding chunk embeddings.
    embedder:
        Client used to embed the (rewritten) query.
    repository:
        Relational store; source of filenames, document text and catalogs.
    rewriter:
        Optional query rewriter.  Without one, queries are used as given.
    ranker:
        Hybrid ranker; defaults to thresholds from settings.
    score_threshold:
        Minimum vector similarity passed to the store.
    candidate_multiplier:
        The store is asked for ``limit * candidate_multiplier`` hits.
    default_limit:
        Result count when the caller gives none.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        repository: DocumentRepository,
        *,
        rewriter: QueryRewriter | None = None,
        ranker: HybridRanker | None = None,
        score_threshold: float = settings.search_score_threshold,
        candidate_multiplier: int = settings.search_candidate_multiplier,
        default_limit: int = settings.search_default_limit,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._repository = repository
        self._lexical = LexicalMatcher(repository)
        self._rewriter = rewriter
        self._ranker = ranker or HybridRanker(RankingThresholds.from_settings())
        self.score_threshold = score_threshold
        self.candidate_multiplier = candidate_multiplier
        self.default_limit = default_limit

    # -- public API -----------------------------------------------------------

    def search(
        self,
        query: str,
        *,
        catalog_id: str | None = None,
        limit: int | None = None,
        rewrite: bool = True,
    ) -> SearchResponse:
        """Run a hybrid search.

        Parameters
        ----------
        query:
            The user's question as typed.
        catalog_id:
            Restrict results to one catalog.
        limit:
            Maximum number of documents returned.
        rewrite:
            Pass the query through the rewriter first.

        Returns
        -------
        SearchResponse
            Results plus the original and the rewritten query.  No relevant
            documents means an empty ``results`` list.

        Raises
        ------
        ValidationError
            If *query* is blank.
        ExternalServiceError
            If embedding or vector search fails.
        """
        if not query or not query.strip():
            raise ValidationError("Search query cannot be empty")
        limit = limit if limit is not None else self.default_limit

        search_query = query.strip()
        if rewrite and self._rewriter is not None:
            search_query = self._rewriter.rewrite(query)
        logger.info("Search %r -> %r (catalog=%s, limit=%d)", query, search_query, catalog_id, limit)

        vector = self._embedder.embed(search_query)
        with ThreadPoolExecutor(max_workers=2) as pool:
            vector_future = pool.submit(
                self._store.search,
                vector,
                limit=limit * self.candidate_multiplier,
                filters=build_filter(catalogId=catalog_id),
                score_threshold=self.score_threshold,
            )
            lexical_future = pool.submit(
                self._lexical.match_by_filename, search_query, catalog_id, limit=limit * 2
            )
            vector_hits = vector_future.result()
            lexical_matches = lexical_future.result()

        documents = self._repository.get_documents(
            [h.document_id for h in vector_hits if h.document_id]
            + [m.document_id for m in lexical_matches]
        )
        vector_hits = [h for h in vector_hits if h.document_id in documents]
        lexical_matches = [m for m in lexical_matches if m.document_id in documents]

        ranked = self._ranker.rank(vector_hits, lexical_matches, limit)
        catalogs = self._repository.get_catalogs(
            documents[r.document_id].catalog_id for r in ranked if documents[r.document_id].catalog_id
        )

        results: list[SearchHit] = []
        for rank, item in enumerate(ranked):
            doc = documents[item.document_id]
            preview, is_full = self._ranker.select_preview(item.score, rank, item.chunk, doc.content_text)
            catalog = catalogs.get(doc.catalog_id) if doc.catalog_id else None
            results.append(
                SearchHit(
                    document_id=doc.id,
                    filename=doc.original_filename,
                    score=item.score,
                    match_type=item.match_type,
                    relevance=self._ranker.relevance_label(item.score, rank),
                    preview=preview,
                    is_full_content=is_full,
                    catalog=CatalogRef(id=catalog.id, name=catalog.name) if catalog else None,
                )
            )

        logger.info(
            "Search returned %d documents (%d vector hits, %d filename matches)",
            len(results),
            len(vector_hits),
            len(lexical_matches),
        )
        return SearchResponse(query=query, search_query=search_query, results=results)

    def get_document(self, document_id: str) -> DocumentDetail | None:
        """Return a stored document with its catalog and chunk count, or ``None``."""
        doc = self._repository.get_document(document_id)
        if doc is None:
            return None
        catalog = self._repository.get_catalogs([doc.catalog_id]).get(doc.catalog_id) if doc.catalog_id else None
        return DocumentDetail(
            id=doc.id,
            filename=doc.filename,
            original_filename=doc.original_filename,
            mime_type=doc.mime_type,
            size=doc.size,
            content_text=doc.content_text,
            metadata=doc.metadata,
            catalog=CatalogRef(id=catalog.id, name=catalog.name) if catalog else None,
            chunk_count=len(self._repository.get_chunks(doc.id)),
            created_at=doc.created_at,
        )


@lru_cache(maxsize=1)
def get_query_pipeline() -> QueryPipeline:
    """Process-wide pipeline built from settings."""
    rewriter = None
    if settings.query_rewrite_enabled:
        rewriter = QueryRewriter(get_llm(temperature=0.3, max_tokens=50))
    return QueryPipeline(get_vector_store(), get_embedding_client(), get_repository(), rewriter=rewriter)
