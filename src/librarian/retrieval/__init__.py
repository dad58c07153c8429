"""
Retrieval: vector search, filename matching, hybrid ranking.

This module wraps the vector store behind a clean interface so that
the agent layer never needs to know which DB is backing retrieval.

Public surface
--------------
- :class:`QueryPipeline`: main entry point for hybrid search.
- :class:`HybridRanker`: adaptive filtering, merge and preview policy.
- :class:`LexicalMatcher`: filename keyword matching.
- :class:`VectorStoreBase`: abstract backend (subclass for other stores).
- :class:`QdrantVectorStore`, :class:`ChromaVectorStore`: backends.
- :func:`build_filter` and the result models.
"""

from librarian.retrieval.base import VectorStoreBase
from librarian.retrieval.lexical import LexicalMatcher
from librarian.retrieval.models import (
    EqualityCondition,
    LexicalMatch,
    MatchType,
    RankedDocument,
    SearchHit,
    SearchResponse,
    VectorHit,
    build_filter,
)
from librarian.retrieval.ranker import HybridRanker, RankingThresholds

__all__ = [
    "ChromaVectorStore",
    "EqualityCondition",
    "HybridRanker",
    "LexicalMatch",
    "LexicalMatcher",
    "MatchType",
    "QdrantVectorStore",
    "QueryPipeline",
    "RankedDocument",
    "RankingThresholds",
    "SearchHit",
    "SearchResponse",
    "VectorHit",
    "VectorStoreBase",
    "build_filter",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import backends and the pipeline to avoid client imports at import time."""
    if name == "ChromaVectorStore":
        from librarian.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    if name == "QdrantVectorStore":
        from librarian.retrieval.qdrant_store import QdrantVectorStore

        return QdrantVectorStore
    if name == "QueryPipeline":
        from librarian.retrieval.retriever import QueryPipeline

        return QueryPipeline
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
