"""Process-wide default clients, created once from settings.

Everything else takes its collaborators as constructor arguments; only
the HTTP app and the agent tools reach for these defaults.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from librarian.config import settings
from librarian.retrieval.base import VectorStoreBase
from librarian.storage.repository import DocumentRepository

logger = logging.getLogger(__name__)


def create_vector_store(backend: str = settings.vector_backend) -> VectorStoreBase:
    """Build the vector store selected by *backend* (``qdrant`` or ``chroma``)."""
    if backend == "qdrant":
        from librarian.retrieval.qdrant_store import QdrantVectorStore

        return QdrantVectorStore()
    if backend == "chroma":
        from librarian.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore()
    raise ValueError(f"Unsupported vector backend: {backend!r}")


@lru_cache(maxsize=1)
def get_vector_store() -> VectorStoreBase:
    store = create_vector_store(settings.vector_backend)
    logger.info("Using %s vector store, collection %r", settings.vector_backend, store.collection_name)
    return store


@lru_cache(maxsize=1)
def get_repository() -> DocumentRepository:
    repository = DocumentRepository.from_url(settings.database_url)
    repository.create_schema()
    return repository
