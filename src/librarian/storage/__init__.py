"""
Storage: relational persistence for documents, chunks and catalogs.

Embeddings are *not* stored here; they live in the vector index keyed
by chunk id.
"""

from librarian.storage.catalogs import CatalogNode, CatalogTree
from librarian.storage.repository import (
    CatalogRecord,
    ChunkRecord,
    DocumentRecord,
    DocumentRepository,
    create_db_engine,
)

__all__ = [
    "CatalogNode",
    "CatalogRecord",
    "CatalogTree",
    "ChunkRecord",
    "DocumentRecord",
    "DocumentRepository",
    "create_db_engine",
]
