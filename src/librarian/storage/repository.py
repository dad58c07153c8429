"""Document / chunk / catalog persistence.

Every public method runs in its own short-lived session, so a single
:class:`DocumentRepository` can be shared by ingestion worker threads.
Methods return plain records rather than ORM objects; nothing returned
here is bound to a session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import create_engine, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from librarian.errors import ExternalServiceError
from librarian.storage.models import Base, Document, DocumentCatalog, DocumentChunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentRecord:
    id: str
    filename: str
    original_filename: str
    mime_type: str
    size: int
    content_text: str | None
    catalog_id: str | None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass(frozen=True)
class ChunkRecord:
    id: str
    document_id: str
    chunk_index: int
    content: str
    start_char: int | None
    end_char: int | None


@dataclass(frozen=True)
class CatalogRecord:
    id: str
    name: str
    description: str | None
    parent_id: str | None


def _document_record(row: Document) -> DocumentRecord:
    return DocumentRecord(
        id=row.id,
        filename=row.filename,
        original_filename=row.original_filename,
        mime_type=row.mime_type,
        size=row.size,
        content_text=row.content_text,
        catalog_id=row.catalog_id,
        metadata=dict(row.metadata_ or {}),
        created_at=row.created_at,
    )


def _chunk_record(row: DocumentChunk) -> ChunkRecord:
    return ChunkRecord(
        id=row.id,
        document_id=row.document_id,
        chunk_index=row.chunk_index,
        content=row.content,
        start_char=row.start_char,
        end_char=row.end_char,
    )


def _catalog_record(row: DocumentCatalog) -> CatalogRecord:
    return CatalogRecord(id=row.id, name=row.name, description=row.description, parent_id=row.parent_id)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections may be used from worker threads."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


class DocumentRepository:
    """SQLAlchemy-backed store for documents, chunks and catalogs.

    Parameters
    ----------
    engine:
        A SQLAlchemy engine.  Call :meth:`create_schema` once to create
        the tables.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> DocumentRepository:
        return cls(create_db_engine(database_url))

    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)

    # -- documents ------------------------------------------------------------

    def create_document(
        self,
        *,
        filename: str,
        original_filename: str,
        mime_type: str,
        size: int,
        content_text: str | None,
        catalog_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DocumentRecord:
        row = Document(
            filename=filename,
            original_filename=original_filename,
            mime_type=mime_type,
            size=size,
            content_text=content_text,
            catalog_id=catalog_id or None,
            metadata_=metadata or {},
        )
        with self._session() as session:
            session.add(row)
            session.flush()
            return _document_record(row)

    def get_document(self, document_id: str) -> DocumentRecord | None:
        with self._session() as session:
            row = session.get(Document, document_id)
            return _document_record(row) if row is not None else None

    def get_documents(self, document_ids: Iterable[str]) -> dict[str, DocumentRecord]:
        ids = list(dict.fromkeys(document_ids))
        if not ids:
            return {}
        with self._session() as session:
            rows = session.scalars(select(Document).where(Document.id.in_(ids))).all()
            return {row.id: _document_record(row) for row in rows}

    def list_documents(self) -> list[DocumentRecord]:
        with self._session() as session:
            rows = session.scalars(select(Document).order_by(Document.created_at, Document.id)).all()
            return [_document_record(row) for row in rows]

    def find_by_filename(
        self,
        tokens: list[str],
        *,
        catalog_id: str | None = None,
        limit: int | None = None,
    ) -> list[DocumentRecord]:
        """Documents whose original filename contains any of *tokens* (case-insensitive)."""
        if not tokens:
            return []
        name = func.lower(Document.original_filename)
        stmt = select(Document).where(or_(*(name.contains(t.lower(), autoescape=True) for t in tokens)))
        if catalog_id:
            stmt = stmt.where(Document.catalog_id == catalog_id)
        stmt = stmt.order_by(Document.created_at, Document.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session() as session:
            return [_document_record(row) for row in session.scalars(stmt).all()]

    def delete_document(self, document_id: str) -> list[str]:
        """Delete a document and its chunks; returns the deleted chunk ids.

        Deleting an unknown id is a no-op and returns an empty list.
        """
        with self._session() as session:
            row = session.get(Document, document_id)
            if row is None:
                return []
            chunk_ids = [chunk.id for chunk in row.chunks]
            session.delete(row)
            return chunk_ids

    # -- chunks ---------------------------------------------------------------

    def add_chunk(
        self,
        *,
        document_id: str,
        chunk_index: int,
        content: str,
        start_char: int | None = None,
        end_char: int | None = None,
    ) -> ChunkRecord:
        row = DocumentChunk(
            document_id=document_id,
            chunk_index=chunk_index,
            content=content,
            start_char=start_char,
            end_char=end_char,
            metadata_={"chunkSize": len(content)},
        )
        with self._session() as session:
            session.add(row)
            session.flush()
            return _chunk_record(row)

    def get_chunks(self, document_id: str) -> list[ChunkRecord]:
        stmt = (
            select(DocumentChunk)
            .where(DocumentChunk.document_id == document_id)
            .order_by(DocumentChunk.chunk_index)
        )
        with self._session() as session:
            return [_chunk_record(row) for row in session.scalars(stmt).all()]

    def delete_chunks(self, document_id: str) -> list[str]:
        """Delete every chunk row of a document; returns their ids."""
        with self._session() as session:
            rows = session.scalars(select(DocumentChunk).where(DocumentChunk.document_id == document_id)).all()
            for row in rows:
                session.delete(row)
            return [row.id for row in rows]

    # -- catalogs -------------------------------------------------------------

    def create_catalog(
        self, name: str, *, description: str | None = None, parent_id: str | None = None
    ) -> CatalogRecord:
        row = DocumentCatalog(name=name, description=description, parent_id=parent_id or None)
        with self._session() as session:
            session.add(row)
            session.flush()
            return _catalog_record(row)

    def get_catalogs(self, catalog_ids: Iterable[str]) -> dict[str, CatalogRecord]:
        ids = [c for c in dict.fromkeys(catalog_ids) if c]
        if not ids:
            return {}
        with self._session() as session:
            rows = session.scalars(select(DocumentCatalog).where(DocumentCatalog.id.in_(ids))).all()
            return {row.id: _catalog_record(row) for row in rows}

    def list_catalogs(self) -> list[CatalogRecord]:
        with self._session() as session:
            rows = session.scalars(select(DocumentCatalog).order_by(DocumentCatalog.name)).all()
            return [_catalog_record(row) for row in rows]

    # -- internals ------------------------------------------------------------

    def _session(self) -> _UnitOfWork:
        return _UnitOfWork(self._session_factory)


class _UnitOfWork:
    """Session context: commit on success, roll back and wrap DB errors otherwise."""

    def __init__(self, factory: sessionmaker[Session]) -> None:
        self._factory = factory
        self._session: Session | None = None

    def __enter__(self) -> Session:
        self._session = self._factory()
        return self._session

    def __exit__(self, exc_type, exc, tb) -> bool:
        session = self._session
        assert session is not None
        try:
            if exc_type is None:
                try:
                    session.commit()
                except SQLAlchemyError as commit_exc:
                    session.rollback()
                    raise ExternalServiceError("database", str(commit_exc)) from commit_exc
                return False
            session.rollback()
            if isinstance(exc, SQLAlchemyError):
                logger.error("Database operation failed: %s", exc)
                raise ExternalServiceError("database", str(exc)) from exc
            return False
        finally:
            session.close()
