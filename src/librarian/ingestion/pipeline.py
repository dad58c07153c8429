"""Ingestion pipeline: upload → text → chunks → embeddings → stores.

Usage::

    from librarian.ingestion.pipeline import get_ingest_pipeline

    report = get_ingest_pipeline().ingest_file("handbook.pdf", data)
    print(report.document_id, report.indexed, report.failed)
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from functools import lru_cache

from librarian.config import settings
from librarian.errors import LibrarianError
from librarian.ingestion.chunker import Segmenter, TextSegment
from librarian.ingestion.embedder import EmbeddingClient, get_embedding_client
from librarian.ingestion.loader import detect_mime_type, extract_text
from librarian.retrieval.base import VectorStoreBase
from librarian.retrieval.factory import get_repository, get_vector_store
from librarian.storage.repository import DocumentRecord, DocumentRepository

logger = logging.getLogger(__name__)


@dataclass
class IngestReport:
    """Outcome of indexing one document.

    A document with ``failed > 0`` is stored but only partially searchable.
    """

    document_id: str
    chunk_count: int
    indexed: int = 0
    failed: int = 0

    @property
    def is_complete(self) -> bool:
        return self.failed == 0


class IngestPipeline:
    """Stores documents and indexes their chunks.

    Parameters
    ----------
    repository:
        Relational store for document and chunk rows.
    store:
        Vector index receiving one point per chunk (point id = chunk id).
    embedder:
        Client producing chunk embeddings.
    segmenter:
        Chunker; defaults to sizes from settings.
    max_workers:
        Upper bound on chunks processed concurrently.
    payload_content_limit:
        Chunk text stored in the vector payload is cut to this length.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        segmenter: Segmenter | None = None,
        max_workers: int = settings.ingest_max_workers,
        payload_content_limit: int = settings.payload_content_limit,
    ) -> None:
        self._repository = repository
        self._store = store
        self._embedder = embedder
        self._segmenter = segmenter or Segmenter(
            target_size=settings.chunk_target_size,
            min_size=settings.chunk_min_size,
            max_size=settings.chunk_max_size,
            overlap=settings.chunk_overlap,
        )
        self.max_workers = max(1, max_workers)
        self.payload_content_limit = payload_content_limit

    # -- public API -----------------------------------------------------------

    def ingest_file(
        self,
        filename: str,
        data: bytes,
        mime_type: str | None = None,
        catalog_id: str | None = None,
    ) -> IngestReport:
        """Extract, store and index an uploaded file.

        Raises
        ------
        ValidationError
            If the file type is unsupported or cannot be parsed.  Nothing
            is stored in that case.
        ExternalServiceError
            If the vector collection cannot be prepared.  Nothing is
            stored in that case either.
        """
        resolved_type = detect_mime_type(filename, mime_type)
        extracted = extract_text(data, filename, resolved_type)
        segments = self._segmenter.segment_with_offsets(extracted.text)
        if segments:
            self._store.ensure_collection()
        document = self._repository.create_document(
            filename=f"{int(time.time() * 1000)}-{filename}",
            original_filename=filename,
            mime_type=resolved_type,
            size=len(data),
            content_text=extracted.text,
            catalog_id=catalog_id,
            metadata=extracted.metadata,
        )
        logger.info("Stored document %s (%s, %d bytes)", document.id, filename, len(data))
        return self._index_segments(document, segments)

    def index_document(self, document: DocumentRecord) -> IngestReport:
        """Chunk, embed and index one stored document.

        Chunk failures are logged and counted; they never roll back the
        document or the chunks that did succeed.
        """
        segments = self._segmenter.segment_with_offsets(document.content_text or "")
        if segments:
            self._store.ensure_collection()
        return self._index_segments(document, segments)

    def delete_document(self, document_id: str) -> bool:
        """Remove a document, its chunk rows and their vectors.

        Returns ``False`` when the document does not exist.
        """
        if self._repository.get_document(document_id) is None:
            return False
        self._store.delete_many([chunk.id for chunk in self._repository.get_chunks(document_id)])
        self._repository.delete_document(document_id)
        logger.info("Deleted document %s", document_id)
        return True

    def reindex_all(self) -> list[IngestReport]:
        """Clear the vector index and rebuild it from every stored document."""
        result = self._store.delete_all()
        logger.info("Cleared vector index (%d points); re-indexing", result["deleted"])
        self._store.ensure_collection()

        reports = []
        for document in self._repository.list_documents():
            self._repository.delete_chunks(document.id)
            reports.append(self.index_document(document))
        logger.info("Re-indexed %d documents", len(reports))
        return reports

    # -- internals ------------------------------------------------------------

    def _index_segments(self, document: DocumentRecord, segments: list[TextSegment]) -> IngestReport:
        report = IngestReport(document_id=document.id, chunk_count=len(segments))
        if not segments:
            logger.warning("Document %s has no extractable text; nothing to index", document.id)
            return report

        workers = min(self.max_workers, len(segments))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self._index_chunk, document, seg): seg for seg in segments}
            for future in as_completed(futures):
                seg = futures[future]
                try:
                    future.result()
                except LibrarianError as exc:
                    report.failed += 1
                    logger.error("Chunk %d of document %s failed: %s", seg.index, document.id, exc)
                else:
                    report.indexed += 1

        if report.failed:
            logger.warning(
                "Document %s partially indexed: %d/%d chunks failed",
                document.id,
                report.failed,
                report.chunk_count,
            )
        else:
            logger.info("Document processed: %s (%d chunks)", document.id, report.chunk_count)
        return report

    def _index_chunk(self, document: DocumentRecord, segment: TextSegment) -> None:
        vector = self._embedder.embed(segment.content)
        chunk = self._repository.add_chunk(
            document_id=document.id,
            chunk_index=segment.index,
            content=segment.content,
            start_char=segment.start_char,
            end_char=segment.end_char,
        )
        self._store.upsert(
            chunk.id,
            vector,
            {
                "documentId": document.id,
                "chunkIndex": segment.index,
                "filename": document.original_filename,
                "catalogId": document.catalog_id,
                "content": segment.content[: self.payload_content_limit],
            },
        )


@lru_cache(maxsize=1)
def get_ingest_pipeline() -> IngestPipeline:
    """Process-wide pipeline built from settings."""
    return IngestPipeline(get_repository(), get_vector_store(), get_embedding_client())
