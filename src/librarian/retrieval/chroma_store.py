"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from librarian.config import settings
from librarian.errors import ExternalServiceError
from librarian.retrieval.base import VectorStoreBase
from librarian.retrieval.models import EqualityCondition, ScrollPage, VectorHit, is_valid_score

logger = logging.getLogger(__name__)


def _build_chroma_where(conditions: list[EqualityCondition]) -> dict[str, Any] | None:
    """Convert equality conditions to Chroma ``where`` syntax."""
    if not conditions:
        return None
    clauses = [{c.key: {"$eq": c.value}} for c in conditions]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Chroma reports cosine *distance*; it is converted to a similarity
    score (``1 - distance``) and the score threshold is applied here,
    since Chroma has no server-side equivalent.  The scroll cursor is a
    plain offset.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    client:
        Any Chroma client (``HttpClient``, ``EphemeralClient`` …).  When
        *None*, an ``HttpClient`` is created from ``host`` / ``port``.
    """

    def __init__(
        self,
        collection_name: str = settings.collection_name,
        *,
        client: Any = None,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        dimension: int = settings.embedding_dimension,
    ) -> None:
        super().__init__(collection_name, dimension)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection: Any = None

    # -- VectorStoreBase overrides --------------------------------------------

    def ensure_collection(self) -> bool:
        try:
            if self._collection_exists():
                logger.info("Chroma collection already exists: %s", self.collection_name)
                return False
            self._collection = self._client.create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=None,
            )
        except Exception as exc:
            raise ExternalServiceError("chroma", f"cannot initialise collection: {exc}") from exc
        logger.info("Created Chroma collection: %s", self.collection_name)
        return True

    def _upsert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        # Chroma metadata values must be flat str/int/float/bool.
        metadata = {k: v for k, v in payload.items() if isinstance(v, (str, int, float, bool))}
        try:
            self._get_collection().upsert(
                ids=[point_id],
                embeddings=[vector],
                metadatas=[metadata],
                documents=[str(payload.get("content", ""))],
            )
        except Exception as exc:
            raise ExternalServiceError("chroma", f"upsert of {point_id} failed: {exc}") from exc

    def _search(
        self,
        vector: list[float],
        limit: int,
        conditions: list[EqualityCondition],
        score_threshold: float | None,
    ) -> list[VectorHit]:
        collection = self._get_collection_or_none()
        if collection is None:
            return []
        try:
            results = collection.query(
                query_embeddings=[vector],
                n_results=limit,
                where=_build_chroma_where(conditions),
                include=["metadatas", "distances"],
            )
        except Exception as exc:
            raise ExternalServiceError("chroma", f"search failed: {exc}") from exc

        ids = (results.get("ids") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits: list[VectorHit] = []
        for point_id, meta, distance in zip(ids, metas, distances):
            if not is_valid_score(distance):
                continue
            score = 1.0 - distance
            if score_threshold is not None and score < score_threshold:
                continue
            hits.append(VectorHit(id=point_id, score=score, payload=dict(meta or {})))
        return hits

    def _delete(self, ids: list[str]) -> None:
        collection = self._get_collection_or_none()
        if collection is None:
            return
        try:
            collection.delete(ids=ids)
        except Exception as exc:
            raise ExternalServiceError("chroma", f"delete failed: {exc}") from exc

    def scroll(self, limit: int = 100, cursor: str | int | None = None) -> ScrollPage:
        collection = self._get_collection_or_none()
        if collection is None:
            return ScrollPage()
        offset = int(cursor or 0)
        try:
            page = collection.get(limit=limit, offset=offset, include=[])
        except Exception as exc:
            raise ExternalServiceError("chroma", f"scroll failed: {exc}") from exc
        ids = list(page.get("ids") or [])
        next_cursor = offset + len(ids) if len(ids) == limit else None
        return ScrollPage(ids=ids, next_cursor=next_cursor)

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    # -- internals ------------------------------------------------------------

    def _collection_exists(self) -> bool:
        # Chroma < 0.6 returns Collection objects, later versions return names.
        names = {getattr(c, "name", c) for c in self._client.list_collections()}
        return self.collection_name in names

    def _get_collection(self) -> Any:
        if self._collection is None:
            self._collection = self._client.get_collection(name=self.collection_name, embedding_function=None)
        return self._collection

    def _get_collection_or_none(self) -> Any:
        try:
            if not self._collection_exists():
                return None
            return self._get_collection()
        except Exception as exc:
            raise ExternalServiceError("chroma", str(exc)) from exc
