"""Qdrant implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

from qdrant_client import QdrantClient
from qdrant_client import models as qmodels

from librarian.config import settings
from librarian.errors import ExternalServiceError
from librarian.retrieval.base import VectorStoreBase
from librarian.retrieval.models import EqualityCondition, ScrollPage, VectorHit, is_valid_score

logger = logging.getLogger(__name__)


def _build_qdrant_filter(conditions: list[EqualityCondition]) -> qmodels.Filter | None:
    """Convert equality conditions to a Qdrant ``must`` filter."""
    if not conditions:
        return None
    return qmodels.Filter(
        must=[
            qmodels.FieldCondition(key=c.key, match=qmodels.MatchValue(value=c.value))
            for c in conditions
        ]
    )


class QdrantVectorStore(VectorStoreBase):
    """Qdrant-backed vector store.

    Parameters
    ----------
    collection_name:
        Name of the Qdrant collection.
    client:
        A ready :class:`~qdrant_client.QdrantClient`.  When *None*, one is
        created from ``url`` / ``api_key`` / ``timeout``.
    dimension:
        Vector size used when the collection is created.
    """

    def __init__(
        self,
        collection_name: str = settings.collection_name,
        *,
        client: QdrantClient | None = None,
        url: str = settings.qdrant_url,
        api_key: str = settings.qdrant_api_key,
        timeout: int = settings.qdrant_timeout,
        dimension: int = settings.embedding_dimension,
    ) -> None:
        super().__init__(collection_name, dimension)
        if client is None:
            client = QdrantClient(url=url, api_key=api_key or None, timeout=timeout)
        self._client = client

    # -- VectorStoreBase overrides --------------------------------------------

    def ensure_collection(self) -> bool:
        try:
            if self._collection_exists():
                logger.info("Qdrant collection already exists: %s", self.collection_name)
                return False
            self._client.create_collection(
                collection_name=self.collection_name,
                vectors_config=qmodels.VectorParams(size=self.dimension, distance=qmodels.Distance.COSINE),
            )
        except Exception as exc:
            raise ExternalServiceError("qdrant", f"cannot initialise collection: {exc}") from exc
        logger.info("Created Qdrant collection: %s", self.collection_name)
        return True

    def _upsert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        try:
            self._client.upsert(
                collection_name=self.collection_name,
                points=[qmodels.PointStruct(id=point_id, vector=vector, payload=payload)],
                wait=True,
            )
        except Exception as exc:
            raise ExternalServiceError("qdrant", f"upsert of {point_id} failed: {exc}") from exc

    def _search(
        self,
        vector: list[float],
        limit: int,
        conditions: list[EqualityCondition],
        score_threshold: float | None,
    ) -> list[VectorHit]:
        try:
            response = self._client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=limit,
                query_filter=_build_qdrant_filter(conditions),
                score_threshold=score_threshold,
                with_payload=True,
            )
        except Exception as exc:
            if not self._collection_exists_quietly():
                logger.warning("Search on missing collection %r", self.collection_name)
                return []
            logger.error(
                "Qdrant search failed (limit=%d, filters=%s, threshold=%s, vector=%d)",
                limit,
                conditions,
                score_threshold,
                len(vector),
            )
            raise ExternalServiceError("qdrant", f"search failed: {exc}") from exc

        return [
            VectorHit(id=str(point.id), score=point.score, payload=dict(point.payload or {}))
            for point in response.points
            if is_valid_score(point.score)
        ]

    def _delete(self, ids: list[str]) -> None:
        try:
            self._client.delete(
                collection_name=self.collection_name,
                points_selector=qmodels.PointIdsList(points=ids),
                wait=True,
            )
        except Exception as exc:
            if not self._collection_exists_quietly():
                return
            raise ExternalServiceError("qdrant", f"delete failed: {exc}") from exc

    def scroll(self, limit: int = 100, cursor: str | int | None = None) -> ScrollPage:
        try:
            points, next_offset = self._client.scroll(
                collection_name=self.collection_name,
                limit=limit,
                offset=cursor,
                with_payload=False,
                with_vectors=False,
            )
        except Exception as exc:
            if not self._collection_exists_quietly():
                return ScrollPage()
            raise ExternalServiceError("qdrant", f"scroll failed: {exc}") from exc
        return ScrollPage(ids=[str(p.id) for p in points], next_cursor=next_offset)

    def health_check(self) -> bool:
        try:
            self._client.get_collections()
            return True
        except Exception:
            logger.warning("Qdrant health-check failed", exc_info=True)
            return False

    # -- internals ------------------------------------------------------------

    def _collection_exists(self) -> bool:
        collections = self._client.get_collections().collections
        return any(c.name == self.collection_name for c in collections)

    def _collection_exists_quietly(self) -> bool:
        try:
            return self._collection_exists()
        except Exception:
            return True
