"""Abstract base class for vector-store backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase`
and implementing the abstract methods.  Dimension checks, filter
clean-up and paginated bulk deletion are shared here so every backend
behaves the same way.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from librarian.errors import ValidationError
from librarian.retrieval.models import EqualityCondition, ScrollPage, VectorHit

logger = logging.getLogger(__name__)

DEFAULT_SCORE_THRESHOLD = 0.3
SCROLL_PAGE_SIZE = 100
DELETE_BATCH_SIZE = 100


class VectorStoreBase(ABC):
    """Backend-agnostic interface over a single named collection.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    dimension:
        Vector size of every point in the collection.
    """

    def __init__(self, collection_name: str, dimension: int = 1536) -> None:
        self.collection_name = collection_name
        self.dimension = dimension

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def ensure_collection(self) -> bool:
        """Create the collection (cosine distance) if it does not exist.

        Returns ``True`` when the collection was created by this call.
        """
        ...

    @abstractmethod
    def _upsert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        """Write one point and block until the store acknowledges it."""
        ...

    @abstractmethod
    def _search(
        self,
        vector: list[float],
        limit: int,
        conditions: list[EqualityCondition],
        score_threshold: float | None,
    ) -> list[VectorHit]:
        ...

    @abstractmethod
    def _delete(self, ids: list[str]) -> None:
        """Delete points by id; unknown ids are ignored."""
        ...

    @abstractmethod
    def scroll(self, limit: int = SCROLL_PAGE_SIZE, cursor: str | int | None = None) -> ScrollPage:
        """Return one page of point ids starting at *cursor*."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- public API -----------------------------------------------------------

    def upsert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        """Insert or replace the point *point_id*.

        Re-upserting the same id overwrites both vector and payload.
        ``None`` payload values are not stored.
        """
        self._check_dimension(vector)
        clean = {k: v for k, v in payload.items() if v is not None}
        self._upsert(point_id, vector, clean)

    def search(
        self,
        vector: list[float],
        *,
        limit: int = 5,
        filters: list[EqualityCondition] | None = None,
        score_threshold: float | None = DEFAULT_SCORE_THRESHOLD,
    ) -> list[VectorHit]:
        """Return up to *limit* hits with ``score >= score_threshold``.

        Hits are ordered by descending score.  Conditions with empty
        values are dropped before the query; they never act as wildcards.
        """
        self._check_dimension(vector)
        if limit <= 0:
            return []
        conditions = [c for c in filters or [] if not _is_blank(c.value)]
        hits = self._search(vector, limit, conditions, score_threshold)
        hits.sort(key=lambda h: h.score, reverse=True)

        logger.info(
            "Search on %r completed: %d results (threshold: %s)",
            self.collection_name,
            len(hits),
            score_threshold,
        )
        if hits:
            logger.debug(
                "Top results: %s",
                [(h.score, h.document_id, h.payload.get("filename")) for h in hits[:3]],
            )
        return hits

    def delete(self, point_id: str) -> None:
        """Delete a single point.  Deleting an unknown id is a no-op."""
        self._delete([point_id])

    def delete_many(self, ids: list[str], *, batch_size: int = DELETE_BATCH_SIZE) -> int:
        """Delete *ids* in fixed-size batches and return how many were sent."""
        deleted = 0
        for start in range(0, len(ids), batch_size):
            batch = ids[start : start + batch_size]
            self._delete(batch)
            deleted += len(batch)
            logger.info("Deleted %d/%d points", deleted, len(ids))
        return deleted

    def delete_all(
        self,
        *,
        page_size: int = SCROLL_PAGE_SIZE,
        batch_size: int = DELETE_BATCH_SIZE,
    ) -> dict[str, int]:
        """Remove every point from the collection.

        There is no native "truncate", so all ids are collected first by
        paging through the collection, then deleted in fixed-size batches.
        Each batch is a separate call; if one fails, re-running converges.
        """
        ids: list[str] = []
        cursor: str | int | None = None
        while True:
            page = self.scroll(limit=page_size, cursor=cursor)
            if not page.ids:
                break
            ids.extend(page.ids)
            logger.debug("Collected %d point ids so far", len(ids))
            if page.next_cursor is None:
                break
            cursor = page.next_cursor

        logger.info("Total points to delete from %r: %d", self.collection_name, len(ids))
        return {"deleted": self.delete_many(ids, batch_size=batch_size)}

    # -- internals ------------------------------------------------------------

    def _check_dimension(self, vector: list[float]) -> None:
        if vector is None or len(vector) != self.dimension:
            got = 0 if vector is None else len(vector)
            raise ValidationError(f"Invalid vector dimensions: expected {self.dimension}, got {got}")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
