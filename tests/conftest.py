"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import math
from typing import Any

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding

from librarian.errors import ExternalServiceError
from librarian.ingestion.embedder import EmbeddingClient
from librarian.retrieval.base import VectorStoreBase
from librarian.retrieval.models import EqualityCondition, ScrollPage, VectorHit
from librarian.storage.repository import DocumentRepository

TEST_DIMENSION = 8


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake vector store for deterministic testing ─────────────────────────


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorStore(VectorStoreBase):
    """Dict-backed store.  Returns *canned_hits* from search when given."""

    def __init__(
        self,
        dimension: int = TEST_DIMENSION,
        *,
        canned_hits: list[VectorHit] | None = None,
        failing_chunks: set[int] | None = None,
    ) -> None:
        super().__init__("test-collection", dimension)
        self.points: dict[str, tuple[list[float], dict[str, Any]]] = {}
        self.canned_hits = canned_hits
        self.failing_chunks = failing_chunks or set()
        self.collection_created = False
        self.last_limit: int | None = None
        self.last_conditions: list[EqualityCondition] | None = None
        self.delete_batches: list[list[str]] = []

    def ensure_collection(self) -> bool:
        if self.collection_created:
            return False
        self.collection_created = True
        return True

    def _upsert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        if payload.get("chunkIndex") in self.failing_chunks:
            raise ExternalServiceError("fake", f"upsert of {point_id} rejected")
        self.points[point_id] = (list(vector), dict(payload))

    def _search(
        self,
        vector: list[float],
        limit: int,
        conditions: list[EqualityCondition],
        score_threshold: float | None,
    ) -> list[VectorHit]:
        self.last_limit = limit
        self.last_conditions = conditions
        if self.canned_hits is not None:
            return list(self.canned_hits)[:limit]
        hits = []
        for point_id, (stored, payload) in self.points.items():
            if any(payload.get(c.key) != c.value for c in conditions):
                continue
            score = _cosine(vector, stored)
            if score_threshold is None or score >= score_threshold:
                hits.append(VectorHit(id=point_id, score=score, payload=payload))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    def _delete(self, ids: list[str]) -> None:
        self.delete_batches.append(list(ids))
        for point_id in ids:
            self.points.pop(point_id, None)

    def scroll(self, limit: int = 100, cursor: str | int | None = None) -> ScrollPage:
        ids = sorted(self.points)
        start = int(cursor or 0)
        page = ids[start : start + limit]
        next_cursor = start + limit if start + limit < len(ids) else None
        return ScrollPage(ids=page, next_cursor=next_cursor)

    def health_check(self) -> bool:
        return True


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def repository(tmp_path) -> DocumentRepository:
    repo = DocumentRepository.from_url(f"sqlite:///{tmp_path / 'librarian.db'}")
    repo.create_schema()
    return repo


@pytest.fixture()
def fake_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture()
def make_store() -> type[InMemoryVectorStore]:
    """The fake store class, for tests that need canned hits or failing chunks."""
    return InMemoryVectorStore


@pytest.fixture()
def embedder() -> EmbeddingClient:
    return EmbeddingClient(DeterministicFakeEmbedding(size=TEST_DIMENSION), dimension=TEST_DIMENSION, max_workers=2)
