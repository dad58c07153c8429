"""Domain models for vector hits, ranked results and search responses."""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field

FilterValue = Union[str, int, float, bool]


class EqualityCondition(BaseModel):
    """A single ``payload[key] == value`` condition.

    A filter is a list of these, combined with logical AND.  Build
    filters with :func:`build_filter` so that empty values never reach
    the vector store.
    """

    key: str
    value: FilterValue


def build_filter(values: Mapping[str, Any] | None = None, **kwargs: Any) -> list[EqualityCondition]:
    """Build an AND-filter, dropping ``None`` and blank-string values.

    >>> build_filter(catalogId="c1", clientId=None)
    [EqualityCondition(key='catalogId', value='c1')]
    """
    merged = {**(values or {}), **kwargs}
    conditions: list[EqualityCondition] = []
    for key, value in merged.items():
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        conditions.append(EqualityCondition(key=key, value=value))
    return conditions


def is_valid_score(score: Any) -> bool:
    """``True`` for a finite real number."""
    return isinstance(score, (int, float)) and not isinstance(score, bool) and math.isfinite(score)


class VectorHit(BaseModel):
    """One point returned by a vector-store similarity search."""

    id: str
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def document_id(self) -> str | None:
        return self.payload.get("documentId")

    @property
    def chunk_index(self) -> int | None:
        return self.payload.get("chunkIndex")

    @property
    def content(self) -> str:
        return self.payload.get("content") or ""


class ScrollPage(BaseModel):
    """One page of point ids and the cursor for the next page (``None`` at the end)."""

    ids: list[str] = Field(default_factory=list)
    next_cursor: str | int | None = None


class MatchType(str, Enum):
    VECTOR = "vector"
    LEXICAL = "lexical"
    BOTH = "both"


class ChunkRef(BaseModel):
    """The chunk that best explains why a document matched."""

    id: str
    content: str
    chunk_index: int | None = None

    @classmethod
    def from_hit(cls, hit: VectorHit) -> ChunkRef:
        return cls(id=hit.id, content=hit.content, chunk_index=hit.chunk_index)


class LexicalMatch(BaseModel):
    """A document whose filename matched query keywords."""

    document_id: str
    filename: str
    score: float


class RankedDocument(BaseModel):
    """A document after hybrid ranking."""

    document_id: str
    score: float
    match_type: MatchType
    chunk: ChunkRef | None = None


class CatalogRef(BaseModel):
    id: str
    name: str


class SearchHit(BaseModel):
    """One entry of the search API response."""

    document_id: str
    filename: str
    score: float
    match_type: MatchType
    relevance: str
    preview: str
    is_full_content: bool = False
    catalog: CatalogRef | None = None


class SearchResponse(BaseModel):
    """Search results plus the exact queries used to produce them.

    An empty ``results`` list means "no relevant documents"; it is never
    used to signal an error.
    """

    query: str
    search_query: str
    results: list[SearchHit] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.results


class DocumentDetail(BaseModel):
    """A stored document with its catalog and chunk count."""

    id: str
    filename: str
    original_filename: str
    mime_type: str
    size: int
    content_text: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    catalog: CatalogRef | None = None
    chunk_count: int = 0
    created_at: datetime | None = None
