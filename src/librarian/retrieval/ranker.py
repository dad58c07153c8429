"""Hybrid ranking: adaptive vector-score filtering, lexical merge, preview policy.

Ranking runs in two stages:

1. **Adaptive filtering** of vector hits.  The cut-off depends on the
   shape of the score distribution rather than on a fixed threshold:

   - a *clear winner* (top score well above the runner-up) keeps only
     hits close to the winner;
   - otherwise a strong top score keeps every hit above a floor;
   - a moderate top score keeps a narrow window below it;
   - with no dominant hit, the top ``2 * limit`` hits pass unfiltered.

2. **Merge** with filename matches into one entry per document.

The branch order is a priority order, so score sets that straddle a
threshold can flip between branches.  That behaviour is intentional and
pinned by boundary tests.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from librarian.config import Settings, settings
from librarian.retrieval.models import (
    ChunkRef,
    LexicalMatch,
    MatchType,
    RankedDocument,
    VectorHit,
    is_valid_score,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankingThresholds:
    """Tunable constants for :class:`HybridRanker`.

    The defaults are hand-tuned against cosine scores of
    ``text-embedding-3-small``.
    """

    clear_winner_gap: float = 0.05
    clear_winner_min_score: float = 0.35
    high_score: float = 0.4
    high_floor: float = 0.35
    medium_score: float = 0.35
    medium_window: float = 0.03
    preview_fallback_chars: int = 2000

    @classmethod
    def from_settings(cls, config: Settings = settings) -> RankingThresholds:
        return cls(
            clear_winner_gap=config.rank_clear_winner_gap,
            clear_winner_min_score=config.rank_clear_winner_min_score,
            high_score=config.rank_high_score,
            high_floor=config.rank_high_floor,
            medium_score=config.rank_medium_score,
            medium_window=config.rank_medium_window,
            preview_fallback_chars=config.rank_preview_fallback_chars,
        )


class HybridRanker:
    """Merges vector and lexical results into one ranked list.

    Parameters
    ----------
    thresholds:
        Ranking constants; defaults to :class:`RankingThresholds` defaults.
    """

    def __init__(self, thresholds: RankingThresholds | None = None) -> None:
        self.thresholds = thresholds or RankingThresholds()

    # -- stage A --------------------------------------------------------------

    def filter_vector_hits(self, hits: Sequence[VectorHit], limit: int) -> list[VectorHit]:
        """Apply the adaptive score cut-off; returns hits sorted by descending score."""
        t = self.thresholds
        ordered = sorted(_valid_hits(hits), key=lambda h: h.score, reverse=True)
        if not ordered:
            return []

        top = ordered[0].score
        gap = top - ordered[1].score if len(ordered) > 1 else 0.0

        if gap > t.clear_winner_gap and top > t.clear_winner_min_score:
            cutoff = top - t.clear_winner_gap
            branch = "clear_winner"
        elif top > t.high_score:
            cutoff = t.high_floor
            branch = "high"
        elif top > t.medium_score:
            cutoff = top - t.medium_window
            branch = "medium"
        else:
            logger.debug("No dominant vector hit (top=%.3f); keeping top %d", top, 2 * limit)
            return ordered[: 2 * limit]

        kept = [h for h in ordered if h.score >= cutoff]
        logger.debug(
            "Stage A branch=%s top=%.3f gap=%.3f cutoff=%.3f kept=%d/%d",
            branch,
            top,
            gap,
            cutoff,
            len(kept),
            len(ordered),
        )
        return kept

    # -- stage B --------------------------------------------------------------

    def rank(
        self,
        vector_hits: Sequence[VectorHit],
        lexical_matches: Sequence[LexicalMatch],
        limit: int,
    ) -> list[RankedDocument]:
        """Filter, merge and truncate to *limit* documents."""
        if limit <= 0:
            return []

        merged: dict[str, RankedDocument] = {}
        for hit in self.filter_vector_hits(vector_hits, limit):
            doc_id = hit.document_id
            if doc_id in merged:
                continue
            merged[doc_id] = RankedDocument(
                document_id=doc_id,
                score=hit.score,
                match_type=MatchType.VECTOR,
                chunk=ChunkRef.from_hit(hit),
            )

        best_chunks = _best_chunk_per_document(vector_hits)
        for match in lexical_matches:
            if not is_valid_score(match.score):
                continue
            existing = merged.get(match.document_id)
            if existing is not None:
                existing.score = max(existing.score, match.score)
                existing.match_type = MatchType.BOTH
                continue
            hit = best_chunks.get(match.document_id)
            merged[match.document_id] = RankedDocument(
                document_id=match.document_id,
                score=match.score,
                match_type=MatchType.LEXICAL,
                chunk=ChunkRef.from_hit(hit) if hit is not None else None,
            )

        # sorted() is stable: ties keep insertion order.
        ranked = sorted(merged.values(), key=lambda r: r.score, reverse=True)[:limit]
        logger.info(
            "Ranked %d documents from %d vector hits and %d filename matches",
            len(ranked),
            len(vector_hits),
            len(lexical_matches),
        )
        return ranked

    # -- presentation ---------------------------------------------------------

    def is_highly_relevant(self, score: float, rank: int) -> bool:
        t = self.thresholds
        return score > t.high_score or (rank == 0 and score > t.medium_score)

    def select_preview(
        self,
        score: float,
        rank: int,
        chunk: ChunkRef | None,
        document_text: str | None,
    ) -> tuple[str, bool]:
        """Return ``(preview, is_full_content)`` for one ranked result.

        Highly relevant results surface the whole document; the rest get
        the matched chunk or, without one, the head of the document.
        """
        text = document_text or ""
        if self.is_highly_relevant(score, rank) and text:
            return text, True
        if chunk is not None and chunk.content:
            return chunk.content, False
        return text[: self.thresholds.preview_fallback_chars], False

    def relevance_label(self, score: float, rank: int) -> str:
        t = self.thresholds
        if rank == 0 and score > t.high_score:
            return "high"
        if score > t.medium_score:
            return "medium"
        return "low"


def _valid_hits(hits: Sequence[VectorHit]) -> list[VectorHit]:
    # A hit without a finite score or a document reference is an absent match.
    return [h for h in hits if is_valid_score(h.score) and h.document_id is not None]


def _best_chunk_per_document(hits: Sequence[VectorHit]) -> dict[str, VectorHit]:
    best: dict[str, VectorHit] = {}
    for hit in _valid_hits(hits):
        doc_id = hit.document_id
        current = best.get(doc_id)
        if current is None or hit.score > current.score:
            best[doc_id] = hit
    return best
