"""Filename-based (lexical) document matching."""

from __future__ import annotations

import logging
import re

from librarian.retrieval.models import LexicalMatch
from librarian.storage.repository import DocumentRepository

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 3
WHOLE_WORD_BONUS = 0.5
MAX_SCORE = 1.0

STOPWORDS = frozenset(
    {
        # English
        "document",
        "documents",
        "file",
        "files",
        "find",
        "named",
        "name",
        "called",
        "the",
        "with",
        # Russian
        "найди",
        "документ",
        "документы",
        "именем",
        "названием",
        "файл",
    }
)

_BRACKETS = re.compile(r"[\[\]]")


def tokenize(query: str) -> list[str]:
    """Lowercase keywords of *query*, without short tokens and stopwords."""
    words = _BRACKETS.sub("", query.lower()).split()
    return [w for w in dict.fromkeys(words) if len(w) >= MIN_TOKEN_LENGTH and w not in STOPWORDS]


def _is_whole_word(token: str, filename: str) -> bool:
    # Letters and digits continue a word; everything else (including "_",
    # "-", "." and spaces) separates words.
    pattern = rf"(?<![^\W_]){re.escape(token)}(?![^\W_])"
    return re.search(pattern, filename) is not None


def score_filename(filename: str, tokens: list[str]) -> float:
    """Fraction of *tokens* found in *filename*, with a whole-word bonus, capped at 1."""
    if not tokens:
        return 0.0
    name = filename.lower()
    total = 0.0
    for token in tokens:
        if token not in name:
            continue
        total += 1
        if name == token or _is_whole_word(token, name):
            total += WHOLE_WORD_BONUS
    return min(MAX_SCORE, total / len(tokens))


class LexicalMatcher:
    """Scores stored documents by keyword overlap with their filename."""

    def __init__(self, repository: DocumentRepository) -> None:
        self._repository = repository

    def match_by_filename(
        self,
        query: str,
        catalog_id: str | None = None,
        *,
        limit: int | None = None,
    ) -> list[LexicalMatch]:
        """Return documents whose filename contains a query keyword.

        A query without usable keywords yields no matches; it never falls
        back to listing arbitrary documents.
        """
        tokens = tokenize(query)
        if not tokens:
            logger.debug("No usable filename tokens in %r", query)
            return []

        candidates = self._repository.find_by_filename(tokens, catalog_id=catalog_id, limit=limit)
        matches = [
            LexicalMatch(document_id=doc.id, filename=doc.original_filename, score=score)
            for doc in candidates
            if (score := score_filename(doc.original_filename, tokens)) > 0
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        logger.info("Filename search for %s: %d matches", tokens, len(matches))
        return matches
