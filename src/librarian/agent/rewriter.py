"""Turns a conversational question into a terse search query."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from librarian.agent.prompts import build_query_rewrite_prompt

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)

_LEADING_FILLER = re.compile(
    r"^(найди|ищи|есть ли|в курсе|знаешь о|расскажи о|что такое|где|когда|как"
    r"|find|search for|tell me about|what is|is there|do you know about)\s+",
    re.IGNORECASE,
)
_QUOTES = re.compile(r"^[\"']|[\"']$")


def fallback_rewrite(query: str) -> str:
    """Strip a leading filler phrase; used when the LLM is unavailable."""
    stripped = query.strip()
    return _LEADING_FILLER.sub("", stripped).strip() or stripped


class QueryRewriter:
    """LLM-backed keyword extraction with a regex fallback.

    Parameters
    ----------
    llm:
        Chat model used for rewriting.  With *None* only the regex
        fallback is applied.
    """

    def __init__(self, llm: BaseChatModel | None = None) -> None:
        self._llm = llm

    def rewrite(self, query: str) -> str:
        if self._llm is None:
            return fallback_rewrite(query)
        try:
            response = self._llm.invoke(build_query_rewrite_prompt(query))
        except Exception as exc:
            logger.warning("Query rewrite failed, using fallback: %s", exc)
            return fallback_rewrite(query)

        content = response.content if isinstance(response.content, str) else ""
        cleaned = _QUOTES.sub("", content.strip()).strip()
        logger.info("Rewrote query %r -> %r", query, cleaned)
        return cleaned or fallback_rewrite(query)
