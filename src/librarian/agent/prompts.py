"""Prompt templates used by the agent layer.

Keeping prompts in one place makes them easy to audit and version.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

# ── Query rewriting ───────────────────────────────────────────────────

QUERY_REWRITE_SYSTEM = """\
You extract search strings for semantic search over a document library.

Turn the user's request into the best search string for finding the
relevant documents.

Rules:
1. Drop filler words and phrases ("find", "tell me about", "is there",
   "do you know about", "найди", "расскажи", "есть ли", "в курсе", ...).
2. Keep keywords, topics and the substance of the question.
3. If a file name is mentioned, keep it exactly.
4. Keep the language of the original request.
5. Return ONLY the search string, with no commentary.

Examples:
- "Tell me about the hackathon" -> "hackathon"
- "Find the document Task 2" -> "Task 2"
- "Расскажи о хакатоне" -> "хакатон"
- "Есть ли информация о кредитовании?" -> "кредитование"
- "What is AI500?" -> "AI500"
"""


def build_query_rewrite_prompt(query: str) -> list[BaseMessage]:
    """Build the messages for :class:`~librarian.agent.rewriter.QueryRewriter`."""
    return [
        SystemMessage(content=QUERY_REWRITE_SYSTEM),
        HumanMessage(content=f'User request: "{query}"\n\nSearch string:'),
    ]
