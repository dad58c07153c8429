"""
Agent: the LLM-facing side of the librarian.

Contains the chat-model factory, the query rewriter used before search,
and the LangChain tools an agent binds to.  The agent loop itself lives
outside this package.

Public API
----------
- :class:`QueryRewriter`: keyword extraction with a regex fallback.
- :func:`get_llm`: configured chat model.
- :mod:`librarian.agent.tools`: ``search_documents``, ``get_document``,
  ``create_catalog``.
"""

from librarian.agent.llm import get_llm
from librarian.agent.rewriter import QueryRewriter, fallback_rewrite

__all__ = ["QueryRewriter", "fallback_rewrite", "get_llm"]
