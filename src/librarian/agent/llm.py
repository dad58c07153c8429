"""LLM initialisation: single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default): set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint**: set ``LLM_BASE_URL`` (vLLM, Ollama,
   a gateway, …).  ``ChatOpenAI`` works unchanged against any server
   exposing ``/v1/chat/completions``.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from librarian.config import Settings, settings

logger = logging.getLogger(__name__)


def get_llm(temperature: float = 0.0, *, max_tokens: int | None = None, config: Settings = settings) -> ChatOpenAI:
    """Return the configured chat model.

    A dummy API key (``"EMPTY"``) is used with a custom base URL because
    self-hosted servers usually do not check it, while LangChain requires
    a non-empty value.
    """
    kwargs: dict = {
        "model": config.llm_model_name,
        "temperature": temperature,
        "timeout": config.llm_timeout,
        "max_retries": 1,
    }
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens

    if config.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", config.llm_base_url)
        kwargs["base_url"] = config.llm_base_url
        kwargs["api_key"] = config.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = config.openai_api_key

    return ChatOpenAI(**kwargs)
