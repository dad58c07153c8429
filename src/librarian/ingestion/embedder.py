"""Embedding client with input and output validation."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import TYPE_CHECKING

from librarian.config import Settings, settings
from librarian.errors import ExternalServiceError, ValidationError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


def get_embedding_function(config: Settings = settings) -> Embeddings:
    """Return the configured LangChain embedding model."""
    if config.embedding_provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(
            model=config.embedding_model,
            dimensions=config.embedding_dimension,
            api_key=config.openai_api_key or None,
            request_timeout=config.embedding_timeout,
        )
    if config.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=config.embedding_model)
    raise ValueError(f"Unsupported embedding provider: {config.embedding_provider!r}")


class EmbeddingClient:
    """Turns text into a fixed-dimension vector.

    Parameters
    ----------
    embeddings:
        Any LangChain :class:`~langchain_core.embeddings.Embeddings`.
    dimension:
        Expected vector length.  A provider returning anything else is a
        hard failure; vectors are never truncated or padded.
    max_workers:
        Thread-pool size used by :meth:`embed_many`.
    """

    def __init__(self, embeddings: Embeddings, *, dimension: int = 1536, max_workers: int = 4) -> None:
        self._embeddings = embeddings
        self.dimension = dimension
        self.max_workers = max_workers

    def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises
        ------
        ValidationError
            If *text* is empty or whitespace-only (checked before any call
            to the provider), or if the returned vector has the wrong length.
        ExternalServiceError
            If the provider call fails.
        """
        if text is None or not text.strip():
            raise ValidationError("Text cannot be empty for embedding generation")

        normalized = text.strip()
        try:
            vector = self._embeddings.embed_query(normalized)
        except Exception as exc:
            logger.error("Embedding request failed for text %r", normalized[:100])
            raise ExternalServiceError("embedding", str(exc)) from exc

        if vector is None or len(vector) != self.dimension:
            got = 0 if vector is None else len(vector)
            raise ValidationError(f"Invalid embedding dimensions: expected {self.dimension}, got {got}")
        return [float(v) for v in vector]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* with independent calls; the first failure fails the batch."""
        if not texts:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(texts))) as pool:
            return list(pool.map(self.embed, texts))


def build_embedding_client(config: Settings = settings) -> EmbeddingClient:
    """Construct an :class:`EmbeddingClient` from *config*."""
    return EmbeddingClient(
        get_embedding_function(config),
        dimension=config.embedding_dimension,
        max_workers=config.ingest_max_workers,
    )


@lru_cache(maxsize=1)
def get_embedding_client() -> EmbeddingClient:
    """Process-wide client built from settings."""
    return build_embedding_client(settings)
