"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM (query rewriting)
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the LLM API. Leave empty to use OpenAI cloud. "
            "Any OpenAI-compatible endpoint works, e.g. 'http://vllm:8000/v1'"
        ),
    )
    llm_timeout: float = 20.0
    query_rewrite_enabled: bool = True

    # Embedding
    embedding_provider: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    embedding_timeout: float = 30.0

    # Vector store
    vector_backend: str = Field(default="qdrant", description="'qdrant' or 'chroma'")
    collection_name: str = "documents"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str = ""
    qdrant_timeout: int = 30
    chroma_host: str = "localhost"
    chroma_port: int = 8000

    # Relational store
    database_url: str = "sqlite:///librarian.db"

    # Chunking
    chunk_target_size: int = 1000
    chunk_min_size: int = 200
    chunk_max_size: int = 1500
    chunk_overlap: int = 200
    payload_content_limit: int = 2000

    # Search
    search_default_limit: int = 5
    search_score_threshold: float = 0.3
    search_candidate_multiplier: int = 3

    # Relevance tuning. These values were tuned by hand against cosine
    # scores from text-embedding-3-small and have no derivation beyond that.
    rank_clear_winner_gap: float = 0.05
    rank_clear_winner_min_score: float = 0.35
    rank_high_score: float = 0.4
    rank_high_floor: float = 0.35
    rank_medium_score: float = 0.35
    rank_medium_window: float = 0.03
    rank_preview_fallback_chars: int = 2000

    # Ingestion
    ingest_max_workers: int = 4

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# Singleton: import `settings` wherever needed.
settings = Settings()
