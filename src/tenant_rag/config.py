"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the LLM API. Leave empty to use OpenAI cloud. "
            "Any OpenAI-compatible endpoint (vLLM, LiteLLM proxy, ...) works."
        ),
    )

    # Embedding
    embedding_backend: Literal["huggingface", "openai"] = "openai"
    embedding_model: str = "text-embedding-3-small"

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "rag_documents"

    # Chunking
    chunk_size: int = Field(default=512, gt=0, description="Words per chunk window")
    chunk_overlap: int = Field(default=64, ge=0, description="Words repeated between adjacent chunks")

    # Ingestion
    embed_batch_size: int = Field(default=100, gt=0)
    ingest_queue_capacity: int = Field(default=256, gt=0)
    ingest_workers: int = Field(default=4, gt=0)
    ingest_job_timeout: float = Field(default=300.0, gt=0, description="Per-document deadline in seconds")

    # Query
    default_top_k: int = Field(default=5, gt=0)

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton — import `settings` wherever needed.
settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
