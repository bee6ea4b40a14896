"""Configuration module for the semantic ingestion engine."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()

DEFAULT_LLM_MODELS = (
    "gemini-flash-latest,gemini-pro-latest,gemini-2.5-flash,"
    "gemini-2.0-flash-lite-preview-02-05"
)


def _csv_env(*names: str, default: str = "") -> list[str]:
    """Read a comma-separated list from the first non-empty variable."""
    for name in names:
        raw = os.getenv(name)
        if raw:
            return [item.strip() for item in raw.split(",") if item.strip()]
    return [item.strip() for item in default.split(",") if item.strip()]


class SemanticCoreConfig(BaseModel):
    """Configuration for the semantic ingestion & taxonomy engine.

    Covers the model endpoints and their credential pools, the retry budget
    of the resilient model caller, segmentation/aggregation tuning, the
    transcript source and the Supabase persistence layer. All settings can
    be overridden via environment variables.
    """

    # Generation endpoint (OpenAI-compatible)
    llm_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "LLM_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
        )
    )
    llm_api_keys: list[str] = Field(
        default_factory=lambda: _csv_env("LLM_API_KEYS", "LLM_API_KEY")
    )
    llm_models: list[str] = Field(
        default_factory=lambda: _csv_env("LLM_MODELS", default=DEFAULT_LLM_MODELS)
    )
    llm_temperature: float = Field(
        default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.4"))
    )

    # Retry budget
    max_attempts: int = Field(
        default_factory=lambda: int(os.getenv("LLM_MAX_ATTEMPTS", "6"))
    )
    rate_limit_backoff_seconds: float = Field(
        default_factory=lambda: float(os.getenv("LLM_RATE_LIMIT_BACKOFF_SECONDS", "2"))
    )
    error_backoff_seconds: float = Field(
        default_factory=lambda: float(os.getenv("LLM_ERROR_BACKOFF_SECONDS", "1"))
    )

    # Embedding endpoint (falls back to the generation credentials)
    embedding_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_BASE_URL",
            os.getenv(
                "LLM_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
            ),
        )
    )
    embedding_api_keys: list[str] = Field(
        default_factory=lambda: _csv_env(
            "EMBEDDING_API_KEYS", "EMBEDDING_API_KEY", "LLM_API_KEYS", "LLM_API_KEY"
        )
    )
    embedding_models: list[str] = Field(
        default_factory=lambda: _csv_env("EMBEDDING_MODELS", default="text-embedding-004")
    )
    # Must match the vector(...) columns in sql/core_schema.sql
    embedding_dimensions: int = Field(
        default_factory=lambda: int(os.getenv("EMBEDDING_DIMENSIONS", "768"))
    )
    embedding_concurrency: int = Field(
        default_factory=lambda: int(os.getenv("EMBEDDING_CONCURRENCY", "4"))
    )

    # Segmentation and aggregation
    min_segment_weight: float = Field(
        default_factory=lambda: float(os.getenv("MIN_SEGMENT_WEIGHT_SECONDS", "10"))
    )
    speaking_rate_chars_per_second: float = Field(
        default_factory=lambda: float(os.getenv("SPEAKING_RATE_CHARS_PER_SECOND", "15"))
    )
    segment_prompt_chars: int = Field(
        default_factory=lambda: int(os.getenv("SEGMENT_PROMPT_CHARS", "30000"))
    )
    taxonomy_prompt_chars: int = Field(
        default_factory=lambda: int(os.getenv("TAXONOMY_PROMPT_CHARS", "15000"))
    )

    # Librarian
    match_threshold: float = Field(
        default_factory=lambda: float(os.getenv("COLLECTION_MATCH_THRESHOLD", "0.7"))
    )

    # Backfill
    backfill_delay_seconds: float = Field(
        default_factory=lambda: float(os.getenv("BACKFILL_DELAY_SECONDS", "15"))
    )

    # Transcript source: "supabase" (legacy tables) or "supadata" (live)
    source_provider: str = Field(
        default_factory=lambda: os.getenv("SOURCE_PROVIDER", "supabase")
    )
    supadata_api_key: str = Field(
        default_factory=lambda: os.getenv("SUPADATA_API_KEY", "")
    )
    youtube_channel_id: str = Field(
        default_factory=lambda: os.getenv("YOUTUBE_CHANNEL_ID", "")
    )

    # Database settings
    supabase_url: str = Field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_KEY", "")
    )


def get_config() -> SemanticCoreConfig:
    """Get validated configuration instance.

    Returns:
        SemanticCoreConfig: Validated configuration object with all settings.

    Raises:
        ValidationError: If environment variables hold invalid values.
    """
    return SemanticCoreConfig()
