"""Unit tests for semantic core configuration."""

import pytest

from src.semantic_core.config import SemanticCoreConfig, get_config

_ENV_VARS = [
    "LLM_BASE_URL",
    "LLM_API_KEYS",
    "LLM_API_KEY",
    "LLM_MODELS",
    "LLM_MAX_ATTEMPTS",
    "LLM_RATE_LIMIT_BACKOFF_SECONDS",
    "LLM_ERROR_BACKOFF_SECONDS",
    "EMBEDDING_BASE_URL",
    "EMBEDDING_API_KEYS",
    "EMBEDDING_API_KEY",
    "EMBEDDING_MODELS",
    "EMBEDDING_DIMENSIONS",
    "MIN_SEGMENT_WEIGHT_SECONDS",
    "BACKFILL_DELAY_SECONDS",
    "SOURCE_PROVIDER",
]


@pytest.mark.unit
class TestSemanticCoreConfig:
    """Test suite for SemanticCoreConfig class."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Remove engine variables so defaults are observable."""
        for name in _ENV_VARS:
            monkeypatch.delenv(name, raising=False)

    def test_config_with_defaults(self) -> None:
        """Test config creation with default values."""
        config = SemanticCoreConfig()

        assert config.max_attempts == 6
        assert config.rate_limit_backoff_seconds == 2.0
        assert config.error_backoff_seconds == 1.0
        assert config.min_segment_weight == 10.0
        assert config.speaking_rate_chars_per_second == 15.0
        assert config.segment_prompt_chars == 30000
        assert config.taxonomy_prompt_chars == 15000
        assert config.match_threshold == 0.7
        assert config.backfill_delay_seconds == 15.0
        assert config.source_provider == "supabase"
        assert config.llm_api_keys == []
        assert "gemini-2.5-flash" in config.llm_models
        assert config.embedding_models == ["text-embedding-004"]
        assert config.embedding_dimensions == 768

    def test_config_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test comma-separated pools and numeric settings load from environment."""
        monkeypatch.setenv("LLM_API_KEYS", "key-a, key-b ,,key-c")
        monkeypatch.setenv("LLM_MODELS", "model-1,model-2")
        monkeypatch.setenv("LLM_MAX_ATTEMPTS", "3")
        monkeypatch.setenv("MIN_SEGMENT_WEIGHT_SECONDS", "5")
        monkeypatch.setenv("SOURCE_PROVIDER", "supadata")
        monkeypatch.setenv("EMBEDDING_DIMENSIONS", "1536")

        config = SemanticCoreConfig()

        assert config.llm_api_keys == ["key-a", "key-b", "key-c"]
        assert config.llm_models == ["model-1", "model-2"]
        assert config.max_attempts == 3
        assert config.min_segment_weight == 5.0
        assert config.source_provider == "supadata"
        assert config.embedding_dimensions == 1536

    def test_single_api_key_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test LLM_API_KEY is used when no pool is configured."""
        monkeypatch.setenv("LLM_API_KEY", "only-key")

        config = SemanticCoreConfig()

        assert config.llm_api_keys == ["only-key"]

    def test_embedding_keys_fall_back_to_llm_keys(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test embedding credentials default to the generation pool."""
        monkeypatch.setenv("LLM_API_KEYS", "shared-1,shared-2")

        config = SemanticCoreConfig()

        assert config.embedding_api_keys == ["shared-1", "shared-2"]

    def test_embedding_keys_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test dedicated embedding credentials win over the generation pool."""
        monkeypatch.setenv("LLM_API_KEYS", "shared-1")
        monkeypatch.setenv("EMBEDDING_API_KEYS", "embed-1")

        config = SemanticCoreConfig()

        assert config.embedding_api_keys == ["embed-1"]

    def test_config_with_explicit_values(self) -> None:
        """Test config creation with explicit parameter values."""
        config = SemanticCoreConfig(
            llm_api_keys=["a"],
            llm_models=["m"],
            max_attempts=2,
            supabase_url="https://test.supabase.co",
            supabase_key="test_key",
        )

        assert config.llm_api_keys == ["a"]
        assert config.llm_models == ["m"]
        assert config.max_attempts == 2
        assert config.supabase_url == "https://test.supabase.co"

    def test_get_config_function(self) -> None:
        """Test get_config helper function returns valid config."""
        config = get_config()

        assert isinstance(config, SemanticCoreConfig)
        assert config.max_attempts > 0
        assert config.min_segment_weight > 0
