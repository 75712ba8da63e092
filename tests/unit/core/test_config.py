"""Unit tests for pipeline configuration."""

import pytest
from pydantic import ValidationError

from core.config import PipelineConfig, UpstreamSettings
from core.exceptions import ConfigurationError


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()

        assert config.max_attempts == 4
        assert config.attempt_timeout_seconds == 90.0
        assert config.subtask_min_words == 800
        assert config.synthesis_min_words == 2000
        assert config.effective_subtask_floor == 60.0
        assert config.effective_pipeline_floor == 300.0
        assert config.execution_mode == "sequential"
        assert len(config.facets) == 3

    def test_without_pacing_zeroes_floors(self):
        config = PipelineConfig().without_pacing()

        assert not config.pacing_enabled
        assert config.effective_subtask_floor == 0.0
        assert config.effective_pipeline_floor == 0.0
        assert config.effective_inter_subtask_delay == 0.0
        # The configured values are kept for reporting
        assert config.subtask_min_duration_seconds == 60.0

    def test_frozen(self):
        config = PipelineConfig()

        with pytest.raises(ValidationError):
            config.max_attempts = 10

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_attempts": 0},
            {"max_concurrency": 17},
            {"attempt_timeout_seconds": 0},
            {"execution_mode": "threaded"},
            {"unknown_setting": 1},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            PipelineConfig(**overrides)


class TestFromEnv:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_MAX_ATTEMPTS", "2")
        monkeypatch.setenv("RESEARCH_ATTEMPT_TIMEOUT_SECONDS", "30.5")
        monkeypatch.setenv("RESEARCH_PACING_ENABLED", "false")
        monkeypatch.setenv("RESEARCH_EXECUTION_MODE", " Parallel ")

        config = PipelineConfig.from_env()

        assert config.max_attempts == 2
        assert config.attempt_timeout_seconds == 30.5
        assert not config.pacing_enabled
        assert config.execution_mode == "parallel"

    def test_unparsable_values_use_defaults(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_MAX_ATTEMPTS", "many")
        monkeypatch.setenv("RESEARCH_BACKOFF_CAP_SECONDS", "")

        config = PipelineConfig.from_env()

        assert config.max_attempts == 4
        assert config.backoff_cap_seconds == 120.0

    def test_out_of_range_values_raise(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_MAX_CONCURRENCY", "99")

        with pytest.raises(ConfigurationError) as exc_info:
            PipelineConfig.from_env()

        assert exc_info.value.error_code == "INVALID_CONFIGURATION"
        assert exc_info.value.details["setting"] == "max_concurrency"


class TestUpstreamSettings:
    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.delenv("RESEARCH_UPSTREAM_API_KEY", raising=False)
        monkeypatch.setenv("PERPLEXITY_API_KEY", "pplx-test")

        settings = UpstreamSettings()

        assert settings.has_api_key
        assert settings.api_key.get_secret_value() == "pplx-test"
        assert "pplx-test" not in repr(settings)

    def test_blank_api_key_is_missing(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_UPSTREAM_API_KEY", "   ")
        monkeypatch.delenv("PERPLEXITY_API_KEY", raising=False)

        assert not UpstreamSettings().has_api_key

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_UPSTREAM_BASE_URL", "https://llm.internal/v1")
        monkeypatch.setenv("RESEARCH_UPSTREAM_MODEL", "sonar-pro")

        settings = UpstreamSettings()

        assert settings.base_url == "https://llm.internal/v1"
        assert settings.model == "sonar-pro"
