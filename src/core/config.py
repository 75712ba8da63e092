"""Configuration management for the research pipeline."""

import os
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator

from core.exceptions import ConfigurationError

# Note: .env file is loaded in src/core/__init__.py before this module is imported

ENV_PREFIX = "RESEARCH_"


def _env_secret(name: str) -> SecretStr | None:
    """Get environment variable as SecretStr, returning None if empty or unset."""
    v = os.getenv(name)
    if v is None:
        return None
    v = v.strip()
    if not v:
        return None
    return SecretStr(v)


def _env_flag(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from environment variables.

    Accepts: "1", "true", "TRUE", "True" as True.
    """
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip() in {"1", "true", "TRUE", "True"}


def _env_float_default(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_int_default(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return int(v)
    except ValueError:
        return default


class FacetConfig(BaseModel):
    """One orthogonal facet of a topic that becomes its own subtask."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    key: str = Field(min_length=1, description="Stable identifier for the facet")
    title: str = Field(min_length=1, description="Section heading used in the final document")
    focus: str = Field(min_length=1, description="What the subtask prompt asks the upstream for")


DEFAULT_FACETS: tuple[FacetConfig, ...] = (
    FacetConfig(
        key="market_overview",
        title="Market Overview and Key Facts",
        focus=(
            "the current landscape, market size, growth figures, recent developments "
            "and the most important facts and statistics"
        ),
    ),
    FacetConfig(
        key="audience_needs",
        title="Audience Analysis and Needs",
        focus=(
            "who the audience is, their demographics, motivations, pain points, "
            "questions they ask and the content they engage with"
        ),
    ),
    FacetConfig(
        key="competitive_practices",
        title="Competitive Landscape and Best Practices",
        focus=(
            "leading players, how they differentiate, proven strategies, "
            "best practices and common mistakes to avoid"
        ),
    ),
)


class PipelineConfig(BaseModel):
    """Immutable settings for one research pipeline instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    facets: tuple[FacetConfig, ...] = Field(
        default=DEFAULT_FACETS, min_length=1, description="Facets to decompose a topic into"
    )

    # Subtask attempts
    max_attempts: int = Field(default=4, ge=1, le=10, description="Attempts per subtask")
    attempt_timeout_seconds: float = Field(
        default=90.0, gt=0, description="Deadline for a single subtask attempt"
    )
    subtask_max_tokens: int = Field(default=4000, ge=1, description="Token budget per subtask")

    # Recombination attempts
    synthesis_max_attempts: int = Field(default=3, ge=1, le=10)
    synthesis_timeout_seconds: float = Field(default=120.0, gt=0)
    synthesis_max_tokens: int = Field(default=8000, ge=1)

    # Quality gate
    subtask_min_words: int = Field(default=800, ge=0)
    synthesis_min_words: int = Field(default=2000, ge=0)
    min_headings: int = Field(default=3, ge=0)
    structure_strict_attempts: int = Field(
        default=2,
        ge=0,
        description="Attempts during which missing depth markers reject a response",
    )

    # Backoff
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    backoff_exponent_offset: int = Field(default=3, ge=0)
    backoff_cap_seconds: float = Field(default=120.0, ge=0)
    transport_penalty_seconds: float = Field(
        default=10.0, ge=0, description="Extra delay after network-class failures"
    )

    # Pacing
    pacing_enabled: bool = Field(default=True, description="Enforce minimum durations")
    subtask_min_duration_seconds: float = Field(default=60.0, ge=0)
    pipeline_min_duration_seconds: float = Field(default=300.0, ge=0)
    inter_subtask_delay_seconds: float = Field(default=5.0, ge=0)

    # Scheduling
    execution_mode: Literal["sequential", "parallel"] = "sequential"
    max_concurrency: int = Field(default=3, ge=1, le=16)

    cache_ttl_seconds: float = Field(default=3600.0, ge=0)

    @model_validator(mode="after")
    def _unique_facet_keys(self) -> "PipelineConfig":
        keys = [facet.key for facet in self.facets]
        if len(keys) != len(set(keys)):
            raise ValueError("facet keys must be unique")
        return self

    def without_pacing(self) -> "PipelineConfig":
        """Return a copy with every pacing floor and delay disabled."""
        return self.model_copy(update={"pacing_enabled": False})

    @property
    def effective_subtask_floor(self) -> float:
        return self.subtask_min_duration_seconds if self.pacing_enabled else 0.0

    @property
    def effective_pipeline_floor(self) -> float:
        return self.pipeline_min_duration_seconds if self.pacing_enabled else 0.0

    @property
    def effective_inter_subtask_delay(self) -> float:
        return self.inter_subtask_delay_seconds if self.pacing_enabled else 0.0

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "PipelineConfig":
        """Build a configuration from ``RESEARCH_*`` environment variables.

        Unset or unparsable values fall back to the defaults; values that parse
        but violate a bound raise ConfigurationError.
        """
        defaults = cls()
        values: dict[str, object] = {}
        for name, field_info in cls.model_fields.items():
            if name == "facets":
                continue
            env_name = f"{prefix}{name.upper()}"
            default = getattr(defaults, name)
            if field_info.annotation is bool:
                values[name] = _env_flag(env_name, default)
            elif field_info.annotation is int:
                values[name] = _env_int_default(env_name, default)
            elif field_info.annotation is float:
                values[name] = _env_float_default(env_name, default)
            else:
                raw = os.getenv(env_name)
                values[name] = raw.strip().lower() if raw and raw.strip() else default

        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0]
            setting = ".".join(str(part) for part in first["loc"]) or "pipeline"
            raise ConfigurationError(setting, first["msg"]) from e


class UpstreamSettings(BaseModel):
    """Connection settings for the upstream text-generation service."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True, extra="forbid")

    base_url: str = Field(
        default_factory=lambda: os.getenv(
            "RESEARCH_UPSTREAM_BASE_URL", "https://api.perplexity.ai"
        ),
        description="Base URL of an OpenAI-compatible chat completions API",
    )
    model: str = Field(
        default_factory=lambda: os.getenv("RESEARCH_UPSTREAM_MODEL", "sonar-deep-research"),
        description="Model name sent with every request",
    )
    api_key: SecretStr | None = Field(
        default_factory=lambda: _env_secret("RESEARCH_UPSTREAM_API_KEY")
        or _env_secret("PERPLEXITY_API_KEY"),
        description="Bearer token for the upstream service",
    )
    temperature: float = Field(
        default_factory=lambda: _env_float_default("RESEARCH_UPSTREAM_TEMPERATURE", 0.2),
        ge=0.0,
        le=2.0,
    )
    request_timeout_seconds: float = Field(
        default_factory=lambda: _env_float_default("RESEARCH_UPSTREAM_REQUEST_TIMEOUT", 360.0),
        gt=0,
        description="Transport-level timeout; attempt deadlines are usually shorter",
    )
    system_prompt: str = Field(
        default=(
            "You are a research assistant that provides comprehensive, accurate, and "
            "detailed responses based on the latest available information."
        )
    )

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None
