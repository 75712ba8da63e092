"""Core models for the research pipeline."""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Attempts made by the recombination stage use this in place of a subtask index
SYNTHESIS_STAGE_INDEX = -1

Language = Literal["en", "es"]


class AttemptOutcome(str, Enum):
    """How a single upstream attempt ended."""

    SUCCESS = "success"
    SHALLOW_REJECTED = "shallow_rejected"
    TRANSPORT_ERROR = "transport_error"
    TIMED_OUT = "timed_out"
    MALFORMED_RESPONSE = "malformed_response"

    @property
    def is_transport_class(self) -> bool:
        return self in (AttemptOutcome.TRANSPORT_ERROR, AttemptOutcome.TIMED_OUT)


class ResearchRequest(BaseModel):
    """Immutable input for one pipeline invocation."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    topic: str = Field(min_length=1, description="Broad research topic")
    prompt_context: str = Field(default="", description="Free-form context from the caller")
    language: Language = Field(default="en", description="Language of fallback content")

    def cache_key(self) -> str:
        return f"{self.language}:{self.topic.lower()}:{self.prompt_context}"


class SubtaskSpec(BaseModel):
    """One independently executable facet of the research topic."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Position of the facet in the final document")
    topic: str = Field(description="Research topic the subtask belongs to")
    facet: str = Field(description="Facet key the subtask covers")
    title: str = Field(description="Section heading for the facet")
    prompt: str = Field(min_length=1, description="Prompt sent to the upstream service")


class DecompositionPlan(BaseModel):
    """Output of the task decomposer."""

    model_config = ConfigDict(frozen=True)

    topic: str
    subtasks: tuple[SubtaskSpec, ...]
    recombination_template: str

    @model_validator(mode="after")
    def _indices_are_positions(self) -> "DecompositionPlan":
        if [spec.index for spec in self.subtasks] != list(range(len(self.subtasks))):
            raise ValueError("subtask indices must be 0..n-1 in order")
        return self


class AttemptRecord(BaseModel):
    """Append-only log entry for one upstream attempt."""

    model_config = ConfigDict(frozen=True)

    subtask_index: int
    attempt_number: int = Field(ge=1)
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    duration_ms: int = Field(ge=0)
    outcome: AttemptOutcome
    word_count: int = Field(default=0, ge=0)
    detail: str = Field(default="", description="Rejection reason or error message")


def _check_monotonic(attempts: tuple[AttemptRecord, ...]) -> tuple[AttemptRecord, ...]:
    numbers = [record.attempt_number for record in attempts]
    if any(b <= a for a, b in zip(numbers, numbers[1:])):
        raise ValueError("attempt numbers must be strictly increasing")
    return attempts


class SubtaskResult(BaseModel):
    """Validated or fallback text for one subtask."""

    model_config = ConfigDict(frozen=True)

    subtask_index: int = Field(ge=0)
    facet: str
    title: str
    text: str = Field(min_length=1)
    is_fallback: bool
    attempts: tuple[AttemptRecord, ...] = ()

    @field_validator("attempts")
    @classmethod
    def _attempts_monotonic(cls, v: tuple[AttemptRecord, ...]) -> tuple[AttemptRecord, ...]:
        return _check_monotonic(v)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def last_outcome(self) -> AttemptOutcome | None:
        return self.attempts[-1].outcome if self.attempts else None


class QualityAssessment(BaseModel):
    """Result of running the quality gate over one response."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: str
    word_count: int = Field(ge=0)
    markers: dict[str, bool] = Field(default_factory=dict)
    structure_enforced: bool = True

    @property
    def missing_markers(self) -> list[str]:
        return [name for name, present in self.markers.items() if not present]


class SynthesisOutcome(BaseModel):
    """Final document produced by the recombiner."""

    model_config = ConfigDict(frozen=True)

    document: str
    is_fallback: bool
    attempts: tuple[AttemptRecord, ...] = ()

    @field_validator("attempts")
    @classmethod
    def _attempts_monotonic(cls, v: tuple[AttemptRecord, ...]) -> tuple[AttemptRecord, ...]:
        return _check_monotonic(v)


class PipelineResult(BaseModel):
    """Terminal artifact of a pipeline run."""

    model_config = ConfigDict(frozen=True)

    topic: str
    document: str
    used_fallback_count: int = Field(ge=0)
    total_elapsed_ms: int = Field(ge=0)
    subtask_results: tuple[SubtaskResult, ...] = ()
    synthesis_is_fallback: bool = False
    synthesis_attempts: tuple[AttemptRecord, ...] = ()
    from_cache: bool = False
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def fully_generated(self) -> bool:
        return self.used_fallback_count == 0 and not self.synthesis_is_fallback
