"""Data models for the research pipeline."""

from .research import (
    SYNTHESIS_STAGE_INDEX,
    AttemptOutcome,
    AttemptRecord,
    DecompositionPlan,
    PipelineResult,
    QualityAssessment,
    ResearchRequest,
    SubtaskResult,
    SubtaskSpec,
    SynthesisOutcome,
)

__all__ = [
    "SYNTHESIS_STAGE_INDEX",
    "AttemptOutcome",
    "AttemptRecord",
    "DecompositionPlan",
    "PipelineResult",
    "QualityAssessment",
    "ResearchRequest",
    "SubtaskResult",
    "SubtaskSpec",
    "SynthesisOutcome",
]
