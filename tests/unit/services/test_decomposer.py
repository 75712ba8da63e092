"""Unit tests for topic decomposition."""

import pytest
from pydantic import ValidationError

from core.config import DEFAULT_FACETS, FacetConfig, PipelineConfig
from models.research import DecompositionPlan
from services.decomposer import FINDINGS_PLACEHOLDER, TaskDecomposer


def _decomposer(**overrides) -> TaskDecomposer:
    return TaskDecomposer.from_config(PipelineConfig(**overrides))


def test_split_is_deterministic():
    first = _decomposer().split("urban beekeeping", "for a city council blog")
    second = _decomposer().split("urban beekeeping", "for a city council blog")

    assert first == second
    assert [spec.prompt for spec in first.subtasks] == [spec.prompt for spec in second.subtasks]
    assert first.recombination_template == second.recombination_template


def test_one_subtask_per_default_facet():
    plan = _decomposer().split("urban beekeeping")

    assert [spec.index for spec in plan.subtasks] == [0, 1, 2]
    assert [spec.facet for spec in plan.subtasks] == [facet.key for facet in DEFAULT_FACETS]
    assert all(spec.topic == "urban beekeeping" for spec in plan.subtasks)


def test_subtask_prompts_carry_topic_context_and_requirements():
    plan = _decomposer(subtask_min_words=650, min_headings=4).split(
        "  urban beekeeping ", "Audience: first-time hobbyists"
    )

    for spec, facet in zip(plan.subtasks, DEFAULT_FACETS):
        assert '"urban beekeeping"' in spec.prompt
        assert facet.focus in spec.prompt
        assert "Audience: first-time hobbyists" in spec.prompt
        assert "at least 650 words" in spec.prompt
        assert "at least 4 Markdown headings" in spec.prompt


def test_missing_context_is_stated():
    plan = _decomposer().split("urban beekeeping")

    assert "(no additional context provided)" in plan.subtasks[0].prompt


def test_recombination_template_keeps_findings_placeholder():
    plan = _decomposer(synthesis_min_words=1800).split("urban beekeeping")

    assert plan.recombination_template.count(FINDINGS_PLACEHOLDER) == 1
    assert "at least 1800 words" in plan.recombination_template


def test_custom_facets():
    facets = (
        FacetConfig(key="history", title="History", focus="how the practice evolved"),
        FacetConfig(key="regulation", title="Regulation", focus="local rules and permits"),
    )
    plan = TaskDecomposer(facets).split("urban beekeeping")

    assert [spec.title for spec in plan.subtasks] == ["History", "Regulation"]


def test_duplicate_facet_keys_rejected():
    facet = FacetConfig(key="history", title="History", focus="how the practice evolved")

    with pytest.raises(ValidationError):
        PipelineConfig(facets=(facet, facet))


def test_plan_requires_positional_indices():
    plan = _decomposer().split("urban beekeeping")

    with pytest.raises(ValidationError):
        DecompositionPlan(
            topic=plan.topic,
            subtasks=tuple(reversed(plan.subtasks)),
            recombination_template=plan.recombination_template,
        )
