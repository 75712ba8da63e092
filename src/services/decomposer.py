"""Deterministic decomposition of a research topic into subtask prompts."""

from __future__ import annotations

from core.config import FacetConfig, PipelineConfig
from models.research import DecompositionPlan, SubtaskSpec

FINDINGS_PLACEHOLDER = "{findings}"

_SUBTASK_TEMPLATE = """\
Research topic: "{topic}"

Focus exclusively on {focus}.

Context provided by the requester:
{context}

Write a richly detailed research brief of at least {min_words} words on this facet.
Structure requirements:
- Organise the brief under at least {min_headings} Markdown headings (## Heading).
- Use bulleted or numbered lists for key points.
- Include concrete quantitative figures: percentages, currency amounts, market sizes, growth rates.
- Name specific examples, organisations and sources wherever possible.
Do not summarise other facets of the topic; depth on this facet matters more than breadth."""

_RECOMBINATION_TEMPLATE = """\
You are combining independent research briefs on "{topic}" into one comprehensive report.

Original context from the requester:
{context}

Research briefs, in order:

{findings}

Produce a single coherent Markdown report of at least {min_words} words.
- Start with a title line beginning with "#" and an executive summary.
- Preserve every statistic, example and recommendation from the briefs; \
merge overlapping points instead of summarising them away.
- Keep the briefs' order for the main sections and finish with strategic recommendations."""


class TaskDecomposer:
    """Splits a topic into one subtask per configured facet.

    ``split`` is a pure templating function: identical inputs give
    byte-identical plans.
    """

    def __init__(
        self,
        facets: tuple[FacetConfig, ...],
        *,
        subtask_min_words: int = 800,
        synthesis_min_words: int = 2000,
        min_headings: int = 3,
    ):
        if not facets:
            raise ValueError("at least one facet is required")
        self.facets = facets
        self.subtask_min_words = subtask_min_words
        self.synthesis_min_words = synthesis_min_words
        self.min_headings = min_headings

    @classmethod
    def from_config(cls, config: PipelineConfig) -> TaskDecomposer:
        return cls(
            config.facets,
            subtask_min_words=config.subtask_min_words,
            synthesis_min_words=config.synthesis_min_words,
            min_headings=config.min_headings,
        )

    @staticmethod
    def _context_block(prompt_context: str) -> str:
        return prompt_context.strip() or "(no additional context provided)"

    def build_subtask_prompt(self, topic: str, prompt_context: str, facet: FacetConfig) -> str:
        return _SUBTASK_TEMPLATE.format(
            topic=topic.strip(),
            focus=facet.focus,
            context=self._context_block(prompt_context),
            min_words=self.subtask_min_words,
            min_headings=self.min_headings,
        )

    def build_recombination_template(self, topic: str, prompt_context: str) -> str:
        """Recombination prompt with FINDINGS_PLACEHOLDER left for the recombiner."""
        return _RECOMBINATION_TEMPLATE.format(
            topic=topic.strip(),
            context=self._context_block(prompt_context),
            findings=FINDINGS_PLACEHOLDER,
            min_words=self.synthesis_min_words,
        )

    def split(self, topic: str, prompt_context: str = "") -> DecompositionPlan:
        subtasks = tuple(
            SubtaskSpec(
                index=index,
                topic=topic.strip(),
                facet=facet.key,
                title=facet.title,
                prompt=self.build_subtask_prompt(topic, prompt_context, facet),
            )
            for index, facet in enumerate(self.facets)
        )
        return DecompositionPlan(
            topic=topic.strip(),
            subtasks=subtasks,
            recombination_template=self.build_recombination_template(topic, prompt_context),
        )
