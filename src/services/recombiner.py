"""Recombination of subtask results into one research document."""

from __future__ import annotations

from collections.abc import Sequence

import logfire

from agents.text_generator import TextGenerator
from core.config import PipelineConfig
from core.resilience import GatedRetryPolicy, retry_with_gate
from models.research import (
    SYNTHESIS_STAGE_INDEX,
    Language,
    SubtaskResult,
    SynthesisOutcome,
)
from services.backoff import BackoffScheduler
from services.decomposer import FINDINGS_PLACEHOLDER
from services.fallback import concatenate_results
from services.quality_gate import QualityGate


class Recombiner:
    """Second-tier executor merging all subtask outputs.

    Runs the same gated retry loop as the subtask stage with a longer deadline
    and a higher word floor. When synthesis keeps failing, the subtask texts
    are concatenated deterministically into a titled, sectioned document.
    """

    def __init__(
        self,
        generator: TextGenerator,
        config: PipelineConfig,
        *,
        backoff: BackoffScheduler | None = None,
        gate: QualityGate | None = None,
    ):
        self.generator = generator
        self.config = config
        self.backoff = backoff or BackoffScheduler.from_config(config)
        self.gate = gate or QualityGate.for_synthesis(config)

    @staticmethod
    def order_results(results: Sequence[SubtaskResult]) -> list[SubtaskResult]:
        """Results in subtask index order, regardless of completion order."""
        ordered = sorted(results, key=lambda result: result.subtask_index)
        indices = [result.subtask_index for result in ordered]
        if len(indices) != len(set(indices)):
            raise ValueError(f"duplicate subtask results: {indices}")
        return ordered

    @staticmethod
    def build_prompt(results: Sequence[SubtaskResult], template: str) -> str:
        """Embed every subtask text, in index order, into the recombination template."""
        findings = "\n\n".join(
            f"### Brief {position}: {result.title}\n\n{result.text.strip()}"
            for position, result in enumerate(Recombiner.order_results(results), start=1)
        )
        head, placeholder, tail = template.rpartition(FINDINGS_PLACEHOLDER)
        if not placeholder:
            return f"{template.rstrip()}\n\n{findings}\n"
        return f"{head}{findings}{tail}"

    async def synthesize(
        self,
        results: Sequence[SubtaskResult],
        template: str,
        topic: str,
        language: Language = "en",
    ) -> SynthesisOutcome:
        """Merge subtask results into the final document.

        Args:
            results: One result per subtask, in any order
            template: Recombination template from the decomposer
            topic: Research topic, used for the fallback document title
            language: Language of the fallback document
        """
        ordered = self.order_results(results)
        policy = GatedRetryPolicy(
            stage="recombination",
            stage_index=SYNTHESIS_STAGE_INDEX,
            max_attempts=self.config.synthesis_max_attempts,
            timeout_seconds=self.config.synthesis_timeout_seconds,
            max_tokens=self.config.synthesis_max_tokens,
        )

        with logfire.span("recombination", subtasks=len(ordered)):
            run = await retry_with_gate(
                self.generator.generate,
                self.build_prompt(ordered, template),
                policy=policy,
                gate=self.gate,
                backoff=self.backoff,
            )

        if run.text is not None:
            logfire.info("Recombination accepted", attempts=len(run.attempts))
            return SynthesisOutcome(document=run.text, is_fallback=False, attempts=run.attempts)

        logfire.warning(
            "Recombination fell back to concatenation",
            attempts=len(run.attempts),
            error=run.last_error.message if run.last_error else None,
        )
        return SynthesisOutcome(
            document=concatenate_results(topic, ordered, language),
            is_fallback=True,
            attempts=run.attempts,
        )
