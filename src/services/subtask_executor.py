"""Execution of a single research subtask against the upstream service."""

from __future__ import annotations

import logfire

from agents.text_generator import TextGenerator
from core.config import PipelineConfig
from core.resilience import GatedRetryPolicy, retry_with_gate
from models.research import Language, SubtaskResult, SubtaskSpec
from services.backoff import BackoffScheduler
from services.fallback import subtask_fallback_text
from services.quality_gate import QualityGate


class SubtaskExecutor:
    """Turns one SubtaskSpec into a SubtaskResult, whatever the upstream does.

    The result is either a gate-accepted response or deterministic fallback
    text; upstream errors are never raised to the caller. The per-subtask
    minimum duration is measured from the start of ``execute``.
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
        self.gate = gate or QualityGate.for_subtasks(config)

    def _policy(self, spec: SubtaskSpec) -> GatedRetryPolicy:
        return GatedRetryPolicy(
            stage="subtask",
            stage_index=spec.index,
            max_attempts=self.config.max_attempts,
            timeout_seconds=self.config.attempt_timeout_seconds,
            max_tokens=self.config.subtask_max_tokens,
        )

    async def execute(self, spec: SubtaskSpec, language: Language = "en") -> SubtaskResult:
        """Run the subtask with retries, then pace to the minimum duration.

        Args:
            spec: Subtask to run
            language: Language of fallback text
        """
        started = self.backoff.clock.monotonic()
        with logfire.span("subtask {index} ({facet})", index=spec.index, facet=spec.facet):
            run = await retry_with_gate(
                self.generator.generate,
                spec.prompt,
                policy=self._policy(spec),
                gate=self.gate,
                backoff=self.backoff,
            )

            if run.text is not None:
                result = SubtaskResult(
                    subtask_index=spec.index,
                    facet=spec.facet,
                    title=spec.title,
                    text=run.text,
                    is_fallback=False,
                    attempts=run.attempts,
                )
                logfire.info(
                    "Subtask accepted",
                    subtask_index=spec.index,
                    attempts=len(run.attempts),
                    word_count=run.attempts[-1].word_count,
                )
            else:
                result = SubtaskResult(
                    subtask_index=spec.index,
                    facet=spec.facet,
                    title=spec.title,
                    text=subtask_fallback_text(spec, language),
                    is_fallback=True,
                    attempts=run.attempts,
                )
                logfire.warning(
                    "Subtask fell back to template content",
                    subtask_index=spec.index,
                    attempts=len(run.attempts),
                    last_outcome=result.last_outcome.value if result.last_outcome else None,
                )

            await self.backoff.enforce_floor(
                started, self.config.effective_subtask_floor, label=f"subtask:{spec.index}"
            )
        return result
