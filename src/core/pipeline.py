"""Research pipeline orchestrator.

Pipeline: DECOMPOSITION → SUBTASK EXECUTION (sequential or bounded-parallel)
→ RECOMBINATION → PACING. Every stage degrades to deterministic content
instead of failing, so a well-formed request always yields a PipelineResult.
"""

import asyncio
from collections.abc import Sequence

import logfire
from pydantic import ValidationError

from agents.text_generator import TextGenerator
from core.clock import Clock, SystemClock
from core.config import PipelineConfig
from core.exceptions import InvalidResearchRequestError
from models.research import (
    Language,
    PipelineResult,
    ResearchRequest,
    SubtaskResult,
    SubtaskSpec,
)
from services.backoff import BackoffScheduler
from services.decomposer import TaskDecomposer
from services.recombiner import Recombiner
from services.result_cache import ResultCache
from services.subtask_executor import SubtaskExecutor


class ResearchPipeline:
    """End-to-end orchestration of decomposition, execution and recombination."""

    def __init__(
        self,
        generator: TextGenerator,
        config: PipelineConfig | None = None,
        *,
        clock: Clock | None = None,
        cache: ResultCache | None = None,
    ):
        """Initialize the pipeline.

        Args:
            generator: Upstream text-generation backend shared by all stages
            config: Pipeline settings; defaults reproduce the production pacing
            clock: Time source for pacing, backoff and elapsed-time reporting
            cache: Optional cache of fully generated results
        """
        self.config = config or PipelineConfig()
        self.clock = clock or SystemClock()
        self.backoff = BackoffScheduler.from_config(self.config, self.clock)
        self.decomposer = TaskDecomposer.from_config(self.config)
        self.executor = SubtaskExecutor(generator, self.config, backoff=self.backoff)
        self.recombiner = Recombiner(generator, self.config, backoff=self.backoff)
        self.cache = cache

    @staticmethod
    def build_request(
        topic: str, context: str = "", language: Language = "en"
    ) -> ResearchRequest:
        """Validate caller input once, at the pipeline boundary."""
        if topic is None or not str(topic).strip():
            raise InvalidResearchRequestError("topic must not be empty")
        try:
            return ResearchRequest(topic=topic, prompt_context=context or "", language=language)
        except ValidationError as e:
            raise InvalidResearchRequestError(str(e.errors()[0]["msg"]), topic=topic) from e

    async def run(
        self, topic: str, context: str = "", language: Language = "en"
    ) -> PipelineResult:
        """Research ``topic`` and return the synthesized document.

        Raises:
            InvalidResearchRequestError: If the topic is blank
        """
        return await self.run_request(self.build_request(topic, context, language))

    def run_sync(
        self, topic: str, context: str = "", language: Language = "en"
    ) -> PipelineResult:
        """Blocking wrapper around ``run`` for callers without an event loop."""
        return asyncio.run(self.run(topic, context, language))

    async def run_request(self, request: ResearchRequest) -> PipelineResult:
        started = self.clock.monotonic()
        if self.cache is not None:
            cached = self.cache.get(request)
            if cached is not None:
                # No upstream call is made, so the pipeline floor does not apply
                elapsed_ms = int((self.clock.monotonic() - started) * 1000)
                logfire.info(
                    "Returning cached research",
                    topic=request.topic,
                    original_elapsed_ms=cached.total_elapsed_ms,
                )
                return cached.model_copy(
                    update={"from_cache": True, "total_elapsed_ms": elapsed_ms}
                )

        with logfire.span(
            "research pipeline {topic}",
            topic=request.topic,
            mode=self.config.execution_mode,
            subtasks=len(self.config.facets),
        ):
            plan = self.decomposer.split(request.topic, request.prompt_context)
            results = await self._execute_subtasks(plan.subtasks, request.language)

            synthesis = await self.recombiner.synthesize(
                results, plan.recombination_template, request.topic, request.language
            )

            await self.backoff.enforce_floor(
                started, self.config.effective_pipeline_floor, label="pipeline"
            )
            elapsed_ms = int((self.clock.monotonic() - started) * 1000)

            result = PipelineResult(
                topic=request.topic,
                document=synthesis.document,
                used_fallback_count=sum(1 for r in results if r.is_fallback),
                total_elapsed_ms=elapsed_ms,
                subtask_results=tuple(results),
                synthesis_is_fallback=synthesis.is_fallback,
                synthesis_attempts=synthesis.attempts,
            )
            logfire.info(
                "Research pipeline completed",
                topic=request.topic,
                used_fallback_count=result.used_fallback_count,
                synthesis_is_fallback=result.synthesis_is_fallback,
                total_elapsed_ms=elapsed_ms,
            )

        if self.cache is not None and result.fully_generated:
            self.cache.set(request, result)
        return result

    async def _execute_subtasks(
        self, specs: Sequence[SubtaskSpec], language: Language
    ) -> list[SubtaskResult]:
        if self.config.execution_mode == "parallel":
            results = await self._execute_parallel(specs, language)
        else:
            results = await self._execute_sequential(specs, language)

        if [r.subtask_index for r in results] != [spec.index for spec in specs]:
            raise RuntimeError("subtask results do not match the decomposition plan")
        return results

    async def _execute_sequential(
        self, specs: Sequence[SubtaskSpec], language: Language
    ) -> list[SubtaskResult]:
        results: list[SubtaskResult] = []
        for position, spec in enumerate(specs):
            if position > 0:
                await self.clock.sleep(self.config.effective_inter_subtask_delay)
            results.append(await self.executor.execute(spec, language))
        return results

    async def _execute_parallel(
        self, specs: Sequence[SubtaskSpec], language: Language
    ) -> list[SubtaskResult]:
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def execute_with_semaphore(spec: SubtaskSpec) -> SubtaskResult:
            async with semaphore:
                return await self.executor.execute(spec, language)

        completed = await asyncio.gather(*(execute_with_semaphore(spec) for spec in specs))
        return sorted(completed, key=lambda result: result.subtask_index)
