"""Unit tests for single-subtask execution."""

import asyncio

import pytest

from core.config import PipelineConfig
from core.exceptions import TransportError
from models.research import AttemptOutcome, SubtaskSpec
from services.backoff import BackoffScheduler
from services.subtask_executor import SubtaskExecutor


def _spec(index: int = 1) -> SubtaskSpec:
    return SubtaskSpec(
        index=index,
        topic="urban beekeeping",
        facet="audience_needs",
        title="Audience Analysis and Needs",
        prompt="Write about the audience",
    )


def _executor(generator, config: PipelineConfig, clock) -> SubtaskExecutor:
    return SubtaskExecutor(
        generator, config, backoff=BackoffScheduler.from_config(config, clock)
    )


class TestSubtaskExecutor:
    """Retries, fallback and pacing for one subtask."""

    @pytest.mark.asyncio
    async def test_accepted_response_is_returned(
        self, fast_config, manual_clock, scripted_generator, research_text
    ):
        generator = scripted_generator([research_text()])

        result = await _executor(generator, fast_config, manual_clock).execute(_spec())

        assert not result.is_fallback
        assert result.text == research_text()
        assert result.subtask_index == 1
        assert result.title == "Audience Analysis and Needs"
        assert result.attempt_count == 1
        assert generator.prompts == ["Write about the audience"]

    @pytest.mark.asyncio
    async def test_exhaustion_yields_fallback_after_max_attempts(
        self, fast_config, manual_clock, scripted_generator, short_text
    ):
        generator = scripted_generator([short_text(50)])

        result = await _executor(generator, fast_config, manual_clock).execute(_spec())

        assert generator.calls == fast_config.max_attempts == 4
        assert result.is_fallback
        assert "urban beekeeping" in result.text
        assert result.attempt_count == 4
        assert result.last_outcome is AttemptOutcome.SHALLOW_REJECTED
        assert [record.attempt_number for record in result.attempts] == [1, 2, 3, 4]
        assert manual_clock.sleeps == [16.0, 32.0, 64.0]

    @pytest.mark.asyncio
    async def test_persistent_transport_errors_never_raise(
        self, fast_config, manual_clock, scripted_generator
    ):
        generator = scripted_generator([TransportError("connection refused")])

        result = await _executor(generator, fast_config, manual_clock).execute(_spec())

        assert result.is_fallback
        assert generator.calls == 4
        assert result.last_outcome is AttemptOutcome.TRANSPORT_ERROR
        assert manual_clock.sleeps == [26.0, 42.0, 74.0]

    @pytest.mark.asyncio
    async def test_transport_failures_then_success(
        self, fast_config, manual_clock, scripted_generator, research_text
    ):
        generator = scripted_generator(
            [RuntimeError("connection reset"), RuntimeError("502"), research_text()]
        )

        result = await _executor(generator, fast_config, manual_clock).execute(_spec())

        assert not result.is_fallback
        assert [record.outcome for record in result.attempts] == [
            AttemptOutcome.TRANSPORT_ERROR,
            AttemptOutcome.TRANSPORT_ERROR,
            AttemptOutcome.SUCCESS,
        ]
        assert manual_clock.sleeps == [26.0, 42.0]

    @pytest.mark.asyncio
    async def test_fast_success_waits_out_floor(
        self, manual_clock, scripted_generator, research_text
    ):
        config = PipelineConfig()
        generator = scripted_generator([research_text()], clock=manual_clock, work_seconds=2.0)

        result = await _executor(generator, config, manual_clock).execute(_spec())

        assert not result.is_fallback
        assert manual_clock.monotonic() == 60.0
        assert manual_clock.sleeps == [58.0]

    @pytest.mark.asyncio
    async def test_floor_counts_backoff_time(self, manual_clock, scripted_generator, short_text):
        config = PipelineConfig(max_attempts=2)
        generator = scripted_generator([short_text()])

        await _executor(generator, config, manual_clock).execute(_spec())

        # One 16s backoff, then the remaining 44s of the 60s floor
        assert manual_clock.sleeps == [16.0, 44.0]

    @pytest.mark.asyncio
    async def test_timeouts_fall_back(self, manual_clock):
        config = PipelineConfig(max_attempts=2).without_pacing()

        class SlowGenerator:
            async def generate(self, prompt: str, max_tokens: int) -> str:
                manual_clock.advance(config.attempt_timeout_seconds + 1)
                await asyncio.Event().wait()
                return "too late"

        result = await _executor(SlowGenerator(), config, manual_clock).execute(_spec())

        assert result.is_fallback
        assert result.last_outcome is AttemptOutcome.TIMED_OUT

    @pytest.mark.asyncio
    async def test_spanish_fallback(
        self, fast_config, manual_clock, scripted_generator, short_text
    ):
        generator = scripted_generator([short_text()])

        result = await _executor(generator, fast_config, manual_clock).execute(_spec(), "es")

        assert result.is_fallback
        assert result.text.startswith("No fue posible")

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, fast_config, manual_clock):
        started = asyncio.Event()

        class HangingGenerator:
            async def generate(self, prompt: str, max_tokens: int) -> str:
                started.set()
                await asyncio.Event().wait()
                return "never"

        executor = _executor(HangingGenerator(), fast_config, manual_clock)
        task = asyncio.create_task(executor.execute(_spec()))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
