"""Tenacity-powered retry-with-gate combinator.

Both pipeline stages that talk to the upstream service (per-subtask execution
and recombination) run the same loop: race the call against a clock deadline, pass
the text through a quality gate, back off and retry on any recoverable
failure. This module holds that loop once.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import logfire
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from core.exceptions import (
    AttemptTimeoutError,
    MalformedResponseError,
    ShallowResponseError,
    TransportError,
    UpstreamError,
)
from models.research import AttemptOutcome, AttemptRecord
from services.backoff import BackoffScheduler
from services.quality_gate import QualityGate

GenerateFn = Callable[[str, int], Awaitable[str]]


@dataclass(frozen=True)
class GatedRetryPolicy:
    """Per-stage knobs for retry_with_gate."""

    stage: str
    stage_index: int
    max_attempts: int
    timeout_seconds: float
    max_tokens: int


@dataclass(frozen=True)
class GatedRun:
    """What a retry_with_gate run produced.

    ``text`` is None when every attempt failed; ``last_error`` then holds the
    final failure.
    """

    text: str | None
    attempts: tuple[AttemptRecord, ...] = field(default_factory=tuple)
    last_error: UpstreamError | None = None

    @property
    def succeeded(self) -> bool:
        return self.text is not None


def _outcome_for(error: UpstreamError) -> AttemptOutcome:
    if isinstance(error, AttemptTimeoutError):
        return AttemptOutcome.TIMED_OUT
    if isinstance(error, ShallowResponseError):
        return AttemptOutcome.SHALLOW_REJECTED
    if isinstance(error, MalformedResponseError):
        return AttemptOutcome.MALFORMED_RESPONSE
    return AttemptOutcome.TRANSPORT_ERROR


async def retry_with_gate(
    generate: GenerateFn,
    prompt: str,
    *,
    policy: GatedRetryPolicy,
    gate: QualityGate,
    backoff: BackoffScheduler,
) -> GatedRun:
    """Run ``generate`` until the gate accepts its output or attempts run out.

    Recoverable failures (transport, timeout, malformed, shallow) are retried
    and never raised. Cancellation of the calling task propagates.
    """

    clock = backoff.clock
    attempts: list[AttemptRecord] = []

    def _record(
        number: int,
        started: float,
        started_at: datetime,
        outcome: AttemptOutcome,
        word_count: int = 0,
        detail: str = "",
    ) -> None:
        attempts.append(
            AttemptRecord(
                subtask_index=policy.stage_index,
                attempt_number=number,
                started_at=started_at,
                duration_ms=max(0, int((clock.monotonic() - started) * 1000)),
                outcome=outcome,
                word_count=word_count,
                detail=detail,
            )
        )

    async def _attempt(number: int) -> str:
        started = clock.monotonic()
        started_at = datetime.now(UTC)
        try:
            try:
                text = await clock.wait_for(
                    generate(prompt, policy.max_tokens), policy.timeout_seconds
                )
            except TimeoutError as e:
                raise AttemptTimeoutError(policy.timeout_seconds) from e
            except UpstreamError:
                raise
            except Exception as e:
                # Backends are opaque; anything they raise is a failed call
                raise TransportError(str(e) or type(e).__name__, original_error=e) from e

            if not isinstance(text, str) or not text.strip():
                raise MalformedResponseError()

            assessment = gate.assess(text, number)
            if not assessment.accepted:
                raise ShallowResponseError(assessment.reason, assessment.word_count)
        except UpstreamError as e:
            word_count = e.word_count if isinstance(e, ShallowResponseError) else 0
            _record(number, started, started_at, _outcome_for(e), word_count, e.message)
            raise

        _record(
            number,
            started,
            started_at,
            AttemptOutcome.SUCCESS,
            assessment.word_count,
            assessment.reason,
        )
        return text

    def _wait(retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        transport = isinstance(error, UpstreamError) and error.transport_class
        return backoff.delay_for_attempt(retry_state.attempt_number, transport)

    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logfire.warning(
            "Retrying upstream attempt",
            stage=policy.stage,
            stage_index=policy.stage_index,
            attempt=retry_state.attempt_number,
            delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error) if error else None,
        )

    retry_policy = AsyncRetrying(
        sleep=clock.sleep,
        stop=stop_after_attempt(policy.max_attempts),
        wait=_wait,
        retry=retry_if_exception_type(UpstreamError),
        before_sleep=_log_retry,
        reraise=True,
    )

    try:
        async for attempt in retry_policy:
            with attempt:
                text = await _attempt(attempt.retry_state.attempt_number)
                return GatedRun(text=text, attempts=tuple(attempts))
    except UpstreamError as e:
        logfire.warning(
            "Upstream attempts exhausted",
            stage=policy.stage,
            stage_index=policy.stage_index,
            attempts=len(attempts),
            error=e.message,
        )
        return GatedRun(text=None, attempts=tuple(attempts), last_error=e)

    raise AssertionError("retry_with_gate exhausted without result")  # pragma: no cover
