"""Retry delays and minimum-duration pacing."""

from __future__ import annotations

import logfire

from core.clock import Clock, SystemClock
from core.config import PipelineConfig


class BackoffScheduler:
    """Computes retry delays and sleeps out minimum-duration floors.

    Delays grow as ``base * 2 ** (attempt + exponent_offset)`` seconds, capped,
    with a fixed penalty added after transport-class failures so a degraded
    upstream is not hammered. Floors make a stage take at least a configured
    wall time; they are pacing policy and can be disabled via configuration.
    """

    def __init__(
        self,
        *,
        base_seconds: float = 1.0,
        exponent_offset: int = 3,
        cap_seconds: float = 120.0,
        transport_penalty_seconds: float = 10.0,
        clock: Clock | None = None,
    ):
        self.base_seconds = base_seconds
        self.exponent_offset = exponent_offset
        self.cap_seconds = cap_seconds
        self.transport_penalty_seconds = transport_penalty_seconds
        self.clock = clock or SystemClock()

    @classmethod
    def from_config(cls, config: PipelineConfig, clock: Clock | None = None) -> BackoffScheduler:
        return cls(
            base_seconds=config.backoff_base_seconds,
            exponent_offset=config.backoff_exponent_offset,
            cap_seconds=config.backoff_cap_seconds,
            transport_penalty_seconds=config.transport_penalty_seconds,
            clock=clock,
        )

    def delay_for_attempt(self, attempt_number: int, transport_failure: bool = False) -> float:
        """Seconds to wait after ``attempt_number`` failed.

        Args:
            attempt_number: 1-based number of the attempt that just failed
            transport_failure: Whether it failed at the network level (incl. timeouts)
        """
        if attempt_number < 1:
            raise ValueError("attempt_number starts at 1")
        exponential = self.base_seconds * 2 ** (attempt_number + self.exponent_offset)
        delay = min(self.cap_seconds, exponential)
        if transport_failure:
            delay += self.transport_penalty_seconds
        return delay

    def delay_sequence(self, attempts: int, transport_failure: bool = False) -> list[float]:
        """Delays between ``attempts`` consecutive failures (one fewer than attempts)."""
        return [self.delay_for_attempt(n, transport_failure) for n in range(1, attempts)]

    def elapsed_since(self, started_at: float) -> float:
        return self.clock.monotonic() - started_at

    async def enforce_floor(
        self, started_at: float, floor_seconds: float, *, label: str = ""
    ) -> float:
        """Sleep until ``floor_seconds`` have passed since ``started_at``.

        Returns:
            Seconds actually slept (0.0 when the floor was already met)
        """
        if floor_seconds <= 0:
            return 0.0
        remaining = floor_seconds - self.elapsed_since(started_at)
        if remaining <= 0:
            return 0.0
        logfire.debug(
            "Pacing until minimum duration",
            stage=label,
            floor_seconds=floor_seconds,
            remaining_seconds=round(remaining, 3),
        )
        await self.clock.sleep(remaining)
        return remaining
