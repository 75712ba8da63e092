"""Pytest configuration and fixtures for the research pipeline tests."""

import asyncio
import os
from collections.abc import Callable, Sequence

import pytest

# Keep a developer's .env out of the test process
os.environ.setdefault("RESEARCH_SKIP_DOTENV", "1")

from core.clock import ManualClock  # noqa: E402
from core.config import PipelineConfig  # noqa: E402


def make_research_text(min_words: int = 900, tag: str = "insight") -> str:
    """Text that passes every depth predicate and has more than ``min_words`` words."""
    parts: list[str] = []
    for n in range(1, 4):
        parts.append(f"## Section {n}")
        parts.append(f"- Adoption rose 12% and revenue reached $4 million in region {n}")
    parts.append(" ".join([tag] * min_words))
    return "\n\n".join(parts)


def make_short_text(words: int = 50) -> str:
    return " ".join(["word"] * words)


Response = str | BaseException | Callable[[str], str]


class ScriptedGenerator:
    """Fake upstream that replays a script of responses.

    Each call consumes the next entry; the last entry repeats once the script
    runs out. Exceptions are raised, callables receive the prompt.
    """

    def __init__(
        self,
        responses: Sequence[Response],
        *,
        clock: ManualClock | None = None,
        work_seconds: float = 0.0,
    ):
        if not responses:
            raise ValueError("at least one response is required")
        self.responses = list(responses)
        self.clock = clock
        self.work_seconds = work_seconds
        self.prompts: list[str] = []
        self.max_tokens: list[int] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str, max_tokens: int) -> str:
        position = min(len(self.prompts), len(self.responses) - 1)
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        if self.clock is not None and self.work_seconds:
            self.clock.advance(self.work_seconds)
        await asyncio.sleep(0)

        response = self.responses[position]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(prompt)
        return response


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fast_config() -> PipelineConfig:
    """Production thresholds with pacing floors and delays switched off."""
    return PipelineConfig().without_pacing()


@pytest.fixture
def research_text() -> Callable[..., str]:
    return make_research_text


@pytest.fixture
def short_text() -> Callable[..., str]:
    return make_short_text


@pytest.fixture
def scripted_generator() -> type[ScriptedGenerator]:
    return ScriptedGenerator
