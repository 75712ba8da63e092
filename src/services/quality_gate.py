"""Quality gate for generated research text.

Word count is the hard gate. Structural depth (numbers, lists, headings) is a
soft gate: it rejects responses during the first ``structure_strict_attempts``
attempts and is waived afterwards, so borderline content cannot keep a stage
retrying forever.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

import logfire

from core.config import PipelineConfig
from models.research import QualityAssessment

_PERCENT_RE = re.compile(r"\d+(?:[.,]\d+)?\s?(?:%|percent\b|por ciento\b)", re.IGNORECASE)
_CURRENCY_RE = re.compile(
    r"(?:[$€£¥]\s?\d)|(?:\b\d+(?:[.,]\d+)?\s?(?:USD|EUR|GBP|dollars|euros)\b)", re.IGNORECASE
)
_MAGNITUDE_RE = re.compile(
    r"\b\d+(?:[.,]\d+)?\s?(?:thousand|million|billion|trillion|millones|mil|bn|[kmb])\b",
    re.IGNORECASE,
)
_LIST_MARKER_RE = re.compile(r"^\s*(?:[-*+•]|\d{1,2}[.)])\s+\S", re.MULTILINE)
_ATX_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+\S", re.MULTILINE)
_BOLD_HEADING_RE = re.compile(r"^\s{0,3}\*\*[^*\n]{2,80}\*\*:?\s*$", re.MULTILINE)


def count_words(text: str) -> int:
    """Whitespace-delimited word count."""
    return len(text.split())


def has_numeric_evidence(text: str) -> bool:
    """True when the text cites a percentage, a currency amount or a magnitude."""
    return any(
        pattern.search(text) is not None for pattern in (_PERCENT_RE, _CURRENCY_RE, _MAGNITUDE_RE)
    )


def has_list_markers(text: str) -> bool:
    """True when at least one bulleted or numbered list item is present."""
    return _LIST_MARKER_RE.search(text) is not None


def count_headings(text: str) -> int:
    """Count Markdown ATX headings and stand-alone bold lines."""
    return len(_ATX_HEADING_RE.findall(text)) + len(_BOLD_HEADING_RE.findall(text))


@dataclass(frozen=True)
class DepthPredicate:
    """A named structural check combined by the quality gate."""

    name: str
    check: Callable[[str], bool]


def default_depth_predicates(min_headings: int) -> tuple[DepthPredicate, ...]:
    """Predicates applied while structure is enforced."""
    return (
        DepthPredicate("numeric_evidence", has_numeric_evidence),
        DepthPredicate("list_markers", has_list_markers),
        DepthPredicate("headings", lambda text: count_headings(text) >= min_headings),
    )


class QualityGate:
    """Classifies a response as acceptable or shallow."""

    def __init__(
        self,
        min_words: int,
        *,
        min_headings: int = 3,
        structure_strict_attempts: int = 2,
        predicates: tuple[DepthPredicate, ...] | None = None,
        name: str = "quality_gate",
    ):
        """Initialize the gate.

        Args:
            min_words: Hard word-count floor
            min_headings: Headings required by the default heading predicate
            structure_strict_attempts: Attempts during which depth markers are required
            predicates: Custom depth predicates replacing the defaults
            name: Label used in log records
        """
        self.min_words = min_words
        self.structure_strict_attempts = structure_strict_attempts
        self.predicates = predicates if predicates is not None else default_depth_predicates(
            min_headings
        )
        self.name = name

    @classmethod
    def for_subtasks(cls, config: PipelineConfig) -> QualityGate:
        return cls(
            config.subtask_min_words,
            min_headings=config.min_headings,
            structure_strict_attempts=config.structure_strict_attempts,
            name="subtask_gate",
        )

    @classmethod
    def for_synthesis(cls, config: PipelineConfig) -> QualityGate:
        return cls(
            config.synthesis_min_words,
            min_headings=config.min_headings,
            structure_strict_attempts=config.structure_strict_attempts,
            name="synthesis_gate",
        )

    def structure_enforced(self, attempt_number: int) -> bool:
        return attempt_number <= self.structure_strict_attempts

    def assess(self, text: str, attempt_number: int = 1) -> QualityAssessment:
        """Assess one response.

        Args:
            text: Response text from the upstream service
            attempt_number: 1-based attempt that produced the text

        Returns:
            QualityAssessment with the verdict, reason and per-predicate markers
        """
        word_count = count_words(text)
        markers = {predicate.name: predicate.check(text) for predicate in self.predicates}
        enforced = self.structure_enforced(attempt_number)

        if word_count < self.min_words:
            return QualityAssessment(
                accepted=False,
                reason=f"too_short: {word_count} < {self.min_words} words",
                word_count=word_count,
                markers=markers,
                structure_enforced=enforced,
            )

        missing = [name for name, present in markers.items() if not present]
        if missing and enforced:
            return QualityAssessment(
                accepted=False,
                reason="missing_depth_markers: " + ", ".join(missing),
                word_count=word_count,
                markers=markers,
                structure_enforced=enforced,
            )

        if missing:
            logfire.debug(
                "Accepting response without depth markers",
                gate=self.name,
                attempt=attempt_number,
                missing=missing,
            )
        return QualityAssessment(
            accepted=True,
            reason="accepted_relaxed" if missing else "accepted",
            word_count=word_count,
            markers=markers,
            structure_enforced=enforced,
        )
