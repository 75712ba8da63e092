"""Unit tests for deterministic fallback content."""

import re

from models.research import SubtaskResult, SubtaskSpec
from services.fallback import concatenate_results, demote_headings, subtask_fallback_text
from services.quality_gate import has_list_markers


def _spec(index: int = 0, title: str = "Audience Analysis and Needs") -> SubtaskSpec:
    return SubtaskSpec(
        index=index,
        topic="urban beekeeping",
        facet=f"facet_{index}",
        title=title,
        prompt="prompt",
    )


def _result(index: int, title: str, text: str, is_fallback: bool = False) -> SubtaskResult:
    return SubtaskResult(
        subtask_index=index, facet=f"facet_{index}", title=title, text=text, is_fallback=is_fallback
    )


class TestSubtaskFallback:
    def test_mentions_topic_and_facet(self):
        text = subtask_fallback_text(_spec())

        assert "urban beekeeping" in text
        assert "audience analysis and needs" in text
        assert has_list_markers(text)

    def test_has_no_headings(self):
        assert not re.search(r"^#", subtask_fallback_text(_spec()), re.MULTILINE)

    def test_deterministic(self):
        assert subtask_fallback_text(_spec()) == subtask_fallback_text(_spec())

    def test_spanish(self):
        text = subtask_fallback_text(_spec(), language="es")

        assert "No fue posible" in text
        assert "urban beekeeping" in text


class TestDemoteHeadings:
    def test_demotes_by_two_levels(self):
        assert demote_headings("# A\ntext\n## B") == "### A\ntext\n#### B"

    def test_caps_at_h6(self):
        assert demote_headings("##### Deep") == "###### Deep"

    def test_ignores_hash_without_space(self):
        assert demote_headings("#hashtag") == "#hashtag"


class TestConcatenateResults:
    def test_well_formed_document(self):
        results = [
            _result(0, "Market Overview", "Market text"),
            _result(1, "Audience", "Audience text", is_fallback=True),
            _result(2, "Competition", "Competition text"),
        ]
        document = concatenate_results("urban beekeeping", results)
        lines = document.splitlines()

        assert lines[0] == "# urban beekeeping: Research Report"
        section_headings = [line for line in lines if line.startswith("## ")]
        assert section_headings == [
            "## Executive Summary",
            "## Market Overview",
            "## Audience",
            "## Competition",
            "## Strategic Recommendations",
        ]
        assert "1 of them contain framework content" in document
        assert document.endswith("\n")

    def test_orders_by_subtask_index(self):
        results = [_result(2, "Third", "c"), _result(0, "First", "a"), _result(1, "Second", "b")]
        document = concatenate_results("topic", results)

        assert document.index("## First") < document.index("## Second") < document.index(
            "## Third"
        )

    def test_subtask_headings_nested_under_sections(self):
        document = concatenate_results("topic", [_result(0, "Only", "## Inner\n\nbody")])

        assert "#### Inner" in document
        assert "\n## Inner" not in document

    def test_spanish_labels(self):
        document = concatenate_results("apicultura urbana", [_result(0, "Mercado", "texto")], "es")

        assert document.startswith("# apicultura urbana: Informe de investigación")
        assert "## Resumen ejecutivo" in document
        assert "## Recomendaciones estratégicas" in document
