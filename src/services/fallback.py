"""Deterministic, non-generated content used when upstream stages fail.

Nothing here reads the clock or any random source: the same inputs always
render the same text.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from models.research import Language, SubtaskResult, SubtaskSpec

_HEADING_RE = re.compile(r"^(\s{0,3})(#{1,6})(\s+)", re.MULTILINE)

_SUBTASK_FALLBACK = {
    "en": (
        "Detailed research on {facet} for {topic} could not be completed at this time, "
        "so this section offers a starting framework instead.\n\n"
        "When reviewing {facet} for {topic}, consider:\n"
        "- Which recent developments have changed the picture most\n"
        "- Which figures (sizes, shares, growth rates) would confirm or refute "
        "current assumptions\n"
        "- Who is most affected and what they need next\n"
        "- Which sources should be consulted to verify each point\n\n"
        "Revisit this section with fresh research before relying on it for decisions."
    ),
    "es": (
        "No fue posible completar la investigación detallada sobre {facet} para {topic}, "
        "por lo que esta sección ofrece un marco de partida.\n\n"
        "Al revisar {facet} para {topic}, considere:\n"
        "- Qué desarrollos recientes han cambiado más el panorama\n"
        "- Qué cifras (tamaños, cuotas, tasas de crecimiento) confirmarían o refutarían "
        "los supuestos actuales\n"
        "- Quién se ve más afectado y qué necesita a continuación\n"
        "- Qué fuentes deberían consultarse para verificar cada punto\n\n"
        "Actualice esta sección con nueva investigación antes de basar decisiones en ella."
    ),
}

_DOCUMENT_LABELS = {
    "en": {
        "title": "# {topic}: Research Report",
        "summary_heading": "## Executive Summary",
        "summary": (
            "This report brings together {count} research briefs on {topic}: {titles}."
        ),
        "summary_fallbacks": (
            " {fallbacks} of them contain framework content because fresh research "
            "was unavailable for that facet."
        ),
        "closing_heading": "## Strategic Recommendations",
        "closing": (
            "- Prioritise the opportunities supported by the strongest figures above\n"
            "- Validate open assumptions about {topic} with current data before committing budget\n"
            "- Tailor messaging to the audience needs identified in this report\n"
            "- Track the competitors and practices listed here and review them regularly\n"
            "- Revisit this report as new information about {topic} becomes available"
        ),
    },
    "es": {
        "title": "# {topic}: Informe de investigación",
        "summary_heading": "## Resumen ejecutivo",
        "summary": (
            "Este informe reúne {count} análisis de investigación sobre {topic}: {titles}."
        ),
        "summary_fallbacks": (
            " {fallbacks} de ellos contienen un marco de referencia porque no hubo "
            "investigación actualizada disponible para ese aspecto."
        ),
        "closing_heading": "## Recomendaciones estratégicas",
        "closing": (
            "- Priorice las oportunidades respaldadas por las cifras más sólidas\n"
            "- Valide los supuestos abiertos sobre {topic} con datos actuales antes de invertir\n"
            "- Adapte el mensaje a las necesidades de la audiencia identificadas en este informe\n"
            "- Siga a los competidores y prácticas mencionados y revíselos con regularidad\n"
            "- Actualice este informe a medida que surja nueva información sobre {topic}"
        ),
    },
}


def subtask_fallback_text(spec: SubtaskSpec, language: Language = "en") -> str:
    """Topic- and facet-specific placeholder text for a failed subtask."""
    template = _SUBTASK_FALLBACK.get(language, _SUBTASK_FALLBACK["en"])
    return template.format(topic=spec.topic.strip(), facet=spec.title.lower())


def demote_headings(text: str, levels: int = 2) -> str:
    """Push every Markdown heading down ``levels`` levels (capped at h6)."""

    def _demote(match: re.Match[str]) -> str:
        depth = min(6, len(match.group(2)) + levels)
        return f"{match.group(1)}{'#' * depth}{match.group(3)}"

    return _HEADING_RE.sub(_demote, text)


def concatenate_results(
    topic: str, results: Sequence[SubtaskResult], language: Language = "en"
) -> str:
    """Assemble subtask texts into a well-formed document without the upstream.

    Layout: title, executive summary, one section per subtask in index order,
    strategic recommendations.
    """
    labels = _DOCUMENT_LABELS.get(language, _DOCUMENT_LABELS["en"])
    ordered = sorted(results, key=lambda result: result.subtask_index)
    topic = topic.strip()

    summary = labels["summary"].format(
        count=len(ordered),
        topic=topic,
        titles=", ".join(result.title for result in ordered),
    )
    fallbacks = sum(1 for result in ordered if result.is_fallback)
    if fallbacks:
        summary += labels["summary_fallbacks"].format(fallbacks=fallbacks)

    parts = [
        labels["title"].format(topic=topic),
        labels["summary_heading"],
        summary,
    ]
    for result in ordered:
        parts.append(f"## {result.title}")
        parts.append(demote_headings(result.text.strip()))
    parts.append(labels["closing_heading"])
    parts.append(labels["closing"].format(topic=topic))
    return "\n\n".join(parts) + "\n"
