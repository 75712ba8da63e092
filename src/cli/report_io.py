"""Report display/save helpers for the CLI."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from models.research import PipelineResult

console = Console(force_terminal=True)


def summary_table(result: PipelineResult) -> Table:
    table = Table(title="Subtasks", border_style="cyan")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Facet", style="cyan")
    table.add_column("Attempts", justify="right")
    table.add_column("Last outcome")
    table.add_column("Source", style="green")
    for subtask in result.subtask_results:
        last = subtask.last_outcome
        table.add_row(
            str(subtask.subtask_index),
            subtask.title,
            str(subtask.attempt_count),
            last.value if last is not None else "-",
            "[yellow]fallback[/yellow]" if subtask.is_fallback else "upstream",
        )
    return table


def display_result(result: PipelineResult, show_document: bool = True) -> None:
    status = (
        "[green]Fully generated[/green]"
        if result.fully_generated
        else f"[yellow]{result.used_fallback_count} subtask fallback(s)"
        + (", concatenated synthesis" if result.synthesis_is_fallback else "")
        + "[/yellow]"
    )
    console.print("\n")
    console.print(
        Panel(
            f"[bold cyan]Topic:[/bold cyan] {result.topic}\n"
            + f"[bold cyan]Status:[/bold cyan] {status}\n"
            + f"[bold cyan]Elapsed:[/bold cyan] {result.total_elapsed_ms / 1000:.1f}s"
            + (" (cached)" if result.from_cache else ""),
            title="Research Report Summary",
            border_style="cyan",
        )
    )
    console.print(summary_table(result))
    if show_document:
        console.print(Markdown(result.document))


def save_result(result: PipelineResult, filename: str | Path) -> Path:
    path = Path(filename)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    content = result.document.rstrip() + "\n\n"
    content += f"*Generated: {result.completed_at.isoformat()}*\n"
    path.write_text(content, encoding="utf-8")
    return path
