"""Click CLI entry points for the research pipeline."""

from __future__ import annotations

import asyncio
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version

import click
from rich.console import Console
from rich.table import Table

from core.config import PipelineConfig, UpstreamSettings
from core.exceptions import ConfigurationError, InvalidResearchRequestError

from .runner import run_research


def _installed_version(distribution: str) -> str:
    try:
        return package_version(distribution)
    except PackageNotFoundError:
        return "not installed"


@click.group()
def cli() -> None:
    """Deep Research Pipeline - resilient multi-stage research orchestration."""
    pass


@cli.command()
@click.argument("topic")
@click.option("--context", "-c", default="", help="Extra context passed to every prompt")
@click.option(
    "--language",
    "-l",
    type=click.Choice(["en", "es"], case_sensitive=False),
    default="en",
    help="Language of fallback content",
)
@click.option(
    "--mode",
    "-m",
    type=click.Choice(["sequential", "parallel"], case_sensitive=False),
    default=None,
    help="Subtask scheduling (default: RESEARCH_EXECUTION_MODE or sequential)",
)
@click.option("--no-pacing", is_flag=True, help="Disable minimum-duration floors and delays")
@click.option(
    "--backend",
    "-b",
    type=click.Choice(["http", "pydantic-ai"], case_sensitive=False),
    default="http",
    help="Upstream backend: OpenAI-compatible HTTP endpoint or a pydantic-ai model",
)
@click.option("--model", default=None, help="Model name for the selected backend")
@click.option("--output", "-o", default=None, help="Write the Markdown report to this file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def research(
    topic: str,
    context: str,
    language: str,
    mode: str | None,
    no_pacing: bool,
    backend: str,
    model: str | None,
    output: str | None,
    verbose: bool,
) -> None:
    """Research TOPIC and print the synthesized report."""
    try:
        asyncio.run(
            run_research(
                topic,
                context=context,
                language=language.lower(),  # type: ignore[arg-type]
                mode=mode.lower() if mode else None,
                pacing=not no_pacing,
                backend=backend.lower(),
                model=model,
                output=output,
                verbose=verbose,
            )
        )
    except InvalidResearchRequestError as e:
        raise click.BadParameter(e.message, param_hint="'TOPIC'") from e
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e
    except KeyboardInterrupt:
        Console(force_terminal=True).print("\n[yellow]Research interrupted by user[/yellow]")
        sys.exit(130)


@cli.command("show-config")
def show_config() -> None:
    """Show the effective pipeline configuration."""
    console = Console(force_terminal=True)
    try:
        config = PipelineConfig.from_env()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    table = Table(title="Pipeline Configuration", border_style="cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for name, value in config.model_dump(exclude={"facets"}).items():
        table.add_row(name, str(value))
    table.add_row("facets", ", ".join(facet.key for facet in config.facets))

    upstream = UpstreamSettings()
    table.add_row("upstream.base_url", upstream.base_url)
    table.add_row("upstream.model", upstream.model)
    table.add_row("upstream.api_key", "set" if upstream.has_api_key else "[red]missing[/red]")
    console.print(table)


@cli.command()
def version() -> None:
    """Show version information."""
    console = Console(force_terminal=True)
    table = Table(title="Deep Research Pipeline", border_style="cyan")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")
    table.add_row("Research Pipeline", _installed_version("resilient-research-pipeline"))
    table.add_row("Pydantic AI", _installed_version("pydantic-ai"))
    table.add_row("Tenacity", _installed_version("tenacity"))
    pyver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    table.add_row("Python", pyver)
    console.print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
