"""Run coordinator for the research command."""

from __future__ import annotations

from contextlib import AsyncExitStack

import logfire
from pydantic_ai.exceptions import UserError
from rich.console import Console
from rich.panel import Panel

from agents.text_generator import ChatCompletionsGenerator, PydanticAIGenerator, TextGenerator
from core.config import PipelineConfig, UpstreamSettings
from core.exceptions import ConfigurationError
from core.logging import configure_logging
from core.pipeline import ResearchPipeline
from models.research import Language, PipelineResult
from services.result_cache import ResultCache

from .report_io import display_result, save_result

console = Console(force_terminal=True)

DEFAULT_PYDANTIC_AI_MODEL = "openai:gpt-4o"

_result_cache: ResultCache | None = None


def build_generator(backend: str, model: str | None = None) -> TextGenerator:
    """Create the upstream backend selected on the command line."""
    if backend == "pydantic-ai":
        try:
            return PydanticAIGenerator(model or DEFAULT_PYDANTIC_AI_MODEL)
        except UserError as e:
            raise ConfigurationError("--model", str(e)) from e

    settings = UpstreamSettings()
    if model:
        settings.model = model
    if not settings.has_api_key:
        raise ConfigurationError(
            "RESEARCH_UPSTREAM_API_KEY", "an API key is required for the http backend"
        )
    return ChatCompletionsGenerator(settings)


def build_config(mode: str | None, pacing: bool) -> PipelineConfig:
    config = PipelineConfig.from_env()
    if mode is not None:
        config = config.model_copy(update={"execution_mode": mode})
    if not pacing:
        config = config.without_pacing()
    return config


def get_result_cache(config: PipelineConfig) -> ResultCache:
    """Process-wide cache so repeated runs in one session reuse finished reports."""
    global _result_cache
    if _result_cache is None or _result_cache.ttl_seconds != config.cache_ttl_seconds:
        _result_cache = ResultCache.from_config(config)
    return _result_cache


async def run_research(
    topic: str,
    *,
    context: str = "",
    language: Language = "en",
    mode: str | None = None,
    pacing: bool = True,
    backend: str = "http",
    model: str | None = None,
    output: str | None = None,
    verbose: bool = False,
) -> PipelineResult:
    configure_logging(enable_console=verbose, min_level="debug" if verbose else "info")
    config = build_config(mode, pacing)
    # Validate before any upstream client is created
    request = ResearchPipeline.build_request(topic, context, language)

    console.print(
        Panel(
            f"[bold cyan]Research Topic:[/bold cyan] {request.topic}\n"
            + f"[bold cyan]Mode:[/bold cyan] {config.execution_mode.upper()}\n"
            + f"[bold cyan]Backend:[/bold cyan] {backend}"
            + ("" if config.pacing_enabled else "\n[bold cyan]Pacing:[/bold cyan] disabled"),
            title="Research Pipeline",
            border_style="cyan",
        )
    )

    async with AsyncExitStack() as stack:
        generator = build_generator(backend, model)
        if isinstance(generator, ChatCompletionsGenerator):
            await stack.enter_async_context(generator)
        pipeline = ResearchPipeline(generator, config, cache=get_result_cache(config))
        result = await pipeline.run_request(request)

    display_result(result, show_document=output is None)
    if output is not None:
        path = save_result(result, output)
        logfire.info("Report saved", path=str(path))
        console.print(f"[green]Report saved to {path}[/green]")
    return result
