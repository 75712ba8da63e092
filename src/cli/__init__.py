"""Public CLI API re-exports for tests and external importers."""

from .app import cli
from .report_io import display_result, save_result
from .runner import build_config, build_generator, get_result_cache, run_research

__all__ = [
    "build_config",
    "build_generator",
    "cli",
    "display_result",
    "get_result_cache",
    "run_research",
    "save_result",
]
