"""Centralized logging configuration for the research pipeline.

logfire is configured exactly once per process, whichever entry point (CLI,
embedding application, tests) gets there first.

Usage:
    from core.logging import configure_logging
    configure_logging(enable_console=True)

    import logfire
    logfire.info("Pipeline started", topic=topic)
"""

import sys
import threading

import logfire

_configured = False
_config_lock = threading.Lock()


def configure_logging(enable_console: bool = False, min_level: str = "info") -> None:
    """Configure logfire logging if not already configured.

    Args:
        enable_console: Whether to print log records to the console.
        min_level: Lowest level emitted to the console.

    Nothing is sent to the logfire backend unless a token is present in the
    environment (``send_to_logfire="if-token-present"``).
    """
    global _configured

    if _configured:
        return

    with _config_lock:
        if _configured:
            return
        try:
            console = logfire.ConsoleOptions(min_log_level=min_level) if enable_console else False
            logfire.configure(
                service_name="research-pipeline",
                send_to_logfire="if-token-present",
                console=console,
            )
            _configured = True
        except Exception as e:
            # logfire isn't usable yet, so stderr is the only channel left
            print(f"Failed to configure logfire: {e}", file=sys.stderr)


def is_configured() -> bool:
    """Return True once configure_logging has succeeded."""
    return _configured
