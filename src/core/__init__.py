"""Core pipeline package - loads environment variables on import."""

import os
from pathlib import Path

from dotenv import load_dotenv


def _load_nearest_env() -> Path | None:
    """Load the closest .env walking up from the working directory.

    Set RESEARCH_SKIP_DOTENV=1 to keep the process environment untouched.
    """
    if os.getenv("RESEARCH_SKIP_DOTENV", "").strip() in {"1", "true", "TRUE", "True"}:
        return None
    cwd = Path.cwd()
    for directory in [cwd, *cwd.parents]:
        candidate = directory / ".env"
        if candidate.exists():
            # Explicit environment wins over file values
            load_dotenv(candidate, override=False)
            return candidate
    return None


ENV_FILE = _load_nearest_env()
