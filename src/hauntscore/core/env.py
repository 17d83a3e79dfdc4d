"""
`.env` discovery.

Provider credentials (OpenWeatherMap, Google Places, Mapbox) usually live in a
repo-local `.env` during development, while uvicorn, the CLI and pytest may each
start from a different working directory. `load_dotenv_if_present()` finds that
file once per process and loads it without overriding variables that are
already set.

Lookup order:
1. `HAUNTSCORE_ENV_FILE` (an explicit file; nothing is loaded if it is missing)
2. `.env` in the first parent of the CWD that looks like the project root
3. the same search starting from this package's location
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

_ROOT_MARKERS = (".env", ".git", "pyproject.toml")


def _find_root(start: Path) -> Path | None:
    for candidate in (start, *start.parents):
        if any((candidate / marker).exists() for marker in _ROOT_MARKERS):
            return candidate
    return None


def find_env_file() -> Path | None:
    explicit = os.getenv("HAUNTSCORE_ENV_FILE")
    if explicit:
        path = Path(explicit).expanduser().resolve()
        return path if path.is_file() else None

    for start in (Path.cwd().resolve(), Path(__file__).resolve().parent):
        root = _find_root(start)
        if root is not None and (root / ".env").is_file():
            return root / ".env"
    return None


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load `.env` once; returns the loaded path, or None when there is none."""
    path = find_env_file()
    if path is not None:
        load_dotenv(dotenv_path=path, override=False)
    return path
