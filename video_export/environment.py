"""Load dotenv files so the CLI and the API see the same environment."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional, Tuple

from dotenv import load_dotenv

ENV_FILE_VARIABLE = "VIDEO_EXPORT_ENV_FILE"
ENV_NAME_VARIABLE = "VIDEO_EXPORT_ENV"

# Files already processed; importing from both the CLI and uvicorn loads once.
_LOADED_FILES: Tuple[Path, ...] | None = None


def _iter_candidate_files(root: Path) -> Iterable[Path]:
    """Yield dotenv files in order of precedence."""

    explicit_paths = os.environ.get(ENV_FILE_VARIABLE)
    if explicit_paths:
        for value in explicit_paths.split(os.pathsep):
            if value.strip():
                yield Path(value).expanduser().resolve()

    target = os.environ.get(ENV_NAME_VARIABLE)
    candidate_names = [".env"]
    if target:
        candidate_names.append(f".env.{target}")
    candidate_names.append(".env.local")

    for name in candidate_names:
        yield (root / name).resolve()


def load_environment(*, root: Optional[Path] = None, force: bool = False) -> Tuple[Path, ...]:
    """Load variables from dotenv files under ``root`` (default: the working directory).

    Variables already present in the process environment are never overridden.
    """

    global _LOADED_FILES
    if _LOADED_FILES is not None and not force:
        return _LOADED_FILES

    loaded: list[Path] = []
    seen: set[Path] = set()
    for path in _iter_candidate_files(root or Path.cwd()):
        if path in seen:
            continue
        seen.add(path)
        if not path.is_file():
            continue
        if load_dotenv(path, override=False):
            loaded.append(path)
    _LOADED_FILES = tuple(loaded)
    return _LOADED_FILES


__all__ = ["ENV_FILE_VARIABLE", "ENV_NAME_VARIABLE", "load_environment"]
