"""Helpers for locating and running external media tools."""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from video_export import logging_manager as log_mgr

from .exceptions import CommandExecutionError

logger = log_mgr.logger

# Checked in order when neither an explicit path nor ``PATH`` provides ffmpeg.
FFMPEG_CANDIDATE_PATHS: tuple[str, ...] = (
    "/nix/var/nix/profiles/default/bin/ffmpeg",
    "/usr/bin/ffmpeg",
    "/usr/local/bin/ffmpeg",
    "/opt/homebrew/bin/ffmpeg",
)


@dataclass(slots=True)
class CommandResult:
    """Container describing a completed command execution."""

    command: tuple[str, ...]
    returncode: int
    stdout: str | bytes | None
    stderr: str | bytes | None
    duration: float


def _coerce_command(command: Sequence[str]) -> tuple[str, ...]:
    return tuple(str(part) for part in command)


def resolve_executable(
    preferred: str | None,
    name: str = "ffmpeg",
    *,
    candidates: Iterable[str] = FFMPEG_CANDIDATE_PATHS,
) -> str | None:
    """Return an executable path for ``name`` or ``None`` when nothing is found.

    ``preferred`` may be an absolute path or a bare command name; it wins when
    it resolves. Otherwise ``PATH`` is searched, then the well-known install
    locations in ``candidates``.
    """

    if preferred:
        if os.path.isabs(preferred):
            return preferred if os.path.exists(preferred) else None
        found = shutil.which(preferred)
        if found:
            return found
        return None

    found = shutil.which(name)
    if found:
        return found
    for candidate in candidates:
        if os.path.exists(candidate):
            return candidate
    return None


def run_command(
    command: Sequence[str],
    *,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    text: bool = True,
    logger_obj=logger,
    **kwargs: Any,
) -> CommandResult:
    """Execute ``command`` once and return a :class:`CommandResult`.

    Non-zero exit codes, timeouts and missing executables are all reported as
    :class:`CommandExecutionError`. No retries are attempted.
    """

    coerced = _coerce_command(command)
    run_kwargs: dict[str, Any] = dict(kwargs)
    run_kwargs.setdefault("stdout", subprocess.PIPE)
    run_kwargs.setdefault("stderr", subprocess.PIPE)
    run_kwargs.setdefault("text", text)
    run_kwargs.setdefault("check", False)
    if cwd is not None:
        run_kwargs["cwd"] = cwd
    if timeout is not None:
        run_kwargs["timeout"] = timeout
    if env:
        merged = os.environ.copy()
        merged.update({str(key): str(value) for key, value in env.items()})
        run_kwargs["env"] = merged

    start = time.monotonic()
    if logger_obj:
        logger_obj.debug(
            "Executing command %s",
            coerced[0],
            extra={"event": "media.command.execute", "command": list(coerced)},
        )
    try:
        completed = subprocess.run(list(coerced), **run_kwargs)
    except subprocess.TimeoutExpired as exc:
        if logger_obj:
            logger_obj.warning(
                "Command timed out after %.3fs",
                time.monotonic() - start,
                extra={"event": "media.command.timeout", "command": list(coerced)},
            )
        raise CommandExecutionError(
            coerced, stdout=exc.stdout, stderr=exc.stderr, cause=exc, timeout=True
        ) from exc
    except FileNotFoundError as exc:
        if logger_obj:
            logger_obj.error(
                "Command executable not found",
                extra={"event": "media.command.not_found", "command": list(coerced)},
            )
        raise CommandExecutionError(coerced, cause=exc) from exc
    except OSError as exc:
        if logger_obj:
            logger_obj.error(
                "Command execution failed due to OS error",
                extra={"event": "media.command.os_error", "command": list(coerced)},
            )
        raise CommandExecutionError(coerced, cause=exc) from exc

    duration = time.monotonic() - start
    result = CommandResult(
        command=coerced,
        returncode=completed.returncode,
        stdout=getattr(completed, "stdout", None),
        stderr=getattr(completed, "stderr", None),
        duration=duration,
    )
    if completed.returncode != 0:
        if logger_obj:
            logger_obj.warning(
                "Command returned non-zero status %s",
                completed.returncode,
                extra={
                    "event": "media.command.failed",
                    "command": list(coerced),
                    "returncode": completed.returncode,
                },
            )
        raise CommandExecutionError(
            coerced,
            returncode=completed.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    if logger_obj:
        logger_obj.debug(
            "Command completed successfully in %.3fs",
            duration,
            extra={"event": "media.command.success", "command": list(coerced)},
        )
    return result


__all__ = ["CommandResult", "FFMPEG_CANDIDATE_PATHS", "resolve_executable", "run_command"]
