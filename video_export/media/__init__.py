"""External media tool helpers (command execution and error types)."""

from .command_runner import CommandResult, resolve_executable, run_command
from .exceptions import CommandExecutionError, MediaBackendError

__all__ = [
    "CommandExecutionError",
    "CommandResult",
    "MediaBackendError",
    "resolve_executable",
    "run_command",
]
