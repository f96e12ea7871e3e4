"""Exception taxonomy for the video export pipeline.

Every error raised by a pipeline phase derives from :class:`VideoExportError`
and carries a stable ``code`` so callers (job records, HTTP payloads, logs) can
branch on the failure kind without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


class VideoExportError(RuntimeError):
    """Base error with a stable error code."""

    code = "video_export.error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigurationError(VideoExportError):
    """Raised when export settings cannot be loaded or validated."""

    code = "video_export.config.invalid"


class ManifestError(VideoExportError):
    """Book or chapter data is missing or malformed; raised before rendering."""

    code = "video_export.manifest.invalid"


class RenderTimeoutError(VideoExportError):
    """The rendering surface never reported readiness within the timeout."""

    code = "video_export.render.timeout"


class RenderTargetMissingError(VideoExportError):
    """The capture container element was absent from the rendered page."""

    code = "video_export.render.target_missing"


@dataclass(frozen=True)
class LaunchAttempt:
    """Outcome of a single browser launch strategy attempt."""

    strategy: str
    error: str


class BrowserLaunchError(VideoExportError):
    """No browser launch strategy succeeded in the current environment."""

    code = "video_export.browser.launch_failed"

    def __init__(self, attempts: Sequence[LaunchAttempt]) -> None:
        self.attempts = list(attempts)
        if self.attempts:
            detail = "; ".join(f"{item.strategy}: {item.error}" for item in self.attempts)
        else:
            detail = "no launch strategy was applicable"
        super().__init__(f"Browser launch failed ({detail})")


class AudioPreparationError(VideoExportError):
    """Narration audio could not be downloaded or concatenated."""

    code = "video_export.audio.failed"


class EncodeError(VideoExportError):
    """The external encoder failed or could not be located."""

    code = "video_export.encode.failed"


class UploadError(VideoExportError):
    """An artifact could not be persisted to object storage."""

    code = "video_export.upload.failed"


class ExportCancelledError(VideoExportError):
    """The export was cancelled between frames or phases."""

    code = "video_export.cancelled"


__all__ = [
    "AudioPreparationError",
    "BrowserLaunchError",
    "ConfigurationError",
    "EncodeError",
    "ExportCancelledError",
    "LaunchAttempt",
    "ManifestError",
    "RenderTargetMissingError",
    "RenderTimeoutError",
    "UploadError",
    "VideoExportError",
]
