"""Phase-tagged progress snapshots for export jobs."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from video_export import logging_manager

logger = logging_manager.get_logger()


class ExportPhase(str, Enum):
    INITIALIZING = "initializing"
    RENDERING_FRAMES = "rendering_frames"
    DOWNLOADING = "downloading"
    STITCHING = "stitching"
    UPLOADING = "uploading"
    COMPLETE = "complete"
    ERROR = "error"


class RenderPhase(str, Enum):
    INITIALIZING = "initializing"
    RENDERING = "rendering"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ExportProgress:
    """Immutable view of an export job's progress."""

    phase: ExportPhase
    progress: float
    current_chapter: Optional[int] = None
    total_chapters: Optional[int] = None
    current_frame: Optional[int] = None
    total_frames: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"phase": self.phase.value, "progress": self.progress}
        optional = {
            "currentChapter": self.current_chapter,
            "totalChapters": self.total_chapters,
            "currentFrame": self.current_frame,
            "totalFrames": self.total_frames,
            "message": self.message,
            "error": self.error,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


@dataclass
class RenderProgress:
    """Mutable frame-capture progress handed to render callbacks."""

    phase: RenderPhase
    current_chapter: int
    total_chapters: int
    current_frame: int
    total_frames: int
    frames_rendered: List[Any] = field(default_factory=list)


ExportProgressCallback = Callable[[ExportProgress], None]
RenderProgressCallback = Callable[[RenderProgress], None]


class ProgressReporter:
    """Publish :class:`ExportProgress` events with a non-decreasing percentage.

    A percentage lower than the last one published is raised to the last
    value, so observers never see progress move backwards. Failing observers
    are logged and skipped so one broken listener cannot abort an export.
    """

    def __init__(self, callback: Optional[ExportProgressCallback] = None) -> None:
        self._lock = threading.Lock()
        self._observers: Sequence[ExportProgressCallback] = [callback] if callback else []
        self._last: Optional[ExportProgress] = None

    @property
    def last(self) -> Optional[ExportProgress]:
        return self._last

    @property
    def last_percent(self) -> float:
        return self._last.progress if self._last else 0.0

    def register_observer(self, callback: ExportProgressCallback) -> Callable[[], None]:
        with self._lock:
            observers = list(self._observers)
            observers.append(callback)
            self._observers = observers

        def _unregister() -> None:
            with self._lock:
                remaining = list(self._observers)
                if callback in remaining:
                    remaining.remove(callback)
                self._observers = remaining

        return _unregister

    def publish(self, phase: ExportPhase, progress: float, **details: Any) -> ExportProgress:
        with self._lock:
            floor = self._last.progress if self._last else 0.0
            event = ExportProgress(
                phase=phase,
                progress=round(min(100.0, max(floor, float(progress))), 2),
                **details,
            )
            self._last = event
            observers: Tuple[ExportProgressCallback, ...] = tuple(self._observers)
        for observer in observers:
            try:
                observer(event)
            except Exception:
                logger.warning(
                    "Progress observer failed",
                    exc_info=True,
                    extra={"event": "video.export.progress.observer_failed"},
                )
        return event

    def fail(self, message: str) -> ExportProgress:
        """Publish the terminal ``error`` event at the last reached percentage."""

        return self.publish(ExportPhase.ERROR, self.last_percent, message=message, error=message)

    def snapshot(self) -> Optional[ExportProgress]:
        with self._lock:
            return replace(self._last) if self._last else None


__all__ = [
    "ExportPhase",
    "ExportProgress",
    "ExportProgressCallback",
    "ProgressReporter",
    "RenderPhase",
    "RenderProgress",
    "RenderProgressCallback",
]
