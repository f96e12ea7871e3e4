"""Background execution and bookkeeping for export jobs."""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from video_export import logging_manager as log_mgr
from video_export.errors import ExportCancelledError
from video_export.progress import ExportProgress

from .service import ExportOptions, ExportResult, VideoExportService

logger = log_mgr.get_logger().getChild("export.jobs")


class ExportJobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_TERMINAL = frozenset(
    {ExportJobStatus.COMPLETED, ExportJobStatus.FAILED, ExportJobStatus.CANCELLED}
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExportJobSnapshot:
    """Immutable state representation returned to API layers."""

    job_id: str
    book_id: int
    scope: str
    chapter_number: Optional[int]
    theme: str
    font_size: str
    status: ExportJobStatus
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    progress: Optional[ExportProgress] = None
    result: Optional[ExportResult] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "bookId": self.book_id,
            "scope": self.scope,
            "chapterNumber": self.chapter_number,
            "theme": self.theme,
            "fontSize": self.font_size,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "progress": self.progress.to_dict() if self.progress else None,
            "result": self.result.to_dict() if self.result else None,
        }


@dataclass
class _ExportJobState:
    job_id: str
    options: ExportOptions
    cancel_event: threading.Event
    status: ExportJobStatus = ExportJobStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    progress: Optional[ExportProgress] = None
    result: Optional[ExportResult] = None
    future: Optional[Future] = None


class VideoExportJobManager:
    """Queue exports on a worker pool and track their progress."""

    def __init__(
        self,
        service: VideoExportService,
        *,
        max_workers: Optional[int] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self._service = service
        worker_count = max(1, int(max_workers or service.settings.job_max_workers))
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=worker_count, thread_name_prefix="video-export"
        )
        self._lock = threading.RLock()
        self._jobs: Dict[str, _ExportJobState] = {}

    @property
    def service(self) -> VideoExportService:
        return self._service

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def submit(self, options: ExportOptions) -> ExportJobSnapshot:
        """Schedule ``options`` for background export and return its snapshot."""

        job_id = uuid4().hex
        cancel_event = options.cancel_event or threading.Event()
        state = _ExportJobState(job_id=job_id, options=options, cancel_event=cancel_event)
        forward = options.on_progress

        def _record_progress(progress: ExportProgress) -> None:
            with self._lock:
                state.progress = progress
            if forward is not None:
                forward(progress)

        state.options = replace(
            options, job_id=job_id, on_progress=_record_progress, cancel_event=cancel_event
        )
        with self._lock:
            self._jobs[job_id] = state

        logger.info(
            "Queued video export",
            extra={
                "event": "video.export.job.queued",
                "job_id": job_id,
                "book_id": options.book_id,
                "attributes": {"scope": options.scope, "chapter": options.chapter_number},
            },
        )
        future = self._executor.submit(self._run_job, state)
        with self._lock:
            state.future = future
            return self._build_snapshot(state)

    def get(self, job_id: str) -> Optional[ExportJobSnapshot]:
        with self._lock:
            state = self._jobs.get(job_id)
            return self._build_snapshot(state) if state is not None else None

    def list(self, book_id: Optional[int] = None) -> List[ExportJobSnapshot]:
        """Return jobs newest first, optionally only those for ``book_id``."""

        with self._lock:
            states = [
                state
                for state in self._jobs.values()
                if book_id is None or state.options.book_id == book_id
            ]
            states.sort(key=lambda state: state.created_at, reverse=True)
            return [self._build_snapshot(state) for state in states]

    def cancel(self, job_id: str) -> Optional[ExportJobSnapshot]:
        """Request cancellation; a queued job is cancelled immediately.

        A running job stops at its next frame or phase boundary.
        """

        with self._lock:
            state = self._jobs.get(job_id)
            if state is None:
                return None
            if state.status in _TERMINAL:
                return self._build_snapshot(state)
            state.cancel_event.set()
            if (
                state.status == ExportJobStatus.PENDING
                and state.future is not None
                and state.future.cancel()
            ):
                state.status = ExportJobStatus.CANCELLED
                state.completed_at = _utcnow()
            snapshot = self._build_snapshot(state)

        logger.info(
            "Cancellation requested",
            extra={
                "event": "video.export.job.cancel",
                "job_id": job_id,
                "status": snapshot.status.value,
            },
        )
        return snapshot

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            for state in self._jobs.values():
                if state.status not in _TERMINAL:
                    state.cancel_event.set()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run_job(self, state: _ExportJobState) -> None:
        with self._lock:
            if state.status == ExportJobStatus.CANCELLED:
                return
            state.status = ExportJobStatus.RUNNING
            state.started_at = _utcnow()

        try:
            result = self._service.export_video(state.options)
        except Exception as exc:
            logger.exception(
                "Video export job crashed",
                extra={"event": "video.export.job.error", "job_id": state.job_id},
            )
            result = ExportResult(
                success=False, error=str(exc) or type(exc).__name__, error_code=None
            )

        if result.success:
            status = ExportJobStatus.COMPLETED
        elif result.error_code == ExportCancelledError.code:
            status = ExportJobStatus.CANCELLED
        else:
            status = ExportJobStatus.FAILED

        with self._lock:
            state.result = result
            state.status = status
            state.completed_at = _utcnow()

        logger.info(
            "Video export job finished",
            extra={
                "event": "video.export.job.finished",
                "job_id": state.job_id,
                "book_id": state.options.book_id,
                "status": status.value,
            },
        )

    def _build_snapshot(self, state: _ExportJobState) -> ExportJobSnapshot:
        return ExportJobSnapshot(
            job_id=state.job_id,
            book_id=state.options.book_id,
            scope=state.options.scope,
            chapter_number=state.options.chapter_number,
            theme=state.options.theme,
            font_size=state.options.font_size,
            status=state.status,
            created_at=state.created_at,
            started_at=state.started_at,
            completed_at=state.completed_at,
            progress=state.progress,
            result=state.result,
        )


__all__ = ["ExportJobSnapshot", "ExportJobStatus", "VideoExportJobManager"]
