"""Schemas for the video export API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, model_validator

from video_export.books.models import CamelModel
from video_export.export.jobs import ExportJobSnapshot
from video_export.progress import ExportProgress


class VideoExportRequest(CamelModel):
    """Request payload starting a video export."""

    book_id: int = Field(..., ge=1, description="Identifier of the book to export.")
    scope: Literal["chapter", "full"] = "full"
    chapter_number: Optional[int] = Field(
        default=None, ge=1, description="Chapter to export when ``scope`` is ``chapter``."
    )
    theme: str = "day"
    font_size: str = "base"

    @model_validator(mode="after")
    def _require_chapter_for_chapter_scope(self) -> "VideoExportRequest":
        if self.scope == "chapter" and self.chapter_number is None:
            raise ValueError('chapterNumber is required when scope is "chapter"')
        return self


class ExportProgressPayload(CamelModel):
    phase: str
    progress: float
    current_chapter: Optional[int] = None
    total_chapters: Optional[int] = None
    current_frame: Optional[int] = None
    total_frames: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_progress(cls, progress: ExportProgress) -> "ExportProgressPayload":
        return cls(
            phase=progress.phase.value,
            progress=progress.progress,
            current_chapter=progress.current_chapter,
            total_chapters=progress.total_chapters,
            current_frame=progress.current_frame,
            total_frames=progress.total_frames,
            message=progress.message,
            error=progress.error,
        )


class VideoExportJobResponse(CamelModel):
    """Status of one export job, including the latest progress and outcome."""

    job_id: str
    book_id: int
    status: str
    scope: str
    chapter_number: Optional[int] = None
    theme: str
    font_size: str
    progress: Optional[ExportProgressPayload] = None
    output_url: Optional[str] = None
    output_size: Optional[int] = None
    output_duration: Optional[float] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_snapshot(cls, snapshot: ExportJobSnapshot) -> "VideoExportJobResponse":
        result = snapshot.result
        return cls(
            job_id=snapshot.job_id,
            book_id=snapshot.book_id,
            status=snapshot.status.value,
            scope=snapshot.scope,
            chapter_number=snapshot.chapter_number,
            theme=snapshot.theme,
            font_size=snapshot.font_size,
            progress=(
                ExportProgressPayload.from_progress(snapshot.progress)
                if snapshot.progress
                else None
            ),
            output_url=result.video_url if result else None,
            output_size=result.video_size if result else None,
            output_duration=result.video_duration if result else None,
            error=result.error if result else None,
            error_code=result.error_code if result else None,
            created_at=snapshot.created_at,
            started_at=snapshot.started_at,
            completed_at=snapshot.completed_at,
        )


class VideoExportCreatedResponse(CamelModel):
    """Response returned when an export has been queued."""

    job: VideoExportJobResponse
    total_frames: int
    total_duration: float
    estimated_size_mb: int
    estimated_duration_minutes: float
    estimated_export_seconds: int


class VideoExportJobList(CamelModel):
    jobs: List[VideoExportJobResponse] = Field(default_factory=list)


__all__ = [
    "ExportProgressPayload",
    "VideoExportCreatedResponse",
    "VideoExportJobList",
    "VideoExportJobResponse",
    "VideoExportRequest",
]
