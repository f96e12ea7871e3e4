"""Video export API endpoints."""

from __future__ import annotations

from typing import Annotated, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from video_export import logging_manager as log_mgr
from video_export.errors import ManifestError
from video_export.export import (
    ExportOptions,
    VideoExportJobManager,
    estimate_export_time,
    estimate_video_size,
)

from .dependencies import get_job_manager
from .schemas import (
    VideoExportCreatedResponse,
    VideoExportJobList,
    VideoExportJobResponse,
    VideoExportRequest,
)

router = APIRouter()
logger = log_mgr.get_logger().getChild("webapi.video_exports")

JobManagerDep = Annotated[VideoExportJobManager, Depends(get_job_manager)]


@router.post(
    "",
    response_model=VideoExportCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def create_video_export(
    payload: VideoExportRequest,
    request: Request,
    job_manager: JobManagerDep,
) -> VideoExportCreatedResponse:
    service = job_manager.service
    correlation_id = request.headers.get("x-request-id") or uuid4().hex

    with log_mgr.log_context(
        correlation_id=correlation_id,
        book_id=payload.book_id,
        stage="api.video_exports.create",
    ):
        try:
            book = service.find_book(payload.book_id)
        except ManifestError as exc:
            raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        if book is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Book not found")

        if not any(chapter.has_audio for chapter in book.chapters):
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST,
                detail=(
                    "No audio found. Generate audio for at least one chapter "
                    "before exporting video."
                ),
            )
        if payload.scope == "chapter":
            chapter = book.find_chapter(payload.chapter_number)
            if chapter is None or not chapter.has_audio:
                raise HTTPException(
                    status.HTTP_400_BAD_REQUEST,
                    detail=f"Chapter {payload.chapter_number} does not have audio.",
                )

        try:
            manifest = service.generate_manifest(
                payload.book_id,
                payload.scope,
                payload.chapter_number,
                payload.font_size,
                payload.theme,
                book=book,
            )
        except ManifestError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        snapshot = job_manager.submit(
            ExportOptions(
                book_id=payload.book_id,
                scope=payload.scope,
                chapter_number=payload.chapter_number,
                theme=payload.theme,
                font_size=payload.font_size,
            )
        )
        size = estimate_video_size(manifest)
        logger.info(
            "Video export queued",
            extra={
                "event": "video.export.request",
                "job_id": snapshot.job_id,
                "attributes": {
                    "scope": payload.scope,
                    "chapter": payload.chapter_number,
                    "total_frames": manifest.total_frames,
                },
            },
        )
        return VideoExportCreatedResponse(
            job=VideoExportJobResponse.from_snapshot(snapshot),
            total_frames=manifest.total_frames,
            total_duration=manifest.total_duration,
            estimated_size_mb=size.estimated_size_mb,
            estimated_duration_minutes=size.estimated_duration_minutes,
            estimated_export_seconds=estimate_export_time(manifest),
        )


@router.get("", response_model=VideoExportJobList)
def list_video_exports(
    job_manager: JobManagerDep,
    book_id: Annotated[Optional[int], Query()] = None,
) -> VideoExportJobList:
    return VideoExportJobList(
        jobs=[VideoExportJobResponse.from_snapshot(item) for item in job_manager.list(book_id)]
    )


@router.get("/{job_id}", response_model=VideoExportJobResponse)
def get_video_export(job_id: str, job_manager: JobManagerDep) -> VideoExportJobResponse:
    snapshot = job_manager.get(job_id)
    if snapshot is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Job not found")
    return VideoExportJobResponse.from_snapshot(snapshot)


@router.post("/{job_id}/cancel", response_model=VideoExportJobResponse)
def cancel_video_export(job_id: str, job_manager: JobManagerDep) -> VideoExportJobResponse:
    snapshot = job_manager.cancel(job_id)
    if snapshot is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Job not found")
    return VideoExportJobResponse.from_snapshot(snapshot)


__all__ = ["router"]
