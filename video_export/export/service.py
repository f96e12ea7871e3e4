"""Export orchestrator: manifest, frames, audio, encode, upload, cleanup."""

from __future__ import annotations

import os
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from video_export import logging_manager as log_mgr
from video_export.books.models import BookRecord, ExportScope
from video_export.books.sources import BookSource
from video_export.capture.renderer import FrameRenderer, RenderOptions, frame_filename
from video_export.config_manager import ExportSettings
from video_export.errors import EncodeError, ExportCancelledError, ManifestError
from video_export.media import resolve_executable
from video_export.progress import (
    ExportPhase,
    ExportProgressCallback,
    ProgressReporter,
    RenderProgress,
)
from video_export.storage import ObjectStore, create_object_store
from video_export.timing.calculator import calculate_book_timing, calculate_single_chapter_timing
from video_export.timing.models import FrameInfo, VideoManifest
from video_export.timing.pagination import FONT_SIZE_METRICS, Paginator, paginate_content

from .audio import AudioPreparer
from .encoder import FFmpegEncoder, build_concat_file, frame_durations, merge_coincident_frames

logger = log_mgr.get_logger().getChild("export.service")

READING_THEMES = ("day", "night", "sepia", "focus")
VIDEO_CONTENT_TYPE = "video/mp4"

# Overall progress share of each phase, in percent.
RENDER_START, RENDER_SPAN = 5.0, 40.0
PREPARE_START, PREPARE_SPAN = 45.0, 15.0
STITCH_START, STITCH_END = 60.0, 90.0
UPLOAD_START = 90.0


@dataclass
class ExportOptions:
    """Caller-supplied parameters of one export job."""

    book_id: int
    scope: ExportScope = "full"
    chapter_number: Optional[int] = None
    theme: str = "day"
    font_size: str = "base"
    base_url: Optional[str] = None
    job_id: Optional[str] = None
    on_progress: Optional[ExportProgressCallback] = None
    cancel_event: Optional[threading.Event] = None


@dataclass(frozen=True)
class ExportResult:
    """Terminal outcome of an export job."""

    success: bool
    video_url: Optional[str] = None
    video_duration: Optional[float] = None
    video_size: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        optional = {
            "videoUrl": self.video_url,
            "videoDuration": self.video_duration,
            "videoSize": self.video_size,
            "error": self.error,
            "errorCode": self.error_code,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


def validate_render_style(theme: str, font_size: str) -> None:
    if theme not in READING_THEMES:
        raise ManifestError(f"Unknown theme {theme!r}; expected one of {', '.join(READING_THEMES)}")
    if font_size not in FONT_SIZE_METRICS:
        raise ManifestError(
            f"Unknown font size {font_size!r}; expected one of {', '.join(FONT_SIZE_METRICS)}"
        )


def _check_cancelled(options: ExportOptions) -> None:
    if options.cancel_event is not None and options.cancel_event.is_set():
        raise ExportCancelledError("Export cancelled")


class VideoExportService:
    """Run export jobs end to end against injected collaborators."""

    def __init__(
        self,
        settings: ExportSettings,
        book_source: BookSource,
        *,
        object_store: Optional[ObjectStore] = None,
        renderer: Optional[FrameRenderer] = None,
        encoder: Optional[FFmpegEncoder] = None,
        audio_preparer: Optional[AudioPreparer] = None,
        paginator: Paginator = paginate_content,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._books = book_source
        self._store = object_store or create_object_store(settings)
        ffmpeg = None
        if encoder is None or audio_preparer is None:
            ffmpeg = resolve_executable(settings.ffmpeg_path)
        self._renderer = renderer or FrameRenderer(settings, object_store=self._store)
        self._encoder = encoder or FFmpegEncoder(settings, executable=ffmpeg)
        self._audio = audio_preparer or AudioPreparer(ffmpeg_executable=ffmpeg)
        self._paginator = paginator
        self._clock = clock

    @property
    def settings(self) -> ExportSettings:
        return self._settings

    def find_book(self, book_id: int) -> Optional[BookRecord]:
        return self._books.get_book(book_id)

    def load_book(self, book_id: int) -> BookRecord:
        book = self.find_book(book_id)
        if book is None:
            raise ManifestError(f"Book {book_id} not found")
        return book

    def generate_manifest(
        self,
        book_id: int,
        scope: ExportScope = "full",
        chapter_number: Optional[int] = None,
        font_size: str = "base",
        theme: str = "day",
        *,
        book: Optional[BookRecord] = None,
    ) -> VideoManifest:
        """Build the timing manifest for a whole book or one chapter."""

        validate_render_style(theme, font_size)
        book = book or self.load_book(book_id)
        settings = self._settings
        common = dict(
            font_size=font_size,
            theme=theme,
            flip_duration=settings.flip_duration,
            highlight_interval=settings.highlight_frame_interval,
            flip_frame_count=settings.flip_frame_count,
            paginator=self._paginator,
        )
        if scope == "chapter":
            (chapter,) = book.select_chapters(scope, chapter_number)
            return calculate_single_chapter_timing(
                book.book_id,
                book.title,
                book.display_author,
                chapter.to_chapter_input(book.chapter_index(chapter)),
                **common,
            )
        return calculate_book_timing(
            book.book_id,
            book.title,
            book.display_author,
            [chapter.to_chapter_input(index) for index, chapter in enumerate(book.chapters)],
            **common,
        )

    def export_video(self, options: ExportOptions) -> ExportResult:
        """Run every phase of one export.

        A failure in any phase is reported through a terminal ``error``
        progress event and a ``success=False`` result rather than raised. The
        working directory is removed however the job ends.
        """

        reporter = ProgressReporter(options.on_progress)
        run = _ExportRun()
        started = time.monotonic()

        with log_mgr.log_context(job_id=options.job_id, book_id=options.book_id):
            try:
                result = self._execute(options, reporter, run)
            except Exception as exc:
                message = str(exc) or type(exc).__name__
                code = getattr(exc, "code", None)
                logger.error(
                    "Video export failed: %s",
                    message,
                    exc_info=True,
                    extra={
                        "event": "video.export.failed",
                        "stage": run.phase.value,
                        "attributes": {"error_code": code},
                    },
                )
                reporter.fail(message)
                self._discard_uploaded_frames(run)
                return ExportResult(success=False, error=message, error_code=code)
            finally:
                if run.work_dir is not None:
                    self._remove_work_dir(run.work_dir)

            logger.info(
                "Video export complete",
                extra={
                    "event": "video.export.complete",
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                    "attributes": {"url": result.video_url, "size": result.video_size},
                },
            )
            return result

    def _execute(
        self, options: ExportOptions, reporter: ProgressReporter, run: "_ExportRun"
    ) -> ExportResult:
        settings = self._settings

        run.enter(ExportPhase.INITIALIZING)
        reporter.publish(ExportPhase.INITIALIZING, 0, message="Generating video manifest...")
        book = self.load_book(options.book_id)
        manifest = self.generate_manifest(
            options.book_id,
            options.scope,
            options.chapter_number,
            options.font_size,
            options.theme,
            book=book,
        )
        chapters = book.select_chapters(options.scope, options.chapter_number)
        word_timestamps = {
            book.chapter_index(chapter): chapter.timestamps()
            for chapter in chapters
            if chapter.audio_timestamps
        }
        self._encoder.ensure_available()
        run.work_dir = Path(tempfile.mkdtemp(prefix="video-export-", dir=settings.tmp_dir))
        raw_dir = run.work_dir / "frames-raw"
        raw_dir.mkdir()
        _check_cancelled(options)

        run.enter(ExportPhase.RENDERING_FRAMES)
        total_frames = manifest.total_frames
        reporter.publish(
            ExportPhase.RENDERING_FRAMES,
            RENDER_START,
            total_chapters=len(manifest.chapters),
            total_frames=total_frames,
            message="Rendering frames...",
        )

        def _on_render_progress(progress: RenderProgress) -> None:
            run.rendered = progress.frames_rendered
            share = progress.current_frame / total_frames if total_frames else 0.0
            reporter.publish(
                ExportPhase.RENDERING_FRAMES,
                RENDER_START + share * RENDER_SPAN,
                current_chapter=progress.current_chapter,
                total_chapters=len(manifest.chapters),
                current_frame=progress.current_frame,
                total_frames=total_frames,
                message=f"Rendering frame {progress.current_frame} of {total_frames}...",
            )

        stamp = int(self._clock() * 1000)
        frames = self._renderer.render_frames(
            RenderOptions(
                book_id=options.book_id,
                base_url=options.base_url or settings.render_base_url,
                theme=options.theme,
                font_size=options.font_size,
                manifest=manifest,
                output_prefix=f"video-exports/{options.book_id}/{stamp}",
                output_dir=raw_dir,
                upload_frames=settings.upload_frames,
                word_timestamps=word_timestamps,
                on_progress=_on_render_progress,
                cancel_event=options.cancel_event,
            )
        )
        run.rendered = frames
        _check_cancelled(options)

        run.enter(ExportPhase.DOWNLOADING)
        reporter.publish(ExportPhase.DOWNLOADING, PREPARE_START, message="Preparing rendered frames...")
        ordered = merge_coincident_frames(frames)
        sequence = self._arrange_frames(ordered, run.work_dir, reporter, options)
        audio_path = self._audio.prepare(chapters, run.work_dir)
        concat_path = build_concat_file(
            list(zip(sequence, frame_durations(ordered, manifest.total_duration))),
            run.work_dir / "concat.txt",
        )
        _check_cancelled(options)

        run.enter(ExportPhase.STITCHING)
        reporter.publish(ExportPhase.STITCHING, STITCH_START, message="Assembling video...")
        output_path = self._encoder.encode(concat_path, audio_path, run.work_dir / "output.mp4")
        reporter.publish(ExportPhase.STITCHING, STITCH_END, message="Encoding complete")
        _check_cancelled(options)

        run.enter(ExportPhase.UPLOADING)
        reporter.publish(ExportPhase.UPLOADING, UPLOAD_START, message="Uploading video...")
        data = output_path.read_bytes()
        if options.scope == "chapter":
            key = f"video-exports/{options.book_id}/chapter-{options.chapter_number}-{stamp}.mp4"
        else:
            key = f"video-exports/{options.book_id}/full-book-{stamp}.mp4"
        video_url = self._store.put(key, data, VIDEO_CONTENT_TYPE)
        self._discard_uploaded_frames(run)

        run.enter(ExportPhase.COMPLETE)
        reporter.publish(ExportPhase.COMPLETE, 100, message="Video export complete!")
        return ExportResult(
            success=True,
            video_url=video_url,
            video_duration=manifest.total_duration,
            video_size=len(data),
        )

    def _arrange_frames(
        self,
        ordered: Sequence[FrameInfo],
        work_dir: Path,
        reporter: ProgressReporter,
        options: ExportOptions,
    ) -> List[Path]:
        """Move frames into ``frame-NNNNNN.jpg`` names that follow time order."""

        sequence: List[Path] = []
        total = len(ordered)
        for index, frame in enumerate(ordered):
            _check_cancelled(options)
            if not frame.local_path:
                raise EncodeError("Frame rendering did not produce local files")
            target = work_dir / frame_filename(index)
            try:
                os.replace(frame.local_path, target)
            except OSError:
                shutil.copyfile(frame.local_path, target)
            sequence.append(target)
            reporter.publish(
                ExportPhase.DOWNLOADING,
                PREPARE_START + ((index + 1) / total) * PREPARE_SPAN,
                current_frame=index + 1,
                total_frames=total,
                message=f"Preparing frame {index + 1} of {total}...",
            )
        return sequence

    def _discard_uploaded_frames(self, run: "_ExportRun") -> None:
        if not self._settings.upload_frames or not run.rendered:
            return
        frames, run.rendered = list(run.rendered), []
        failures = self._renderer.cleanup_frames(frames)
        logger.info(
            "Removed uploaded frames",
            extra={
                "event": "video.export.frames.cleanup",
                "attributes": {"frames": len(frames), "failures": failures},
            },
        )

    @staticmethod
    def _remove_work_dir(path: Path) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning(
                "Failed to remove working directory %s: %s",
                path,
                exc,
                extra={"event": "video.export.cleanup.failed"},
            )


@dataclass
class _ExportRun:
    """Mutable bookkeeping for one export, read by the cleanup path."""

    phase: ExportPhase = ExportPhase.INITIALIZING
    work_dir: Optional[Path] = None
    rendered: Sequence[FrameInfo] = ()

    def enter(self, phase: ExportPhase) -> None:
        self.phase = phase
        logger.info(
            "Export phase %s",
            phase.value,
            extra={"event": "video.export.phase", "stage": phase.value},
        )


__all__ = [
    "ExportOptions",
    "ExportResult",
    "READING_THEMES",
    "VideoExportService",
    "validate_render_style",
]
