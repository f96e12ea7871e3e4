"""Frame capture: drive the rendering surface and persist one still per instant."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, ContextManager, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlencode

from playwright.sync_api import Page, Playwright, TimeoutError as PlaywrightTimeoutError, sync_playwright

from video_export import logging_manager as log_mgr
from video_export.config_manager import ExportSettings
from video_export.errors import (
    ExportCancelledError,
    ManifestError,
    RenderTargetMissingError,
    RenderTimeoutError,
)
from video_export.progress import RenderPhase, RenderProgress, RenderProgressCallback
from video_export.storage import ObjectStore
from video_export.timing.frame_plan import count_chapter_frames, plan_chapter_frames
from video_export.timing.models import (
    AudioTimestamp,
    ChapterTiming,
    FlipDirection,
    FrameInfo,
    FrameRequest,
    FrameType,
    VideoManifest,
)
from video_export.timing.words import find_word_index_by_time

from .browser import LaunchStrategy, default_launch_strategies, launch_browser
from .session import RenderSession, ResponseCache

logger = log_mgr.get_logger().getChild("capture.renderer")

RENDER_CONTAINER_SELECTOR = "#render-container"
READY_FLAG_SCRIPT = "() => window.__RENDER_READY__ === true"
FRAME_CONTENT_TYPE = "image/jpeg"


def frame_filename(index: int) -> str:
    return f"frame-{index:06d}.jpg"


def build_render_url(
    base_url: str,
    book_id: int,
    chapter_index: int,
    page_index: int,
    theme: str,
    font_size: str,
    *,
    flip_frame: Optional[int] = None,
    flip_direction: Optional[FlipDirection] = None,
    word_index: Optional[int] = None,
) -> str:
    """Return the rendering-surface URL for one still."""

    params: Dict[str, str] = {
        "chapter": str(chapter_index),
        "page": str(page_index),
        "theme": theme,
        "fontSize": font_size,
    }
    if flip_frame is not None:
        params["flipFrame"] = str(flip_frame)
        params["flipDirection"] = (flip_direction or FlipDirection.FORWARD).value
    if word_index is not None:
        params["word"] = str(word_index)
    return f"{base_url.rstrip('/')}/render/book/{book_id}?{urlencode(params)}"


@dataclass
class RenderOptions:
    """Everything one capture run needs besides the settings."""

    book_id: int
    base_url: str
    theme: str
    font_size: str
    manifest: VideoManifest
    output_prefix: str
    output_dir: Optional[Path] = None
    upload_frames: bool = False
    word_timestamps: Mapping[int, Sequence[AudioTimestamp]] = field(default_factory=dict)
    on_progress: Optional[RenderProgressCallback] = None
    cancel_event: Optional[threading.Event] = None


class FrameRenderer:
    """Capture every frame of a manifest through one long-lived browser page.

    The browser, its context and the book-response cache live for exactly
    one :meth:`render_frames` call and are released however it ends.
    """

    def __init__(
        self,
        settings: ExportSettings,
        *,
        object_store: Optional[ObjectStore] = None,
        playwright_factory: Callable[[], ContextManager[Playwright]] = sync_playwright,
        launch_strategies: Optional[Sequence[LaunchStrategy]] = None,
        environ: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._object_store = object_store
        self._playwright_factory = playwright_factory
        self._launch_strategies = launch_strategies
        self._environ = environ
        self._sleep = sleep
        self._clock = clock
        self.response_cache: Optional[ResponseCache] = None
        self.launched_with: Optional[str] = None

    def wait_for_render_ready(self, page: Page) -> None:
        """Poll the page's readiness flag until it is set or the timeout expires."""

        timeout = self._settings.ready_timeout_seconds
        deadline = self._clock() + timeout
        while True:
            if page.evaluate(READY_FLAG_SCRIPT):
                return
            if self._clock() >= deadline:
                raise RenderTimeoutError(
                    f"Timeout waiting for render to be ready after {timeout:g}s ({page.url})"
                )
            self._sleep(self._settings.ready_poll_interval_seconds)

    def capture_frame(self, page: Page, url: str) -> bytes:
        """Navigate to ``url`` and return a JPEG of the render container."""

        settings = self._settings
        try:
            page.goto(
                url,
                wait_until=settings.navigation_wait_until,
                timeout=settings.navigation_timeout_seconds * 1000,
            )
        except PlaywrightTimeoutError as exc:
            raise RenderTimeoutError(f"Navigation timed out: {url}") from exc

        self.wait_for_render_ready(page)
        if settings.settle_delay_seconds:
            self._sleep(settings.settle_delay_seconds)

        element = page.query_selector(RENDER_CONTAINER_SELECTOR)
        if element is None:
            raise RenderTargetMissingError(f"Render container not found: {url}")
        return element.screenshot(type="jpeg", quality=settings.jpeg_quality)

    def _word_index(
        self, options: RenderOptions, chapter: ChapterTiming, request: FrameRequest
    ) -> Optional[int]:
        if request.type is not FrameType.STATIC or not chapter.has_word_timestamps:
            return None
        timestamps = options.word_timestamps.get(chapter.chapter_index)
        if not timestamps:
            return None
        index = find_word_index_by_time(timestamps, request.time - chapter.start_time)
        return index if index >= 0 else None

    def _persist(self, options: RenderOptions, index: int, data: bytes) -> tuple[Optional[str], Optional[str]]:
        name = frame_filename(index)
        local_path = None
        if options.output_dir is not None:
            target = Path(options.output_dir) / name
            target.write_bytes(data)
            local_path = os.fspath(target)
        url = None
        if options.upload_frames:
            url = self._object_store.put(f"{options.output_prefix}/{name}", data, FRAME_CONTENT_TYPE)
        return local_path, url

    def _render_chapter_frames(
        self,
        page: Page,
        options: RenderOptions,
        chapter: ChapterTiming,
        start_index: int,
        on_frame: Callable[[FrameInfo], None],
    ) -> List[FrameInfo]:
        manifest = options.manifest
        requests = plan_chapter_frames(
            chapter,
            highlight_interval=manifest.highlight_interval,
            flip_frame_count=manifest.flip_frame_count,
        )
        frames: List[FrameInfo] = []
        for offset, request in enumerate(requests):
            if options.cancel_event is not None and options.cancel_event.is_set():
                raise ExportCancelledError("Export cancelled during frame capture")
            url = build_render_url(
                options.base_url,
                options.book_id,
                chapter.chapter_index,
                request.page_index,
                options.theme,
                options.font_size,
                flip_frame=request.flip_frame,
                flip_direction=request.flip_direction,
                word_index=self._word_index(options, chapter, request),
            )
            data = self.capture_frame(page, url)
            local_path, frame_url = self._persist(options, start_index + offset, data)
            frame = FrameInfo(
                time=request.time,
                type=request.type,
                chapter_index=chapter.chapter_index,
                page_index=request.page_index,
                width=self._settings.frame_width,
                height=self._settings.frame_height,
                local_path=local_path,
                url=frame_url,
                flip_frame=request.flip_frame,
            )
            frames.append(frame)
            on_frame(frame)
        return frames

    def render_frames(self, options: RenderOptions) -> List[FrameInfo]:
        """Capture every frame of ``options.manifest`` in plan order."""

        if options.output_dir is None and not options.upload_frames:
            raise ManifestError("Frames must be written to a directory or uploaded")
        if options.upload_frames and self._object_store is None:
            raise ManifestError("Frame upload requested without an object store")

        manifest = options.manifest
        progress = RenderProgress(
            phase=RenderPhase.INITIALIZING,
            current_chapter=0,
            total_chapters=len(manifest.chapters),
            current_frame=0,
            total_frames=manifest.total_frames,
        )
        self._notify(options, progress)

        def _on_frame(frame: FrameInfo) -> None:
            progress.current_frame += 1
            progress.frames_rendered.append(frame)
            self._notify(options, progress)

        strategies = self._launch_strategies or default_launch_strategies(self._settings)
        self.response_cache = ResponseCache()
        frames: List[FrameInfo] = []
        started = self._clock()

        with self._playwright_factory() as playwright:
            browser, self.launched_with = launch_browser(
                playwright, strategies, environ=self._environ
            )
            try:
                with RenderSession(
                    browser, self._settings, options.book_id, self.response_cache
                ) as page:
                    progress.phase = RenderPhase.RENDERING
                    self._notify(options, progress)
                    for position, chapter in enumerate(manifest.chapters):
                        progress.current_chapter = position
                        self._notify(options, progress)
                        frames.extend(
                            self._render_chapter_frames(
                                page, options, chapter, len(frames), _on_frame
                            )
                        )
            finally:
                browser.close()

        progress.phase = RenderPhase.COMPLETE
        self._notify(options, progress)
        logger.info(
            "Captured %d frames",
            len(frames),
            extra={
                "event": "capture.frames.complete",
                "attributes": {
                    "frames": len(frames),
                    "chapters": len(manifest.chapters),
                    "strategy": self.launched_with,
                    "cache_hits": self.response_cache.hits,
                    "duration_ms": round((self._clock() - started) * 1000, 2),
                },
            },
        )
        return frames

    def render_chapter(self, options: RenderOptions, chapter_index: int) -> List[FrameInfo]:
        """Capture only the manifest chapter whose index is ``chapter_index``.

        Library entry point for re-rendering one chapter of an existing
        manifest; exports build a chapter-scoped manifest and call
        :meth:`render_frames` instead.
        """

        manifest = options.manifest
        selected = [chapter for chapter in manifest.chapters if chapter.chapter_index == chapter_index]
        if not selected:
            raise ManifestError(f"Chapter index {chapter_index} is not part of the manifest")
        total = sum(
            count_chapter_frames(
                chapter,
                highlight_interval=manifest.highlight_interval,
                flip_frame_count=manifest.flip_frame_count,
            )
            for chapter in selected
        )
        subset = replace(manifest, chapters=selected, total_frames=total)
        return self.render_frames(replace(options, manifest=subset))

    def cleanup_frames(self, frames: Sequence[FrameInfo]) -> int:
        """Delete uploaded frames; return how many deletions failed."""

        if self._object_store is None:
            return 0
        failures = 0
        for frame in frames:
            if not frame.url:
                continue
            try:
                self._object_store.delete(frame.url)
            except Exception as exc:
                failures += 1
                logger.warning(
                    "Failed to delete uploaded frame",
                    extra={
                        "event": "capture.frames.cleanup_failed",
                        "attributes": {"url": frame.url, "error": str(exc)},
                    },
                )
        return failures

    @staticmethod
    def _notify(options: RenderOptions, progress: RenderProgress) -> None:
        if options.on_progress is not None:
            options.on_progress(progress)


__all__ = [
    "FRAME_CONTENT_TYPE",
    "FrameRenderer",
    "RENDER_CONTAINER_SELECTOR",
    "RenderOptions",
    "build_render_url",
    "frame_filename",
]
