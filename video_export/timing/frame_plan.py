"""Frame enumeration shared by manifest estimation and frame capture.

Both the manifest's ``total_frames`` and the list of stills the renderer
captures come from :func:`plan_chapter_frames`, so the two can never drift.
"""

from __future__ import annotations

import math
from typing import List, Optional

from video_export.config_manager.constants import (
    DEFAULT_FLIP_FRAME_COUNT,
    DEFAULT_HIGHLIGHT_FRAME_INTERVAL,
)

from .models import ChapterTiming, FlipDirection, FrameRequest, FrameType, VideoManifest

HIGHLIGHT_FRAME_INTERVAL = DEFAULT_HIGHLIGHT_FRAME_INTERVAL
FLIP_FRAME_COUNT = DEFAULT_FLIP_FRAME_COUNT


def spread_end_time(chapter: ChapterTiming, spread_start_index: int) -> float:
    """Return when the spread starting at ``spread_start_index`` stops showing."""

    pages = chapter.pages
    following = spread_start_index + 2
    if following < len(pages):
        return pages[following].start_time
    return pages[-1].end_time


def spread_frame_count(duration: float, interval: Optional[float]) -> int:
    """Number of static stills for one spread shown for ``duration`` seconds."""

    if interval is None:
        return 1
    return max(1, math.ceil(duration / interval))


def _sampling_interval(chapter: ChapterTiming, interval: Optional[float]) -> Optional[float]:
    return interval if chapter.has_word_timestamps else None


def plan_chapter_frames(
    chapter: ChapterTiming,
    *,
    highlight_interval: Optional[float] = HIGHLIGHT_FRAME_INTERVAL,
    flip_frame_count: int = FLIP_FRAME_COUNT,
) -> List[FrameRequest]:
    """Return every still to capture for ``chapter`` in capture order.

    Static stills come first, one or more per two-page spread, followed by
    ``flip_frame_count`` stills per flip transition. Times are whatever the
    chapter timing holds, so shifted chapters yield whole-video times.
    """

    interval = _sampling_interval(chapter, highlight_interval)
    requests: List[FrameRequest] = []

    for index in range(0, len(chapter.pages), 2):
        start = chapter.pages[index].start_time
        count = spread_frame_count(spread_end_time(chapter, index) - start, interval)
        for step in range(count):
            offset = step * interval if interval is not None else 0.0
            requests.append(
                FrameRequest(
                    time=start + offset,
                    type=FrameType.STATIC,
                    chapter_index=chapter.chapter_index,
                    page_index=index,
                )
            )

    for flip in chapter.flip_transitions:
        for frame in range(flip_frame_count):
            requests.append(
                FrameRequest(
                    time=flip.start_time + (frame / flip_frame_count) * flip.duration,
                    type=FrameType.FLIP,
                    chapter_index=chapter.chapter_index,
                    page_index=flip.from_page,
                    flip_frame=frame,
                    flip_direction=FlipDirection.FORWARD,
                )
            )
    return requests


def count_chapter_frames(
    chapter: ChapterTiming,
    *,
    highlight_interval: Optional[float] = HIGHLIGHT_FRAME_INTERVAL,
    flip_frame_count: int = FLIP_FRAME_COUNT,
) -> int:
    """Frame count for ``chapter`` without building the request list."""

    interval = _sampling_interval(chapter, highlight_interval)
    static = 0
    for index in range(0, len(chapter.pages), 2):
        duration = spread_end_time(chapter, index) - chapter.pages[index].start_time
        static += spread_frame_count(duration, interval)
    return static + len(chapter.flip_transitions) * flip_frame_count


def plan_manifest_frames(manifest: VideoManifest) -> List[FrameRequest]:
    requests: List[FrameRequest] = []
    for chapter in manifest.chapters:
        requests.extend(
            plan_chapter_frames(
                chapter,
                highlight_interval=manifest.highlight_interval,
                flip_frame_count=manifest.flip_frame_count,
            )
        )
    return requests


def frame_timestamps(manifest: VideoManifest, fps: int = 24) -> List[FrameRequest]:
    """Return a time-sorted frame grid with flips sampled at ``fps``.

    One static still marks the start of each spread; each flip transition is
    covered by ``ceil(duration * fps)`` evenly spaced stills. Library helper
    for callers that drive a fixed-rate capture; the export pipeline plans
    frames with :func:`plan_manifest_frames`.
    """

    frames: List[FrameRequest] = []
    for chapter in manifest.chapters:
        for index in range(0, len(chapter.pages), 2):
            frames.append(
                FrameRequest(
                    time=chapter.pages[index].start_time,
                    type=FrameType.STATIC,
                    chapter_index=chapter.chapter_index,
                    page_index=index,
                )
            )
        for flip in chapter.flip_transitions:
            count = math.ceil(flip.duration * fps)
            for frame in range(count):
                frames.append(
                    FrameRequest(
                        time=flip.start_time + (frame / count) * flip.duration,
                        type=FrameType.FLIP,
                        chapter_index=chapter.chapter_index,
                        page_index=flip.from_page,
                        flip_frame=frame,
                        flip_direction=FlipDirection.FORWARD,
                    )
                )
    frames.sort(key=lambda request: request.time)
    return frames


__all__ = [
    "FLIP_FRAME_COUNT",
    "HIGHLIGHT_FRAME_INTERVAL",
    "count_chapter_frames",
    "frame_timestamps",
    "plan_chapter_frames",
    "plan_manifest_frames",
    "spread_end_time",
    "spread_frame_count",
]
