"""Page and flip timing derived from narration word timestamps.

Everything here is pure: no I/O, no shared state. Chapters can be timed
concurrently and the same inputs always produce the same manifest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from video_export.config_manager.constants import DEFAULT_FLIP_DURATION

from .frame_plan import FLIP_FRAME_COUNT, HIGHLIGHT_FRAME_INTERVAL, count_chapter_frames
from .models import AudioTimestamp, ChapterTiming, FlipTransition, PageTiming, VideoManifest
from .pagination import DEFAULT_FONT_SIZE, Paginator, paginate_content
from .words import (
    build_word_start_char_indices,
    word_end_time,
    word_index_at_char_pos,
    word_start_time,
)

MIN_PAGE_DURATION = 0.1


@dataclass(slots=True)
class ChapterInput:
    """Narrated chapter as consumed by :func:`calculate_book_timing`."""

    index: int
    title: str
    content: str
    audio_duration: float
    audio_timestamps: Sequence[AudioTimestamp] = field(default_factory=tuple)


def normalize_page_timings(pages: List[PageTiming], total_duration: float) -> None:
    """Make ``pages`` cover ``[0, total_duration]`` with no gaps or overlaps."""

    if not pages:
        return

    pages[0].start_time = 0.0
    for current, following in zip(pages, pages[1:]):
        if current.end_time != following.start_time:
            midpoint = (current.end_time + following.start_time) / 2
            current.end_time = midpoint
            following.start_time = midpoint
        current.duration = current.end_time - current.start_time

    last = pages[-1]
    last.end_time = total_duration
    last.duration = last.end_time - last.start_time


def generate_flip_transitions(
    pages: Sequence[PageTiming], flip_duration: float = DEFAULT_FLIP_DURATION
) -> List[FlipTransition]:
    """One page turn per spread boundary, centred on the end of the spread."""

    transitions: List[FlipTransition] = []
    half = flip_duration / 2
    for index in range(0, len(pages) - 2, 2):
        boundary = pages[index + 1].end_time
        transitions.append(
            FlipTransition(
                from_page=index,
                to_page=index + 2,
                start_time=boundary - half,
                end_time=boundary + half,
                duration=flip_duration,
            )
        )
    return transitions


def _even_page_timings(pages, audio_duration: float) -> List[PageTiming]:
    per_page = audio_duration / max(1, len(pages))
    timings = []
    for index, chunks in enumerate(pages):
        timings.append(
            PageTiming(
                page_index=index,
                start_time=index * per_page,
                end_time=(index + 1) * per_page,
                duration=per_page,
                start_word_index=0,
                end_word_index=0,
                start_char_index=chunks[0].start_char_index if chunks else 0,
                end_char_index=chunks[-1].end_char_index if chunks else 0,
            )
        )
    return timings


def calculate_chapter_timing(
    chapter_index: int,
    chapter_title: str,
    content: str,
    timestamps: Sequence[AudioTimestamp],
    audio_duration: float,
    font_size: str = DEFAULT_FONT_SIZE,
    flip_duration: float = DEFAULT_FLIP_DURATION,
    *,
    paginator: Paginator = paginate_content,
) -> ChapterTiming:
    """Time every page of one chapter against its narration.

    Without timestamps the audio is split evenly across pages. With
    timestamps each page spans from its first word's start to its last
    word's end, then the list is normalized to be contiguous.
    """

    paginated = paginator(content, font_size)
    pages = paginated.pages
    total_pages = len(pages)

    if not timestamps:
        timings = _even_page_timings(pages, audio_duration)
        return ChapterTiming(
            chapter_index=chapter_index,
            chapter_title=chapter_title,
            total_pages=total_pages,
            audio_duration=audio_duration,
            pages=timings,
            flip_transitions=generate_flip_transitions(timings, flip_duration),
            has_word_timestamps=False,
        )

    word_starts = build_word_start_char_indices(content)
    timings: List[PageTiming] = []
    for page_index, chunks in enumerate(pages):
        if not chunks:
            continue
        start_char = chunks[0].start_char_index
        end_char = chunks[-1].end_char_index
        start_word = word_index_at_char_pos(word_starts, start_char)
        end_word = word_index_at_char_pos(word_starts, end_char)
        start_time = word_start_time(timestamps, start_word)
        end_time = word_end_time(timestamps, end_word)
        timings.append(
            PageTiming(
                page_index=page_index,
                start_time=start_time,
                end_time=end_time,
                duration=max(MIN_PAGE_DURATION, end_time - start_time),
                start_word_index=start_word,
                end_word_index=end_word,
                start_char_index=start_char,
                end_char_index=end_char,
            )
        )

    normalize_page_timings(timings, audio_duration)
    return ChapterTiming(
        chapter_index=chapter_index,
        chapter_title=chapter_title,
        total_pages=total_pages,
        audio_duration=audio_duration,
        pages=timings,
        flip_transitions=generate_flip_transitions(timings, flip_duration),
        has_word_timestamps=True,
    )


def _time_chapter(
    chapter: ChapterInput, font_size: str, flip_duration: float, paginator: Paginator
) -> ChapterTiming:
    return calculate_chapter_timing(
        chapter.index,
        chapter.title,
        chapter.content,
        chapter.audio_timestamps or (),
        chapter.audio_duration,
        font_size,
        flip_duration,
        paginator=paginator,
    )


def calculate_book_timing(
    book_id: int,
    book_title: str,
    author: str,
    chapters: Sequence[ChapterInput],
    font_size: str = DEFAULT_FONT_SIZE,
    theme: str = "day",
    flip_duration: float = DEFAULT_FLIP_DURATION,
    *,
    highlight_interval: Optional[float] = HIGHLIGHT_FRAME_INTERVAL,
    flip_frame_count: int = FLIP_FRAME_COUNT,
    paginator: Paginator = paginate_content,
) -> VideoManifest:
    """Build a whole-book manifest with chapters laid end to end in time."""

    total_duration = 0.0
    total_frames = 0
    timings: List[ChapterTiming] = []

    for chapter in chapters:
        timing = _time_chapter(chapter, font_size, flip_duration, paginator)
        timing.shift(total_duration)
        total_duration += timing.audio_duration
        total_frames += count_chapter_frames(
            timing, highlight_interval=highlight_interval, flip_frame_count=flip_frame_count
        )
        timings.append(timing)

    return VideoManifest(
        book_id=book_id,
        book_title=book_title,
        author=author,
        total_duration=total_duration,
        total_frames=total_frames,
        chapters=timings,
        font_size=font_size,
        theme=theme,
        highlight_interval=highlight_interval,
        flip_frame_count=flip_frame_count,
    )


def calculate_single_chapter_timing(
    book_id: int,
    book_title: str,
    author: str,
    chapter: ChapterInput,
    font_size: str = DEFAULT_FONT_SIZE,
    theme: str = "day",
    flip_duration: float = DEFAULT_FLIP_DURATION,
    *,
    highlight_interval: Optional[float] = HIGHLIGHT_FRAME_INTERVAL,
    flip_frame_count: int = FLIP_FRAME_COUNT,
    paginator: Paginator = paginate_content,
) -> VideoManifest:
    """Manifest for exporting one chapter; times start at zero."""

    timing = _time_chapter(chapter, font_size, flip_duration, paginator)
    return VideoManifest(
        book_id=book_id,
        book_title=book_title,
        author=author,
        total_duration=timing.audio_duration,
        total_frames=count_chapter_frames(
            timing, highlight_interval=highlight_interval, flip_frame_count=flip_frame_count
        ),
        chapters=[timing],
        font_size=font_size,
        theme=theme,
        highlight_interval=highlight_interval,
        flip_frame_count=flip_frame_count,
    )


__all__ = [
    "ChapterInput",
    "MIN_PAGE_DURATION",
    "calculate_book_timing",
    "calculate_chapter_timing",
    "calculate_single_chapter_timing",
    "generate_flip_transitions",
    "normalize_page_timings",
]
