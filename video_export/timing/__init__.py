"""Timing calculator: pages, flips and frame counts from narration timestamps."""

from .calculator import (
    ChapterInput,
    calculate_book_timing,
    calculate_chapter_timing,
    calculate_single_chapter_timing,
    generate_flip_transitions,
    normalize_page_timings,
)
from .frame_plan import (
    count_chapter_frames,
    frame_timestamps,
    plan_chapter_frames,
    plan_manifest_frames,
    spread_frame_count,
)
from .models import (
    AudioTimestamp,
    ChapterTiming,
    FlipDirection,
    FlipTransition,
    FrameInfo,
    FrameRequest,
    FrameType,
    PageTiming,
    VideoManifest,
)
from .pagination import PaginatedContent, Paginator, TextChunk, paginate_content
from .words import (
    build_word_start_char_indices,
    find_word_index_by_time,
    validate_audio_timestamps,
    word_index_at_char_pos,
)

__all__ = [
    "AudioTimestamp",
    "ChapterInput",
    "ChapterTiming",
    "FlipDirection",
    "FlipTransition",
    "FrameInfo",
    "FrameRequest",
    "FrameType",
    "PageTiming",
    "PaginatedContent",
    "Paginator",
    "TextChunk",
    "VideoManifest",
    "build_word_start_char_indices",
    "calculate_book_timing",
    "calculate_chapter_timing",
    "calculate_single_chapter_timing",
    "count_chapter_frames",
    "find_word_index_by_time",
    "frame_timestamps",
    "generate_flip_transitions",
    "normalize_page_timings",
    "paginate_content",
    "plan_chapter_frames",
    "plan_manifest_frames",
    "spread_frame_count",
    "validate_audio_timestamps",
    "word_index_at_char_pos",
]
