"""Timing data structures shared by the manifest, renderer and encoder."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class FrameType(str, Enum):
    """Kind of still captured for the video."""

    STATIC = "static"
    FLIP = "flip"


class FlipDirection(str, Enum):
    """Page-turn direction passed to the rendering surface."""

    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass(frozen=True, slots=True)
class AudioTimestamp:
    """A narrated word with its start and end time in seconds."""

    word: str
    start: float
    end: float


@dataclass(slots=True)
class PageTiming:
    """Display window of one paginated page."""

    page_index: int
    start_time: float
    end_time: float
    duration: float
    start_word_index: int
    end_word_index: int
    start_char_index: int
    end_char_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageIndex": self.page_index,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "startWordIndex": self.start_word_index,
            "endWordIndex": self.end_word_index,
            "startCharIndex": self.start_char_index,
            "endCharIndex": self.end_char_index,
        }


@dataclass(slots=True)
class FlipTransition:
    """Page-turn animation window between two spreads."""

    from_page: int
    to_page: int
    start_time: float
    end_time: float
    duration: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fromPage": self.from_page,
            "toPage": self.to_page,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
        }


@dataclass(slots=True)
class ChapterTiming:
    """Page and flip timing for a single chapter."""

    chapter_index: int
    chapter_title: str
    total_pages: int
    audio_duration: float
    pages: List[PageTiming] = field(default_factory=list)
    flip_transitions: List[FlipTransition] = field(default_factory=list)
    has_word_timestamps: bool = False

    def shift(self, offset: float) -> None:
        """Move every page and flip window by ``offset`` seconds."""

        if not offset:
            return
        for page in self.pages:
            page.start_time += offset
            page.end_time += offset
        for flip in self.flip_transitions:
            flip.start_time += offset
            flip.end_time += offset

    @property
    def start_time(self) -> float:
        return self.pages[0].start_time if self.pages else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chapterIndex": self.chapter_index,
            "chapterTitle": self.chapter_title,
            "totalPages": self.total_pages,
            "audioDuration": self.audio_duration,
            "hasWordTimestamps": self.has_word_timestamps,
            "pages": [page.to_dict() for page in self.pages],
            "flipTransitions": [flip.to_dict() for flip in self.flip_transitions],
        }


@dataclass(slots=True)
class VideoManifest:
    """Complete timing plan for one export job."""

    book_id: int
    book_title: str
    author: str
    total_duration: float
    total_frames: int
    chapters: List[ChapterTiming]
    font_size: str
    theme: str
    highlight_interval: Optional[float] = None
    flip_frame_count: int = 15

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bookId": self.book_id,
            "bookTitle": self.book_title,
            "author": self.author,
            "totalDuration": self.total_duration,
            "totalFrames": self.total_frames,
            "fontSize": self.font_size,
            "theme": self.theme,
            "highlightInterval": self.highlight_interval,
            "flipFrameCount": self.flip_frame_count,
            "chapters": [chapter.to_dict() for chapter in self.chapters],
        }


@dataclass(frozen=True, slots=True)
class FrameRequest:
    """One still the renderer must capture."""

    time: float
    type: FrameType
    chapter_index: int
    page_index: int
    flip_frame: Optional[int] = None
    flip_direction: Optional[FlipDirection] = None


@dataclass(slots=True)
class FrameInfo:
    """A captured still and where it was persisted."""

    time: float
    type: FrameType
    chapter_index: int
    page_index: int
    width: int
    height: int
    local_path: Optional[str] = None
    url: Optional[str] = None
    flip_frame: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "time": self.time,
            "type": self.type.value,
            "chapterIndex": self.chapter_index,
            "pageIndex": self.page_index,
            "width": self.width,
            "height": self.height,
        }
        if self.local_path is not None:
            payload["localPath"] = self.local_path
        if self.url is not None:
            payload["url"] = self.url
        if self.flip_frame is not None:
            payload["flipFrame"] = self.flip_frame
        return payload


__all__ = [
    "AudioTimestamp",
    "ChapterTiming",
    "FlipDirection",
    "FlipTransition",
    "FrameInfo",
    "FrameRequest",
    "FrameType",
    "PageTiming",
    "VideoManifest",
]
