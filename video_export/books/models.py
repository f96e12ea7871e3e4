"""Read-only book and chapter records consumed by the export pipeline."""
from __future__ import annotations

from typing import Any, List, Literal, Mapping, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from video_export.errors import ManifestError
from video_export.timing.calculator import ChapterInput
from video_export.timing.models import AudioTimestamp
from video_export.timing.words import validate_audio_timestamps

ExportScope = Literal["chapter", "full"]


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    components = string.split("_")
    return components[0] + "".join(word.capitalize() for word in components[1:])


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        serialize_by_alias=True,
    )


class WordTimestampPayload(CamelModel):
    word: str
    start: float = Field(ge=0)
    end: float = Field(ge=0)


class ChapterRecord(CamelModel):
    """Narrated chapter as stored by the book service."""

    model_config = ConfigDict(extra="ignore")

    chapter_number: int = Field(
        validation_alias=AliasChoices("chapterNumber", "chapter_number", "number"), ge=1
    )
    title: str = ""
    content: str = ""
    audio_url: Optional[str] = None
    audio_duration: float = Field(default=0.0, ge=0)
    audio_timestamps: Optional[List[WordTimestampPayload]] = None

    def timestamps(self) -> Tuple[AudioTimestamp, ...]:
        if not self.audio_timestamps:
            return ()
        return tuple(AudioTimestamp(item.word, item.start, item.end) for item in self.audio_timestamps)

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_url)

    def to_chapter_input(self, index: int) -> ChapterInput:
        return ChapterInput(
            index=index,
            title=self.title,
            content=self.content,
            audio_duration=self.audio_duration,
            audio_timestamps=self.timestamps(),
        )


class BookRecord(CamelModel):
    """A book with its chapters in reading order."""

    model_config = ConfigDict(extra="ignore")

    book_id: int = Field(validation_alias=AliasChoices("bookId", "book_id", "id"))
    title: str
    author: Optional[str] = None
    chapters: List[ChapterRecord] = Field(default_factory=list)

    @property
    def display_author(self) -> str:
        return self.author or "Unknown Author"

    def find_chapter(self, chapter_number: int) -> Optional[ChapterRecord]:
        for chapter in self.chapters:
            if chapter.chapter_number == chapter_number:
                return chapter
        return None

    def select_chapters(
        self, scope: ExportScope, chapter_number: Optional[int] = None
    ) -> List[ChapterRecord]:
        """Chapters that take part in an export of ``scope``."""

        if scope == "chapter":
            if chapter_number is None:
                raise ManifestError("Chapter export requires a chapter number")
            chapter = self.find_chapter(chapter_number)
            if chapter is None:
                raise ManifestError(f"Chapter {chapter_number} not found")
            return [chapter]
        return list(self.chapters)

    def chapter_index(self, chapter: ChapterRecord) -> int:
        """Zero-based position used by the rendering surface."""

        for index, candidate in enumerate(self.chapters):
            if candidate is chapter:
                return index
        raise ManifestError(f"Chapter {chapter.chapter_number} does not belong to book {self.book_id}")


def parse_book(payload: Mapping[str, Any]) -> BookRecord:
    """Validate ``payload`` and its narration timestamps.

    Raises :class:`ManifestError` for malformed chapter data or for
    timestamp lists that are unsorted or overlapping.
    """

    try:
        book = BookRecord.model_validate(payload)
    except ValidationError as exc:
        raise ManifestError(f"Invalid book data: {exc}") from exc

    for chapter in book.chapters:
        validate_audio_timestamps(chapter.timestamps(), label=f"Chapter {chapter.chapter_number}")
    return book


__all__ = [
    "BookRecord",
    "CamelModel",
    "ChapterRecord",
    "ExportScope",
    "WordTimestampPayload",
    "parse_book",
    "to_camel",
]
