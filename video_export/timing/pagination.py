"""Deterministic text pagination for the two-page book view."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List

PAGE_WIDTH = 440
PAGE_HEIGHT = 580

# Average glyph width and line height in CSS pixels per reader font size.
FONT_SIZE_METRICS: Dict[str, tuple[float, float]] = {
    "xs": (7.0, 22.0),
    "sm": (7.5, 24.0),
    "base": (8.5, 28.0),
    "lg": (10.0, 34.0),
    "xl": (11.5, 42.0),
    "xxl": (13.0, 50.0),
}
DEFAULT_FONT_SIZE = "base"

_PARAGRAPH_PATTERN = re.compile(r"(?:(?!\n\n).)+", re.DOTALL)
_WORD_PATTERN = re.compile(r"\S+")


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A run of chapter text placed on a page, with its offsets in the chapter."""

    text: str
    start_char_index: int
    end_char_index: int
    is_paragraph_start: bool = False


@dataclass(slots=True)
class PaginatedContent:
    pages: List[List[TextChunk]] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.pages)


Paginator = Callable[[str, str], PaginatedContent]


def page_capacity(font_size: str) -> tuple[int, int]:
    """Return ``(chars_per_line, lines_per_page)`` for ``font_size``."""

    char_width, line_height = FONT_SIZE_METRICS.get(
        font_size, FONT_SIZE_METRICS[DEFAULT_FONT_SIZE]
    )
    return math.floor(PAGE_WIDTH / char_width), math.floor(PAGE_HEIGHT / line_height)


def _paragraph_spans(content: str) -> List[tuple[int, int]]:
    spans = []
    for match in _PARAGRAPH_PATTERN.finditer(content):
        raw = match.group(0)
        stripped = raw.strip()
        if not stripped:
            continue
        start = match.start() + (len(raw) - len(raw.lstrip()))
        spans.append((start, start + len(stripped)))
    return spans


def paginate_content(content: str, font_size: str = DEFAULT_FONT_SIZE) -> PaginatedContent:
    """Split ``content`` into pages of character-range chunks.

    Paragraphs are separated by blank lines and kept whole when they fit.
    Paragraphs taller than a page are broken on word boundaries. The result
    always holds at least one page, which may be empty.
    """

    chars_per_line, lines_per_page = page_capacity(font_size)
    pages: List[List[TextChunk]] = []
    current: List[TextChunk] = []
    used_lines = 0

    for start, end in _paragraph_spans(content):
        paragraph = content[start:end]
        estimated = math.ceil(len(paragraph) / chars_per_line) + 1

        if used_lines + estimated > lines_per_page and current:
            pages.append(current)
            current = []
            used_lines = 0

        if estimated <= lines_per_page:
            current.append(TextChunk(paragraph, start, end, True))
            used_lines += estimated
            continue

        chunk_start = None
        chunk_end = start
        chunk_lines = 0
        for word in _WORD_PATTERN.finditer(paragraph):
            word_start = start + word.start()
            word_end = start + word.end()
            candidate_start = word_start if chunk_start is None else chunk_start
            lines = math.ceil((word_end - candidate_start) / chars_per_line)
            if lines > lines_per_page - used_lines and chunk_start is not None:
                current.append(
                    TextChunk(
                        content[chunk_start:chunk_end],
                        chunk_start,
                        chunk_end,
                        chunk_start == start,
                    )
                )
                pages.append(current)
                current = []
                used_lines = 0
                chunk_start = word_start
                chunk_end = word_end
                chunk_lines = math.ceil((word_end - word_start) / chars_per_line)
            else:
                chunk_start = candidate_start
                chunk_end = word_end
                chunk_lines = lines

        if chunk_start is not None:
            current.append(
                TextChunk(
                    content[chunk_start:chunk_end],
                    chunk_start,
                    chunk_end,
                    chunk_start == start,
                )
            )
            used_lines += chunk_lines + 1

    if current:
        pages.append(current)
    if not pages:
        pages.append([])
    return PaginatedContent(pages=pages)


__all__ = [
    "DEFAULT_FONT_SIZE",
    "FONT_SIZE_METRICS",
    "PaginatedContent",
    "Paginator",
    "TextChunk",
    "page_capacity",
    "paginate_content",
]
