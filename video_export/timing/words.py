"""Mapping between character offsets, word indices and narration time."""

from __future__ import annotations

from bisect import bisect_right
from typing import List, Sequence

import regex

from video_export.errors import ManifestError

from .models import AudioTimestamp

# Letters, digits and apostrophes (straight and typographic) form a word.
_WORD_PATTERN = regex.compile(r"[\p{L}\p{N}'’]+")

# Tolerance for rounding noise in aligner output.
TIMESTAMP_TOLERANCE = 0.001


def build_word_start_char_indices(text: str) -> List[int]:
    """Return the character offset where each word in ``text`` begins."""

    return [match.start() for match in _WORD_PATTERN.finditer(text)]


def word_index_at_char_pos(word_starts: Sequence[int], char_pos: int) -> int:
    """Return the index of the last word starting at or before ``char_pos``.

    The result is clamped to ``[0, len(word_starts) - 1]``; an empty sequence
    yields ``0``.
    """

    if not word_starts:
        return 0
    index = bisect_right(word_starts, char_pos) - 1
    return max(0, min(index, len(word_starts) - 1))


def find_word_index_by_time(timestamps: Sequence[AudioTimestamp], time: float) -> int:
    """Return the word being spoken at ``time``.

    A word whose ``[start, end]`` span contains ``time`` wins. Between words the
    most recently started word is returned, and ``-1`` when ``time`` precedes
    the first word.
    """

    if not timestamps:
        return -1

    lo, hi = 0, len(timestamps) - 1
    while lo <= hi:
        mid = (lo + hi) // 2
        entry = timestamps[mid]
        if time < entry.start:
            hi = mid - 1
        elif time > entry.end:
            lo = mid + 1
        else:
            return mid

    lo, hi = 0, len(timestamps)
    while lo < hi:
        mid = (lo + hi) // 2
        if timestamps[mid].start <= time:
            lo = mid + 1
        else:
            hi = mid
    return lo - 1 if lo > 0 else -1


def word_start_time(timestamps: Sequence[AudioTimestamp], word_index: int) -> float:
    if word_index < 0 or word_index >= len(timestamps):
        return 0.0
    return timestamps[word_index].start


def word_end_time(timestamps: Sequence[AudioTimestamp], word_index: int) -> float:
    if word_index < 0 or word_index >= len(timestamps):
        return timestamps[-1].end if timestamps else 0.0
    return timestamps[word_index].end


def validate_audio_timestamps(
    timestamps: Sequence[AudioTimestamp], *, label: str = "chapter"
) -> None:
    """Reject timestamp lists the binary searches above cannot handle.

    Raises :class:`ManifestError` when a word ends before it starts, starts
    are decreasing, or a word starts before the previous word has ended.
    """

    previous: AudioTimestamp | None = None
    for index, entry in enumerate(timestamps):
        if entry.start < 0 or entry.end + TIMESTAMP_TOLERANCE < entry.start:
            raise ManifestError(
                f"{label}: word {index} ({entry.word!r}) has an invalid time span "
                f"{entry.start:.3f}-{entry.end:.3f}"
            )
        if previous is not None:
            if entry.start + TIMESTAMP_TOLERANCE < previous.start:
                raise ManifestError(
                    f"{label}: audio timestamps are not sorted at word {index} ({entry.word!r})"
                )
            if entry.start + TIMESTAMP_TOLERANCE < previous.end:
                raise ManifestError(
                    f"{label}: word {index} ({entry.word!r}) overlaps the previous word"
                )
        previous = entry


__all__ = [
    "build_word_start_char_indices",
    "find_word_index_by_time",
    "validate_audio_timestamps",
    "word_end_time",
    "word_index_at_char_pos",
    "word_start_time",
]
