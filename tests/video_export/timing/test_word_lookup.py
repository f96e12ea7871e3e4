from __future__ import annotations

import pytest

from video_export.errors import ManifestError
from video_export.timing.models import AudioTimestamp
from video_export.timing.words import (
    build_word_start_char_indices,
    find_word_index_by_time,
    validate_audio_timestamps,
    word_end_time,
    word_index_at_char_pos,
    word_start_time,
)

pytestmark = pytest.mark.timing

TIMESTAMPS = [
    AudioTimestamp("Once", 0.0, 0.4),
    AudioTimestamp("upon", 0.5, 0.9),
    AudioTimestamp("a", 1.0, 1.1),
    AudioTimestamp("time", 1.5, 2.0),
]


@pytest.mark.parametrize(
    ("char_pos", "expected"),
    [(0, 0), (4, 0), (5, 1), (7, 1), (10, 2), (99, 2), (-3, 0)],
)
def test_word_index_at_char_pos(char_pos: int, expected: int) -> None:
    assert word_index_at_char_pos([0, 5, 10], char_pos) == expected


def test_word_index_at_char_pos_without_words() -> None:
    assert word_index_at_char_pos([], 42) == 0


def test_word_starts_follow_letters_digits_and_apostrophes() -> None:
    text = "It's 3 o\u2019clock \u2014 caf\u00e9 time!"
    assert build_word_start_char_indices(text) == [0, 5, 7, 17, 22]


@pytest.mark.parametrize(
    ("time", "expected"),
    [
        (-1.0, -1),
        (0.0, 0),
        (0.2, 0),
        (0.45, 0),
        (0.5, 1),
        (1.05, 2),
        (1.3, 2),
        (1.75, 3),
        (5.0, 3),
    ],
)
def test_find_word_index_by_time(time: float, expected: int) -> None:
    assert find_word_index_by_time(TIMESTAMPS, time) == expected


def test_find_word_index_by_time_without_timestamps() -> None:
    assert find_word_index_by_time([], 1.0) == -1


def test_word_time_lookups_clamp_out_of_range_indices() -> None:
    assert word_start_time(TIMESTAMPS, 1) == 0.5
    assert word_start_time(TIMESTAMPS, 10) == 0.0
    assert word_end_time(TIMESTAMPS, 2) == 1.1
    assert word_end_time(TIMESTAMPS, 10) == 2.0
    assert word_end_time([], 0) == 0.0


def test_validate_accepts_sorted_non_overlapping_words() -> None:
    validate_audio_timestamps(TIMESTAMPS)


@pytest.mark.parametrize(
    ("timestamps", "message"),
    [
        ([AudioTimestamp("a", 1.0, 0.5)], "invalid time span"),
        ([AudioTimestamp("a", 1.0, 1.2), AudioTimestamp("b", 0.5, 0.8)], "not sorted"),
        ([AudioTimestamp("a", 0.0, 1.0), AudioTimestamp("b", 0.5, 1.5)], "overlaps"),
    ],
)
def test_validate_rejects_malformed_timestamps(timestamps, message: str) -> None:
    with pytest.raises(ManifestError, match=message):
        validate_audio_timestamps(timestamps, label="Chapter 3")
