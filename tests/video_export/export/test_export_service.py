from __future__ import annotations

import threading
from pathlib import Path

import pytest

from video_export.books import parse_book
from video_export.capture import FrameRenderer, LocalLaunchStrategy
from video_export.errors import ManifestError, UploadError
from video_export.export import (
    AudioPreparer,
    ExportOptions,
    FFmpegEncoder,
    VideoExportService,
)
from video_export.media import CommandExecutionError
from video_export.progress import ExportPhase
from video_export.storage import LocalObjectStore
from video_export.timing import plan_manifest_frames

pytestmark = pytest.mark.export

FIXED_NOW = 1_700_000_000.0


class _FakeFFmpeg:
    """Command runner that records the concat list and writes a stand-in MP4."""

    def __init__(self, error: Exception | None = None) -> None:
        self.commands: list[list[str]] = []
        self.concat_lines: list[str] = []
        self._error = error

    def __call__(self, command, **kwargs):
        self.commands.append(list(command))
        concat = Path(command[command.index("-i") + 1])
        self.concat_lines = concat.read_text(encoding="utf-8").splitlines()
        if self._error is not None:
            raise self._error
        Path(command[-1]).write_bytes(b"mp4-bytes")


class _VideoRejectingStore(LocalObjectStore):
    """Stores frames locally but refuses the finished video."""

    def put(self, key: str, data: bytes, content_type: str) -> str:
        if key.endswith(".mp4"):
            raise UploadError(f"Blob store rejected {key}")
        return super().put(key, data, content_type)


@pytest.fixture
def narrated_book(tmp_path):
    narration = tmp_path / "narration.mp3"
    narration.write_bytes(b"ID3-narration")
    return parse_book(
        {
            "id": 7,
            "title": "The Lighthouse",
            "chapters": [
                {
                    "chapterNumber": 1,
                    "title": "Arrival",
                    "content": "one two three four five six seven eight",
                    "audioUrl": str(narration),
                    "audioDuration": 40.0,
                }
            ],
        }
    )


@pytest.fixture
def build_service(export_settings, fake_playwright, clock, paginator_factory, book_source_factory):
    def _build(book, *, settings=None, ffmpeg=None, store=None, encoder=None):
        settings = settings or export_settings
        store = store or LocalObjectStore(settings.storage_dir, base_url=settings.storage_base_url)
        renderer = FrameRenderer(
            settings,
            object_store=store,
            playwright_factory=fake_playwright,
            launch_strategies=[LocalLaunchStrategy(settings)],
            environ={},
            sleep=clock.sleep,
            clock=clock,
        )
        return VideoExportService(
            settings,
            book_source_factory(book),
            object_store=store,
            renderer=renderer,
            encoder=encoder or FFmpegEncoder(settings, command_runner=ffmpeg or _FakeFFmpeg()),
            audio_preparer=AudioPreparer(ffmpeg_executable="ffmpeg"),
            paginator=paginator_factory(4),
            clock=lambda: FIXED_NOW,
        )

    return _build


def _work_dir_entries(settings) -> list:
    return list(Path(settings.tmp_dir).iterdir())


def test_full_book_export_end_to_end(build_service, narrated_book, export_settings, fake_playwright) -> None:
    ffmpeg = _FakeFFmpeg()
    service = build_service(narrated_book, ffmpeg=ffmpeg)
    events = []

    result = service.export_video(ExportOptions(book_id=7, on_progress=events.append))

    assert result.success is True, result.error
    assert result.video_url == (
        "https://cdn.example.com/media/video-exports/7/full-book-1700000000000.mp4"
    )
    assert result.video_duration == 40.0
    assert result.video_size == len(b"mp4-bytes")
    stored = Path(export_settings.storage_dir) / "video-exports" / "7" / "full-book-1700000000000.mp4"
    assert stored.read_bytes() == b"mp4-bytes"

    assert len(fake_playwright.page.visited) == 17
    assert len(ffmpeg.concat_lines) == 17 * 2 + 1
    assert ffmpeg.concat_lines[-1] == ffmpeg.concat_lines[-3]
    (command,) = ffmpeg.commands
    assert any(part.endswith("audio-ch1.mp3") for part in command)

    assert (events[0].phase, events[0].progress) == (ExportPhase.INITIALIZING, 0)
    assert (events[-1].phase, events[-1].progress) == (ExportPhase.COMPLETE, 100)
    percents = [event.progress for event in events]
    assert percents == sorted(percents)
    assert {event.phase for event in events} >= {
        ExportPhase.RENDERING_FRAMES,
        ExportPhase.DOWNLOADING,
        ExportPhase.STITCHING,
        ExportPhase.UPLOADING,
    }
    assert _work_dir_entries(export_settings) == []


def test_chapter_export_uses_chapter_key(build_service, sample_book) -> None:
    service = build_service(sample_book)

    result = service.export_video(ExportOptions(book_id=7, scope="chapter", chapter_number=1))

    assert result.success is True, result.error
    assert result.video_url.endswith("/video-exports/7/chapter-1-1700000000000.mp4")


def test_render_timeout_reports_error_and_cleans_up(
    build_service, narrated_book, export_settings, fake_playwright
) -> None:
    fake_playwright.page.ready = False
    events = []

    result = build_service(narrated_book).export_video(
        ExportOptions(book_id=7, on_progress=events.append)
    )

    assert result.success is False
    assert result.error_code == "video_export.render.timeout"
    assert "Timeout waiting for render" in result.error
    assert events[-1].phase is ExportPhase.ERROR
    assert events[-1].progress == events[-2].progress
    assert events[-1].error == result.error
    assert fake_playwright.browser.closed is True
    assert _work_dir_entries(export_settings) == []


def test_encoder_failure_removes_uploaded_frames(
    build_service, narrated_book, export_settings
) -> None:
    settings = export_settings.model_copy(update={"upload_frames": True})
    failing = _FakeFFmpeg(
        error=CommandExecutionError(["ffmpeg"], returncode=1, stderr="Invalid data found")
    )

    result = build_service(narrated_book, settings=settings, ffmpeg=failing).export_video(
        ExportOptions(book_id=7)
    )

    assert result.success is False
    assert result.error_code == "video_export.encode.failed"
    assert "Invalid data found" in result.error
    frame_dir = Path(settings.storage_dir) / "video-exports" / "7" / "1700000000000"
    assert list(frame_dir.iterdir()) == []
    assert _work_dir_entries(settings) == []


def test_failed_video_upload_keeps_nothing(build_service, narrated_book, export_settings) -> None:
    settings = export_settings.model_copy(update={"upload_frames": True})
    store = _VideoRejectingStore(settings.storage_dir, base_url=settings.storage_base_url)
    events = []

    result = build_service(narrated_book, settings=settings, store=store).export_video(
        ExportOptions(book_id=7, on_progress=events.append)
    )

    assert result.success is False
    assert result.error_code == "video_export.upload.failed"
    assert "full-book-1700000000000.mp4" in result.error
    assert events[-1].phase is ExportPhase.ERROR
    assert events[-2].phase is ExportPhase.UPLOADING
    assert events[-1].progress == events[-2].progress
    frame_dir = Path(settings.storage_dir) / "video-exports" / "7" / "1700000000000"
    assert list(frame_dir.iterdir()) == []
    assert not (Path(settings.storage_dir) / "video-exports" / "7" / "full-book-1700000000000.mp4").exists()
    assert _work_dir_entries(settings) == []


def test_missing_ffmpeg_fails_before_rendering(build_service, narrated_book, export_settings, fake_playwright) -> None:
    encoder = FFmpegEncoder(export_settings, executable=None)
    events = []

    result = build_service(narrated_book, encoder=encoder).export_video(
        ExportOptions(book_id=7, on_progress=events.append)
    )

    assert result.success is False
    assert result.error_code == "video_export.encode.failed"
    assert result.error == "ffmpeg executable not found"
    assert [event.phase for event in events] == [ExportPhase.INITIALIZING, ExportPhase.ERROR]
    assert fake_playwright.chromium.launches == []
    assert _work_dir_entries(export_settings) == []


def test_successful_export_discards_uploaded_frames(
    build_service, narrated_book, export_settings
) -> None:
    settings = export_settings.model_copy(update={"upload_frames": True})

    result = build_service(narrated_book, settings=settings).export_video(ExportOptions(book_id=7))

    assert result.success is True, result.error
    frame_dir = Path(settings.storage_dir) / "video-exports" / "7" / "1700000000000"
    assert list(frame_dir.iterdir()) == []


def test_cancelled_before_rendering(build_service, narrated_book, export_settings, fake_playwright) -> None:
    cancel = threading.Event()
    cancel.set()

    result = build_service(narrated_book).export_video(ExportOptions(book_id=7, cancel_event=cancel))

    assert result.success is False
    assert result.error_code == "video_export.cancelled"
    assert fake_playwright.chromium.launches == []
    assert _work_dir_entries(export_settings) == []


def test_unknown_book_fails_before_any_work(build_service, narrated_book, fake_playwright) -> None:
    events = []

    result = build_service(narrated_book).export_video(
        ExportOptions(book_id=99, on_progress=events.append)
    )

    assert result.success is False
    assert result.error == "Book 99 not found"
    assert result.error_code == "video_export.manifest.invalid"
    assert [event.phase for event in events] == [ExportPhase.INITIALIZING, ExportPhase.ERROR]
    assert fake_playwright.chromium.launches == []


def test_generate_manifest_for_one_chapter(build_service, sample_book) -> None:
    service = build_service(sample_book)

    manifest = service.generate_manifest(7, "chapter", 2)

    assert [chapter.chapter_index for chapter in manifest.chapters] == [1]
    assert manifest.chapters[0].start_time == 0.0
    assert manifest.book_title == "The Lighthouse"


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"theme": "neon"}, "Unknown theme"),
        ({"font_size": "huge"}, "Unknown font size"),
        ({"scope": "chapter", "chapter_number": 5}, "Chapter 5 not found"),
        ({"scope": "chapter"}, "requires a chapter number"),
    ],
)
def test_generate_manifest_rejects_bad_requests(build_service, sample_book, kwargs, message) -> None:
    with pytest.raises(ManifestError, match=message):
        build_service(sample_book).generate_manifest(7, **kwargs)


def test_dense_timestamps_produce_a_strictly_ordered_sequence(build_service, tmp_path) -> None:
    narration = tmp_path / "dense.mp3"
    narration.write_bytes(b"ID3-dense")
    words = "one two three four five six seven eight".split()
    book = parse_book(
        {
            "id": 7,
            "title": "Dense",
            "chapters": [
                {
                    "chapterNumber": 1,
                    "content": " ".join(words),
                    "audioUrl": str(narration),
                    "audioDuration": 40.0,
                    "audioTimestamps": [
                        {"word": word, "start": index * 5.0, "end": index * 5.0 + 4.5}
                        for index, word in enumerate(words)
                    ],
                }
            ],
        }
    )
    ffmpeg = _FakeFFmpeg()
    service = build_service(book, ffmpeg=ffmpeg)

    manifest = service.generate_manifest(7)
    (chapter,) = manifest.chapters
    assert len(chapter.pages) == 4
    assert len(chapter.flip_transitions) == 1
    assert sum(page.duration for page in chapter.pages) == pytest.approx(40.0)

    times = sorted(frame.time for frame in plan_manifest_frames(manifest))
    assert len(times) == manifest.total_frames == 40 + 41 + 15
    assert all(earlier < later for earlier, later in zip(times, times[1:]))

    result = service.export_video(ExportOptions(book_id=7))

    assert result.success is True, result.error
    assert result.video_duration == 40.0
    assert len(ffmpeg.concat_lines) == manifest.total_frames * 2 + 1
    durations = [float(line.split()[1]) for line in ffmpeg.concat_lines if line.startswith("duration")]
    assert min(durations) > 0
    assert sum(durations) == pytest.approx(40.0, abs=0.01)
