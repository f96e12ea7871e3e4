from __future__ import annotations

import threading
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import pytest

from video_export.capture import (
    FrameRenderer,
    LocalLaunchStrategy,
    RenderOptions,
    build_render_url,
    frame_filename,
)
from video_export.errors import (
    ExportCancelledError,
    ManifestError,
    RenderTargetMissingError,
    RenderTimeoutError,
)
from video_export.progress import RenderPhase
from video_export.storage import LocalObjectStore
from video_export.timing import (
    AudioTimestamp,
    ChapterInput,
    FlipDirection,
    FrameType,
    calculate_book_timing,
)

pytestmark = pytest.mark.capture


@pytest.fixture
def manifest(paginator_factory):
    return calculate_book_timing(
        5,
        "Tides",
        "Unknown Author",
        [ChapterInput(0, "Only", "a b c d", 40.0)],
        flip_frame_count=3,
        paginator=paginator_factory(4),
    )


@pytest.fixture
def renderer(export_settings, fake_playwright, clock, tmp_path):
    return FrameRenderer(
        export_settings,
        object_store=LocalObjectStore(tmp_path / "frames-store", base_url="https://cdn.test"),
        playwright_factory=fake_playwright,
        launch_strategies=[LocalLaunchStrategy(export_settings)],
        environ={},
        sleep=clock.sleep,
        clock=clock,
    )


def _options(manifest, output_dir: Path, **overrides) -> RenderOptions:
    values = dict(
        book_id=5,
        base_url="http://reader.test/",
        theme="night",
        font_size="lg",
        manifest=manifest,
        output_prefix="video-exports/5/123",
        output_dir=output_dir,
    )
    values.update(overrides)
    return RenderOptions(**values)


def test_build_render_url_encodes_frame_parameters() -> None:
    url = build_render_url(
        "http://reader.test/",
        12,
        1,
        4,
        "sepia",
        "xl",
        flip_frame=7,
        flip_direction=FlipDirection.FORWARD,
        word_index=31,
    )

    parsed = urlparse(url)
    assert parsed.path == "/render/book/12"
    assert parse_qs(parsed.query) == {
        "chapter": ["1"],
        "page": ["4"],
        "theme": ["sepia"],
        "fontSize": ["xl"],
        "flipFrame": ["7"],
        "flipDirection": ["forward"],
        "word": ["31"],
    }


def test_render_frames_captures_every_planned_frame(
    renderer, manifest, fake_playwright, tmp_path
) -> None:
    output_dir = tmp_path / "raw"
    output_dir.mkdir()
    updates = []

    frames = renderer.render_frames(
        _options(manifest, output_dir, on_progress=lambda p: updates.append((p.phase, p.current_frame)))
    )

    assert len(frames) == manifest.total_frames == 2 + 3
    assert [Path(frame.local_path).name for frame in frames] == [
        frame_filename(index) for index in range(5)
    ]
    assert all(Path(frame.local_path).read_bytes().startswith(b"\xff\xd8") for frame in frames)
    assert [frame.type for frame in frames] == [FrameType.STATIC] * 2 + [FrameType.FLIP] * 3
    assert updates[0] == (RenderPhase.INITIALIZING, 0)
    assert updates[-1] == (RenderPhase.COMPLETE, 5)

    page = fake_playwright.page
    assert len(page.visited) == 5
    assert "flipFrame=0" in page.visited[2]
    assert page.screenshots[0] == {"type": "jpeg", "quality": 85}
    assert fake_playwright.browser.closed is True
    assert fake_playwright.browser.contexts[0].closed is True
    assert renderer.launched_with == "local"


def test_static_frames_carry_the_spoken_word(renderer, paginator_factory, fake_playwright, tmp_path) -> None:
    stamps = (
        AudioTimestamp("a", 0.0, 0.4),
        AudioTimestamp("b", 0.5, 0.9),
        AudioTimestamp("c", 1.0, 1.4),
        AudioTimestamp("d", 1.5, 1.9),
    )
    manifest = calculate_book_timing(
        5,
        "Tides",
        "Unknown Author",
        [ChapterInput(0, "Warmup", "w x", 3.0), ChapterInput(1, "Timed", "a b c d", 2.0, stamps)],
        flip_frame_count=1,
        paginator=paginator_factory(4),
    )

    renderer.render_frames(
        _options(manifest, tmp_path, word_timestamps={1: stamps})
    )

    timed = [urlparse(url) for url in fake_playwright.page.visited if "chapter=1" in url]
    words = [parse_qs(parsed.query).get("word") for parsed in timed]
    assert words[0] == ["0"]
    assert ["1"] in words
    untimed = [url for url in fake_playwright.page.visited if "chapter=0" in url]
    assert all("word=" not in url for url in untimed)


def test_uploaded_frames_get_urls_and_can_be_cleaned_up(renderer, manifest, tmp_path) -> None:
    frames = renderer.render_frames(_options(manifest, None, upload_frames=True))

    assert all(frame.local_path is None for frame in frames)
    assert frames[0].url == "https://cdn.test/video-exports/5/123/frame-000000.jpg"
    stored = tmp_path / "frames-store" / "video-exports" / "5" / "123"
    assert len(list(stored.iterdir())) == 5

    assert renderer.cleanup_frames(frames) == 0
    assert list(stored.iterdir()) == []


def test_render_requires_a_destination(renderer, manifest) -> None:
    with pytest.raises(ManifestError):
        renderer.render_frames(_options(manifest, None))


def test_readiness_timeout_closes_the_browser(renderer, manifest, fake_playwright, clock, tmp_path) -> None:
    fake_playwright.page.ready = False

    with pytest.raises(RenderTimeoutError, match="Timeout waiting for render"):
        renderer.render_frames(_options(manifest, tmp_path))

    assert clock.sleeps == [0.25, 0.25, 0.25, 0.25]
    assert fake_playwright.browser.closed is True


def test_missing_render_container_is_reported(renderer, manifest, fake_playwright, tmp_path) -> None:
    fake_playwright.page.has_container = False

    with pytest.raises(RenderTargetMissingError):
        renderer.render_frames(_options(manifest, tmp_path))


def test_cancellation_stops_before_the_next_frame(renderer, manifest, fake_playwright, tmp_path) -> None:
    cancel = threading.Event()

    def _cancel_after_first(progress) -> None:
        if progress.current_frame == 1:
            cancel.set()

    with pytest.raises(ExportCancelledError):
        renderer.render_frames(
            _options(manifest, tmp_path, cancel_event=cancel, on_progress=_cancel_after_first)
        )

    assert len(fake_playwright.page.visited) == 1
    assert fake_playwright.browser.closed is True


def test_render_chapter_limits_capture_to_one_chapter(renderer, paginator_factory, fake_playwright, tmp_path) -> None:
    manifest = calculate_book_timing(
        5,
        "Tides",
        "Unknown Author",
        [ChapterInput(0, "One", "a b", 4.0), ChapterInput(1, "Two", "c d e f", 8.0)],
        flip_frame_count=2,
        paginator=paginator_factory(4),
    )

    frames = renderer.render_chapter(_options(manifest, tmp_path), 1)

    assert {frame.chapter_index for frame in frames} == {1}
    assert len(frames) == 2 + 2
    with pytest.raises(ManifestError):
        renderer.render_chapter(_options(manifest, tmp_path), 9)
