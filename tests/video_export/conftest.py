"""Shared fixtures for video export tests."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from video_export.books import BookRecord, parse_book
from video_export.config_manager import ExportSettings
from video_export.timing.pagination import PaginatedContent, TextChunk


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeElement:
    def __init__(self, page: "FakePage") -> None:
        self._page = page

    def screenshot(self, **kwargs) -> bytes:
        self._page.screenshots.append(kwargs)
        return b"\xff\xd8frame-%d" % len(self._page.screenshots)


class FakePage:
    def __init__(self, *, ready: bool = True, has_container: bool = True) -> None:
        self.ready = ready
        self.has_container = has_container
        self.url = "about:blank"
        self.visited: List[str] = []
        self.screenshots: List[dict] = []
        self.routes: List[tuple] = []
        self.timeouts: Dict[str, float] = {}

    def set_default_navigation_timeout(self, value: float) -> None:
        self.timeouts["navigation"] = value

    def set_default_timeout(self, value: float) -> None:
        self.timeouts["default"] = value

    def route(self, matcher, handler) -> None:
        self.routes.append((matcher, handler))

    def goto(self, url: str, **kwargs) -> None:
        self.url = url
        self.visited.append(url)

    def evaluate(self, script: str) -> bool:
        return self.ready

    def query_selector(self, selector: str) -> Optional[FakeElement]:
        return FakeElement(self) if self.has_container else None


class FakeContext:
    def __init__(self, page: FakePage, options: dict) -> None:
        self.page = page
        self.options = options
        self.init_scripts: List[str] = []
        self.closed = False

    def add_init_script(self, script: Optional[str] = None, **kwargs) -> None:
        self.init_scripts.append(script)

    def new_page(self) -> FakePage:
        return self.page

    def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.contexts: List[FakeContext] = []
        self.closed = False

    def new_context(self, **kwargs) -> FakeContext:
        context = FakeContext(self.page, kwargs)
        self.contexts.append(context)
        return context

    def close(self) -> None:
        self.closed = True


class FakeChromium:
    def __init__(self, browser: FakeBrowser) -> None:
        self.browser = browser
        self.launches: List[dict] = []

    def launch(self, **kwargs) -> FakeBrowser:
        self.launches.append(kwargs)
        return self.browser


class FakePlaywright:
    """Stands in for ``sync_playwright``: call it, then use it as a context manager."""

    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.browser = FakeBrowser(page)
        self.chromium = FakeChromium(self.browser)
        self.entered = 0

    def __call__(self) -> "FakePlaywright":
        return self

    def __enter__(self) -> "FakePlaywright":
        self.entered += 1
        return self

    def __exit__(self, *exc_info) -> bool:
        return False


class InMemoryBookSource:
    def __init__(self, *books: BookRecord) -> None:
        self._books = {book.book_id: book for book in books}

    def get_book(self, book_id: int) -> Optional[BookRecord]:
        return self._books.get(book_id)


def split_into_pages(page_count: int) -> Callable[[str, str], PaginatedContent]:
    """Paginator placing an equal share of the words on each of ``page_count`` pages."""

    def _paginate(content: str, font_size: str) -> PaginatedContent:
        words = list(re.finditer(r"\S+", content))
        per_page = -(-len(words) // page_count) if words else 0
        pages = []
        for index in range(page_count):
            share = words[index * per_page : (index + 1) * per_page]
            if not share:
                pages.append([])
                continue
            start, end = share[0].start(), share[-1].end()
            pages.append([TextChunk(content[start:end], start, end, index == 0)])
        return PaginatedContent(pages=pages)

    return _paginate


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def fake_playwright(fake_page: FakePage) -> FakePlaywright:
    return FakePlaywright(fake_page)


@pytest.fixture
def export_settings(tmp_path: Path) -> ExportSettings:
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    return ExportSettings(
        settle_delay_seconds=0,
        ready_timeout_seconds=1.0,
        ready_poll_interval_seconds=0.25,
        storage_dir=str(tmp_path / "storage"),
        storage_base_url="https://cdn.example.com/media",
        tmp_dir=str(work_dir),
    )


@pytest.fixture
def paginator_factory() -> Callable[[int], Callable[[str, str], PaginatedContent]]:
    return split_into_pages


@pytest.fixture
def sample_book(tmp_path: Path) -> BookRecord:
    narration = tmp_path / "chapter-1.mp3"
    narration.write_bytes(b"ID3-narration")
    return parse_book(
        {
            "id": 7,
            "title": "The Lighthouse",
            "author": "A. Keeper",
            "chapters": [
                {
                    "chapterNumber": 1,
                    "title": "Arrival",
                    "content": "one two three four five six seven eight",
                    "audioUrl": str(narration),
                    "audioDuration": 40.0,
                },
                {
                    "chapterNumber": 2,
                    "title": "Storm",
                    "content": "wind rain waves light",
                    "audioUrl": None,
                    "audioDuration": 0.0,
                },
            ],
        }
    )


@pytest.fixture
def book_source_factory() -> Callable[..., InMemoryBookSource]:
    return InMemoryBookSource
