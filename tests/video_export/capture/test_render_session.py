from __future__ import annotations

import pytest
from playwright.sync_api import Error as PlaywrightError

from video_export.capture.session import (
    NO_ANIMATION_SCRIPT,
    CachedResponse,
    RenderSession,
    ResponseCache,
)
from video_export.config_manager import ExportSettings

pytestmark = pytest.mark.capture


class _Request:
    def __init__(self, method: str) -> None:
        self.method = method


class _Response:
    def __init__(self, status: int = 200, body: bytes = b'{"id": 3}') -> None:
        self.status = status
        self._body = body
        self.headers = {"content-type": "application/json"}

    def body(self) -> bytes:
        return self._body


class _Route:
    def __init__(self, method: str = "GET", response=None, fetch_error: Exception | None = None) -> None:
        self.request = _Request(method)
        self._response = response or _Response()
        self._fetch_error = fetch_error
        self.fetched = 0
        self.fulfilled: list[dict] = []
        self.continued = False

    def fetch(self):
        self.fetched += 1
        if self._fetch_error is not None:
            raise self._fetch_error
        return self._response

    def fulfill(self, **kwargs) -> None:
        self.fulfilled.append(kwargs)

    def continue_(self) -> None:
        self.continued = True


@pytest.fixture
def session(fake_playwright):
    return RenderSession(fake_playwright.browser, ExportSettings(), 3, ResponseCache())


def _handler(fake_playwright):
    matcher, handler = fake_playwright.page.routes[0]
    return matcher, handler


def test_session_configures_a_deterministic_page(session, fake_playwright) -> None:
    with session as page:
        assert page is fake_playwright.page
        context = fake_playwright.browser.contexts[0]
        assert context.options["service_workers"] == "block"
        assert context.options["viewport"] == {"width": 1920, "height": 1080}
        assert context.init_scripts == [NO_ANIMATION_SCRIPT]
        assert page.timeouts["navigation"] == 60_000

    assert context.closed is True
    assert session.page is None


def test_book_endpoint_is_fetched_once_then_served_from_cache(session, fake_playwright) -> None:
    with session:
        matcher, handler = _handler(fake_playwright)
        assert matcher("http://reader.test/api/books/3?include=chapters")
        assert not matcher("http://reader.test/api/books/30")

        first, second = _Route(), _Route()
        handler(first)
        handler(second)

    assert first.fetched == 1
    assert second.fetched == 0
    assert second.fulfilled == [
        {"status": 200, "body": b'{"id": 3}', "content_type": "application/json"}
    ]


def test_non_get_and_failed_fetches_pass_through(fake_playwright) -> None:
    cache = ResponseCache()
    with RenderSession(fake_playwright.browser, ExportSettings(), 3, cache):
        _, handler = _handler(fake_playwright)
        post = _Route(method="POST")
        broken = _Route(fetch_error=PlaywrightError("net::ERR_FAILED"))
        missing = _Route(response=_Response(status=404))
        handler(post)
        handler(broken)
        handler(missing)

    assert post.continued and post.fetched == 0
    assert broken.continued
    assert missing.fulfilled and len(cache) == 0


def test_cache_counts_hits_and_keeps_first_entry() -> None:
    cache = ResponseCache()
    assert cache.get("/api/books/1") is None
    cache.put("/api/books/1", CachedResponse(200, b"first", "application/json"))
    cache.put("/api/books/1", CachedResponse(200, b"second", "application/json"))

    assert cache.get("/api/books/1").body == b"first"
    assert (cache.hits, cache.misses) == (1, 1)
    cache.clear()
    assert len(cache) == 0
