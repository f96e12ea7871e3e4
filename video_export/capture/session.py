"""A single browser page configured for deterministic frame capture."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

from playwright.sync_api import Browser, BrowserContext, Error as PlaywrightError, Page, Route

from video_export import logging_manager as log_mgr
from video_export.config_manager import ExportSettings

logger = log_mgr.get_logger().getChild("capture.session")

# Re-applied on every navigation so transitions never land mid-frame.
NO_ANIMATION_SCRIPT = """
(() => {
  const css = '*, *::before, *::after { animation: none !important; transition: none !important; }';
  const apply = () => {
    const style = document.createElement('style');
    style.setAttribute('data-video-export', 'no-animation');
    style.textContent = css;
    (document.head || document.documentElement).appendChild(style);
  };
  if (document.readyState === 'loading') {
    document.addEventListener('DOMContentLoaded', apply, { once: true });
  } else {
    apply();
  }
})();
"""


@dataclass(frozen=True)
class CachedResponse:
    status: int
    body: bytes
    content_type: str


class ResponseCache:
    """In-memory GET response cache keyed by URL path."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, CachedResponse] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[CachedResponse]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
            else:
                self.hits += 1
            return entry

    def put(self, key: str, response: CachedResponse) -> None:
        with self._lock:
            self._entries.setdefault(key, response)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def book_api_path(book_id: int) -> str:
    return f"/api/books/{book_id}"


class RenderSession:
    """Context manager yielding one configured page for a whole export job.

    The browser context blocks service workers, injects the no-animation
    stylesheet on every document and answers repeated GETs of the book
    endpoint from ``cache``.
    """

    def __init__(
        self,
        browser: Browser,
        settings: ExportSettings,
        book_id: int,
        cache: ResponseCache,
    ) -> None:
        self._browser = browser
        self._settings = settings
        self._book_path = book_api_path(book_id)
        self._cache = cache
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def _matches_book_api(self, url: str) -> bool:
        return urlparse(url).path == self._book_path

    def _handle_book_request(self, route: Route) -> None:
        request = route.request
        if request.method != "GET":
            route.continue_()
            return

        cached = self._cache.get(self._book_path)
        if cached is not None:
            route.fulfill(status=cached.status, body=cached.body, content_type=cached.content_type)
            return

        try:
            response = route.fetch()
        except PlaywrightError as exc:
            logger.warning(
                "Book API prefetch failed; passing request through",
                extra={"event": "capture.session.cache.fetch_failed", "attributes": {"error": str(exc)}},
            )
            route.continue_()
            return

        if response.status == 200:
            self._cache.put(
                self._book_path,
                CachedResponse(
                    status=200,
                    body=response.body(),
                    content_type=response.headers.get("content-type", "application/json"),
                ),
            )
        route.fulfill(response=response)

    def open(self) -> Page:
        settings = self._settings
        self._context = self._browser.new_context(
            viewport={"width": settings.frame_width, "height": settings.frame_height},
            device_scale_factor=1,
            service_workers="block",
        )
        self._context.add_init_script(script=NO_ANIMATION_SCRIPT)
        page = self._context.new_page()
        page.set_default_navigation_timeout(settings.navigation_timeout_seconds * 1000)
        page.set_default_timeout(settings.navigation_timeout_seconds * 1000)
        page.route(self._matches_book_api, self._handle_book_request)
        self.page = page
        return page

    def close(self) -> None:
        context, self._context, self.page = self._context, None, None
        if context is not None:
            context.close()

    def __enter__(self) -> Page:
        try:
            return self.open()
        except BaseException:
            self.close()
            raise

    def __exit__(self, *args) -> None:
        self.close()


__all__ = ["CachedResponse", "NO_ANIMATION_SCRIPT", "RenderSession", "ResponseCache", "book_api_path"]
