"""Read-only providers of book records."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

import requests

from video_export import logging_manager as log_mgr
from video_export.config_manager import ExportSettings
from video_export.errors import ManifestError

from .models import BookRecord, parse_book

logger = log_mgr.get_logger().getChild("books.sources")

DEFAULT_BOOKS_DIR = "books"


class BookSource(Protocol):
    """Anything that can look up a book by id."""

    def get_book(self, book_id: int) -> Optional[BookRecord]:
        ...


def _unwrap(payload: Any) -> Mapping[str, Any]:
    # The book API wraps records as {"success": true, "book": {...}}.
    if isinstance(payload, Mapping) and isinstance(payload.get("book"), Mapping):
        return payload["book"]
    if not isinstance(payload, Mapping):
        raise ManifestError("Book payload must be a JSON object")
    return payload


class JsonBookSource:
    """Books stored as ``<book_id>.json`` files in one directory."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def get_book(self, book_id: int) -> Optional[BookRecord]:
        path = self._root / f"{int(book_id)}.json"
        if not path.is_file():
            logger.debug(
                "Book file not found",
                extra={"event": "books.json.missing", "attributes": {"path": str(path)}},
            )
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ManifestError(f"Book file is not valid JSON: {path}") from exc
        return parse_book(_unwrap(payload))


class HttpBookSource:
    """Books fetched from ``{base_url}/api/books/{id}``."""

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._owns_session = session is None
        self._timeout = timeout_seconds

    def get_book(self, book_id: int) -> Optional[BookRecord]:
        url = f"{self._base_url}/api/books/{int(book_id)}"
        try:
            response = self._session.get(
                url, headers={"Accept": "application/json"}, timeout=self._timeout
            )
        except requests.RequestException as exc:
            raise ManifestError(f"Unable to fetch book {book_id}: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ManifestError(
                f"Book service returned HTTP {response.status_code} for book {book_id}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ManifestError(f"Book service returned invalid JSON for book {book_id}") from exc
        return parse_book(_unwrap(payload))

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "HttpBookSource":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def create_book_source(settings: ExportSettings) -> BookSource:
    """Use the book service when configured, otherwise a local JSON directory."""

    if settings.book_api_url:
        return HttpBookSource(settings.book_api_url)
    return JsonBookSource(settings.books_dir or DEFAULT_BOOKS_DIR)


__all__ = ["BookSource", "DEFAULT_BOOKS_DIR", "HttpBookSource", "JsonBookSource", "create_book_source"]
