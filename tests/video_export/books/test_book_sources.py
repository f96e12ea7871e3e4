from __future__ import annotations

import json

import pytest
import requests

from video_export.books import HttpBookSource, JsonBookSource, create_book_source
from video_export.config_manager import ExportSettings
from video_export.errors import ManifestError

pytestmark = pytest.mark.books

BOOK = {"id": 12, "title": "Orchards", "author": "P. Grower", "chapters": []}


class _Response:
    def __init__(self, status_code: int, payload=None, *, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._payload


class _Session:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[tuple[str, dict]] = []

    def get(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        if self._error is not None:
            raise self._error
        return self._response


def test_json_source_reads_wrapped_and_plain_files(tmp_path) -> None:
    (tmp_path / "12.json").write_text(json.dumps({"success": True, "book": BOOK}), encoding="utf-8")
    (tmp_path / "13.json").write_text(json.dumps({**BOOK, "id": 13}), encoding="utf-8")
    source = JsonBookSource(tmp_path)

    assert source.get_book(12).author == "P. Grower"
    assert source.get_book(13).book_id == 13
    assert source.get_book(14) is None


def test_json_source_rejects_bad_files(tmp_path) -> None:
    (tmp_path / "1.json").write_text("{oops", encoding="utf-8")
    (tmp_path / "2.json").write_text("[1, 2]", encoding="utf-8")
    source = JsonBookSource(tmp_path)

    with pytest.raises(ManifestError, match="not valid JSON"):
        source.get_book(1)
    with pytest.raises(ManifestError, match="JSON object"):
        source.get_book(2)


def test_http_source_fetches_book_endpoint() -> None:
    session = _Session(_Response(200, {"success": True, "book": BOOK}))

    book = HttpBookSource("https://books.test/", session=session).get_book(12)

    assert book.title == "Orchards"
    url, kwargs = session.calls[0]
    assert url == "https://books.test/api/books/12"
    assert kwargs["headers"] == {"Accept": "application/json"}


@pytest.mark.parametrize(
    ("session", "message"),
    [
        (_Session(_Response(500)), "HTTP 500"),
        (_Session(_Response(200, invalid_json=True)), "invalid JSON"),
        (_Session(error=requests.Timeout("slow")), "Unable to fetch book"),
    ],
)
def test_http_source_failures(session, message) -> None:
    with pytest.raises(ManifestError, match=message):
        HttpBookSource("https://books.test", session=session).get_book(12)


def test_http_source_treats_404_as_missing() -> None:
    assert HttpBookSource("https://books.test", session=_Session(_Response(404))).get_book(12) is None


def test_create_book_source_prefers_the_api(tmp_path) -> None:
    api = create_book_source(ExportSettings(book_api_url="https://books.test"))
    local = create_book_source(ExportSettings(books_dir=str(tmp_path)))

    assert isinstance(api, HttpBookSource)
    assert isinstance(local, JsonBookSource)
    assert local.root == tmp_path
