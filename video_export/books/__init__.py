"""Book data consumed by the export pipeline."""

from .models import BookRecord, ChapterRecord, ExportScope, parse_book
from .sources import BookSource, HttpBookSource, JsonBookSource, create_book_source

__all__ = [
    "BookRecord",
    "BookSource",
    "ChapterRecord",
    "ExportScope",
    "HttpBookSource",
    "JsonBookSource",
    "create_book_source",
    "parse_book",
]
