"""Argument parsing helpers for the video export CLI."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from video_export.export.service import READING_THEMES
from video_export.timing.pagination import DEFAULT_FONT_SIZE, FONT_SIZE_METRICS


def _add_config_argument(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a JSON file with export settings.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging output.")
    parser.add_argument("--log-file", help="Also write JSON log lines to this rotating file.")
    return parser


def _add_shared_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    _add_config_argument(parser)
    parser.add_argument("book_id", type=int, help="Identifier of the book to export.")
    parser.add_argument("--books-dir", help="Directory of <book_id>.json book records.")
    parser.add_argument("--book-api-url", help="Base URL of the book service.")
    parser.add_argument("--base-url", help="Base URL of the page rendering surface.")
    parser.add_argument(
        "--scope",
        choices=["full", "chapter"],
        default="full",
        help="Export the whole book or a single chapter (default: %(default)s).",
    )
    parser.add_argument("--chapter", type=int, help="Chapter number when --scope=chapter.")
    parser.add_argument(
        "--theme",
        choices=list(READING_THEMES),
        default="day",
        help="Reading theme (default: %(default)s).",
    )
    parser.add_argument(
        "--font-size",
        choices=list(FONT_SIZE_METRICS),
        default=DEFAULT_FONT_SIZE,
        help="Reader font size (default: %(default)s).",
    )
    parser.add_argument("--ffmpeg-path", help="Override the path to the FFmpeg executable.")
    parser.add_argument("--tmp-dir", help="Override the directory for working files.")
    parser.add_argument(
        "--upload-frames",
        action="store_true",
        default=None,
        help="Upload each captured frame to object storage as it is rendered.",
    )
    return parser


def build_cli_parser() -> argparse.ArgumentParser:
    """Return the parser with ``manifest``, ``estimate``, ``export`` and ``serve``."""

    parser = argparse.ArgumentParser(
        prog="book-video-export",
        description="Export narrated books as page-turning videos.",
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    manifest_parser = subparsers.add_parser(
        "manifest", help="Print the timing manifest as JSON", allow_abbrev=False
    )
    _add_shared_arguments(manifest_parser)

    estimate_parser = subparsers.add_parser(
        "estimate", help="Print size and runtime estimates", allow_abbrev=False
    )
    _add_shared_arguments(estimate_parser)

    export_parser = subparsers.add_parser(
        "export", help="Render, encode and upload a video", allow_abbrev=False
    )
    _add_shared_arguments(export_parser)

    serve_parser = subparsers.add_parser(
        "serve", help="Run the HTTP API with uvicorn", allow_abbrev=False
    )
    _add_config_argument(serve_parser)
    serve_parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Hostname or IP address for the uvicorn server (default: %(default)s)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="TCP port for the uvicorn server (default: %(default)s)",
    )
    serve_parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload; useful during local development.",
    )
    serve_parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="Log level passed to uvicorn (default: %(default)s)",
    )
    return parser


def parse_cli_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = build_cli_parser()
    namespace = parser.parse_args(argv)
    if getattr(namespace, "scope", None) == "chapter" and namespace.chapter is None:
        parser.error("--chapter is required when --scope=chapter")
    return namespace


__all__ = ["build_cli_parser", "parse_cli_args"]
