"""Console-script entry point for book-video-export."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Callable, Dict, Optional, Sequence, TextIO

import uvicorn

from video_export import logging_manager as log_mgr
from video_export.books import create_book_source
from video_export.config_manager import ExportSettings, load_settings
from video_export.errors import ConfigurationError, VideoExportError
from video_export.export import (
    ExportOptions,
    VideoExportService,
    estimate_export_time,
    estimate_video_size,
)
from video_export.progress import ExportProgress
from video_export.webapi.dependencies import CONFIG_PATH_ENV

from .args import parse_cli_args

ServiceFactory = Callable[[ExportSettings], VideoExportService]


def _default_service_factory(settings: ExportSettings) -> VideoExportService:
    return VideoExportService(settings, create_book_source(settings))


def _settings_from_args(args: argparse.Namespace) -> ExportSettings:
    overrides: Dict[str, Any] = {
        "books_dir": getattr(args, "books_dir", None),
        "book_api_url": getattr(args, "book_api_url", None),
        "render_base_url": getattr(args, "base_url", None),
        "ffmpeg_path": getattr(args, "ffmpeg_path", None),
        "tmp_dir": getattr(args, "tmp_dir", None),
        "upload_frames": getattr(args, "upload_frames", None),
        "log_file": args.log_file,
    }
    if args.debug:
        overrides["log_level"] = "DEBUG"
    return load_settings(args.config, overrides=overrides)


def _print_json(payload: Any, stream: TextIO) -> None:
    stream.write(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


def _progress_printer(stream: TextIO) -> Callable[[ExportProgress], None]:
    def _print(progress: ExportProgress) -> None:
        line = f"[{progress.progress:6.2f}%] {progress.phase.value}"
        if progress.message:
            line += f": {progress.message}"
        stream.write(line + "\n")
        stream.flush()

    return _print


def _serve(args: argparse.Namespace) -> int:
    if args.config:
        os.environ[CONFIG_PATH_ENV] = args.config
    if args.log_file:
        log_mgr.attach_log_file(args.log_file)
    uvicorn.run(
        "video_export.webapi.application:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )
    return 0


def run_cli(
    argv: Optional[Sequence[str]] = None,
    *,
    service_factory: ServiceFactory = _default_service_factory,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Primary console script entry point; returns the process exit code."""

    out = stdout or sys.stdout
    err = stderr or sys.stderr
    args = parse_cli_args(argv)
    log_mgr.configure_logging_level(debug_enabled=args.debug)

    if args.command == "serve":
        return _serve(args)

    try:
        settings = _settings_from_args(args)
    except ConfigurationError as exc:
        err.write(f"Configuration error: {exc}\n")
        return 2
    log_mgr.configure_logging_level(
        log_level=getattr(logging, settings.log_level.upper(), logging.INFO)
    )
    if settings.log_file:
        log_mgr.attach_log_file(settings.log_file)

    service = service_factory(settings)
    scope = args.scope
    chapter_number = args.chapter if scope == "chapter" else None

    if args.command in {"manifest", "estimate"}:
        try:
            manifest = service.generate_manifest(
                args.book_id, scope, chapter_number, args.font_size, args.theme
            )
        except VideoExportError as exc:
            err.write(f"Error: {exc}\n")
            return 1
        if args.command == "manifest":
            _print_json(manifest.to_dict(), out)
            return 0
        size = estimate_video_size(manifest)
        _print_json(
            {
                "totalFrames": manifest.total_frames,
                "totalDuration": manifest.total_duration,
                "estimatedSizeMb": size.estimated_size_mb,
                "estimatedDurationMinutes": size.estimated_duration_minutes,
                "estimatedExportSeconds": estimate_export_time(manifest),
            },
            out,
        )
        return 0

    result = service.export_video(
        ExportOptions(
            book_id=args.book_id,
            scope=scope,
            chapter_number=chapter_number,
            theme=args.theme,
            font_size=args.font_size,
            on_progress=_progress_printer(err),
        )
    )
    _print_json(result.to_dict(), out)
    return 0 if result.success else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the book-video-export CLI."""

    return run_cli(argv)


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
