"""Dependency wiring for the FastAPI application."""

from __future__ import annotations

import os
from functools import lru_cache

from video_export.books import BookSource, create_book_source
from video_export.config_manager import ExportSettings, load_settings
from video_export.export import VideoExportJobManager, VideoExportService

CONFIG_PATH_ENV = "VIDEO_EXPORT_CONFIG"


@lru_cache
def get_settings() -> ExportSettings:
    """Return settings from ``VIDEO_EXPORT_CONFIG`` (if set) and the environment."""

    return load_settings(os.environ.get(CONFIG_PATH_ENV) or None)


@lru_cache
def get_book_source() -> BookSource:
    return create_book_source(get_settings())


@lru_cache
def get_export_service() -> VideoExportService:
    """Return the process-wide :class:`VideoExportService`."""

    return VideoExportService(get_settings(), get_book_source())


@lru_cache
def get_job_manager() -> VideoExportJobManager:
    """Return the process-wide :class:`VideoExportJobManager`."""

    return VideoExportJobManager(get_export_service())


def reset_dependencies() -> None:
    """Drop cached singletons, shutting down any running job manager."""

    if get_job_manager.cache_info().currsize:
        get_job_manager().shutdown(wait=False)
    for provider in (get_job_manager, get_export_service, get_book_source, get_settings):
        provider.cache_clear()


__all__ = [
    "CONFIG_PATH_ENV",
    "get_book_source",
    "get_export_service",
    "get_job_manager",
    "get_settings",
    "reset_dependencies",
]
