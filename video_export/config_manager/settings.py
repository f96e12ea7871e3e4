"""Pydantic models and helpers for export configuration values."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from video_export import logging_manager
from video_export.errors import ConfigurationError

from .constants import (
    DEFAULT_AUDIO_BITRATE,
    DEFAULT_AUDIO_CODEC,
    DEFAULT_FLIP_DURATION,
    DEFAULT_FLIP_FRAME_COUNT,
    DEFAULT_FPS,
    DEFAULT_FRAME_HEIGHT,
    DEFAULT_FRAME_WIDTH,
    DEFAULT_HIGHLIGHT_FRAME_INTERVAL,
    DEFAULT_JOB_MAX_WORKERS,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_NAVIGATION_TIMEOUT_SECONDS,
    DEFAULT_PIXEL_FORMAT,
    DEFAULT_READY_POLL_INTERVAL_SECONDS,
    DEFAULT_READY_TIMEOUT_SECONDS,
    DEFAULT_RENDER_BASE_URL,
    DEFAULT_SETTLE_DELAY_SECONDS,
    DEFAULT_STORAGE_DIR,
    DEFAULT_VIDEO_CODEC,
    DEFAULT_VIDEO_CRF,
    DEFAULT_VIDEO_PRESET,
    MAX_JPEG_QUALITY,
    MIN_JPEG_QUALITY,
    VALID_NAVIGATION_WAIT_STATES,
)

logger = logging_manager.get_logger()


class ExportSettings(BaseModel):
    """Explicit configuration passed into the export pipeline."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    fps: int = Field(default=DEFAULT_FPS, gt=0)
    video_codec: str = DEFAULT_VIDEO_CODEC
    video_preset: str = DEFAULT_VIDEO_PRESET
    video_crf: int = Field(default=DEFAULT_VIDEO_CRF, ge=0, le=51)
    pixel_format: str = DEFAULT_PIXEL_FORMAT
    audio_codec: str = DEFAULT_AUDIO_CODEC
    audio_bitrate: str = DEFAULT_AUDIO_BITRATE
    frame_width: int = Field(default=DEFAULT_FRAME_WIDTH, gt=0)
    frame_height: int = Field(default=DEFAULT_FRAME_HEIGHT, gt=0)
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    upload_frames: bool = False
    navigation_wait_until: str = "domcontentloaded"
    navigation_timeout_seconds: float = Field(default=DEFAULT_NAVIGATION_TIMEOUT_SECONDS, gt=0)
    ready_timeout_seconds: float = Field(default=DEFAULT_READY_TIMEOUT_SECONDS, gt=0)
    ready_poll_interval_seconds: float = Field(
        default=DEFAULT_READY_POLL_INTERVAL_SECONDS, gt=0
    )
    settle_delay_seconds: float = Field(default=DEFAULT_SETTLE_DELAY_SECONDS, ge=0)
    flip_duration: float = Field(default=DEFAULT_FLIP_DURATION, gt=0)
    flip_frame_count: int = Field(default=DEFAULT_FLIP_FRAME_COUNT, gt=0)
    highlight_frame_interval: Optional[float] = DEFAULT_HIGHLIGHT_FRAME_INTERVAL
    ffmpeg_path: Optional[str] = None
    tmp_dir: Optional[str] = None
    storage_dir: str = str(DEFAULT_STORAGE_DIR)
    storage_base_url: str = ""
    blob_api_url: Optional[str] = None
    blob_token: Optional[SecretStr] = None
    render_base_url: str = DEFAULT_RENDER_BASE_URL
    book_api_url: Optional[str] = None
    books_dir: Optional[str] = None
    job_max_workers: int = Field(default=DEFAULT_JOB_MAX_WORKERS, gt=0)
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @field_validator("jpeg_quality", mode="before")
    @classmethod
    def _clamp_jpeg_quality(cls, value: Any) -> int:
        try:
            quality = int(value)
        except (TypeError, ValueError):
            return DEFAULT_JPEG_QUALITY
        return max(MIN_JPEG_QUALITY, min(MAX_JPEG_QUALITY, quality))

    @field_validator("navigation_wait_until")
    @classmethod
    def _validate_wait_until(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in VALID_NAVIGATION_WAIT_STATES:
            raise ValueError(
                f"navigation_wait_until must be one of {sorted(VALID_NAVIGATION_WAIT_STATES)}"
            )
        return normalized

    @field_validator("highlight_frame_interval")
    @classmethod
    def _validate_interval(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("highlight_frame_interval must be positive or null")
        return value

    def blob_token_value(self) -> Optional[str]:
        """Return the raw blob token, if configured."""

        return self.blob_token.get_secret_value() if self.blob_token else None


class EnvironmentOverrides(BaseSettings):
    """Configuration overrides sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    fps: Optional[int] = Field(default=None, validation_alias=AliasChoices("VIDEO_EXPORT_FPS"))
    video_preset: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_PRESET")
    )
    video_crf: Optional[int] = Field(default=None, validation_alias=AliasChoices("VIDEO_EXPORT_CRF"))
    jpeg_quality: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_JPEG_QUALITY")
    )
    upload_frames: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_UPLOAD_FRAMES")
    )
    ffmpeg_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("VIDEO_EXPORT_FFMPEG_PATH", "FFMPEG_PATH"),
    )
    tmp_dir: Optional[str] = Field(default=None, validation_alias=AliasChoices("VIDEO_EXPORT_TMP_DIR"))
    storage_dir: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_STORAGE_DIR")
    )
    storage_base_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_STORAGE_BASE_URL")
    )
    blob_api_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_BLOB_API_URL", "BLOB_API_URL")
    )
    blob_token: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("VIDEO_EXPORT_BLOB_TOKEN", "BLOB_READ_WRITE_TOKEN"),
    )
    render_base_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_BASE_URL")
    )
    book_api_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_BOOK_API_URL")
    )
    books_dir: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_BOOKS_DIR")
    )
    job_max_workers: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_JOB_MAX_WORKERS")
    )
    log_level: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_LOG_LEVEL")
    )
    log_file: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("VIDEO_EXPORT_LOG_FILE")
    )

    def as_overrides(self) -> Dict[str, Any]:
        """Return only the values that were explicitly provided."""

        return self.model_dump(exclude_none=True)


def read_environment_overrides(environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    """Return overrides from ``environ`` (or the process environment)."""

    if environ is None:
        return EnvironmentOverrides().as_overrides()
    normalized = {str(key).upper(): value for key, value in environ.items()}
    return EnvironmentOverrides.model_validate(normalized).as_overrides()


def _load_config_file(config_path: Path) -> Dict[str, Any]:
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {config_path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Configuration file is not valid JSON: {config_path}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Configuration file must contain a JSON object: {config_path}")
    return payload


def load_settings(
    config_path: Path | str | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ExportSettings:
    """Build :class:`ExportSettings` from defaults, a JSON file, env and overrides.

    Later sources win: defaults < config file < environment < ``overrides``.
    ``None`` values in ``overrides`` are ignored so CLI flags that were not
    supplied do not erase earlier sources.
    """

    merged: Dict[str, Any] = {}
    if config_path is not None:
        merged.update(_load_config_file(Path(config_path)))
    try:
        merged.update(read_environment_overrides(environ))
        if overrides:
            merged.update({key: value for key, value in overrides.items() if value is not None})
        settings = ExportSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid export settings: {exc}") from exc

    logger.debug(
        "Export settings loaded",
        extra={
            "event": "config.settings.loaded",
            "attributes": settings.model_dump(exclude={"blob_token"}),
        },
    )
    return settings


__all__ = [
    "EnvironmentOverrides",
    "ExportSettings",
    "load_settings",
    "read_environment_overrides",
]
