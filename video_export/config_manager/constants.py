"""Shared constants for the configuration package."""
from __future__ import annotations

from pathlib import Path

DEFAULT_FPS = 24
DEFAULT_VIDEO_CODEC = "libx264"
DEFAULT_VIDEO_PRESET = "medium"
DEFAULT_VIDEO_CRF = 23
DEFAULT_PIXEL_FORMAT = "yuv420p"
DEFAULT_AUDIO_CODEC = "aac"
DEFAULT_AUDIO_BITRATE = "192k"

DEFAULT_FRAME_WIDTH = 1920
DEFAULT_FRAME_HEIGHT = 1080
DEFAULT_JPEG_QUALITY = 85
MIN_JPEG_QUALITY = 30
MAX_JPEG_QUALITY = 95

DEFAULT_NAVIGATION_TIMEOUT_SECONDS = 60.0
DEFAULT_READY_TIMEOUT_SECONDS = 10.0
DEFAULT_READY_POLL_INTERVAL_SECONDS = 0.1
DEFAULT_SETTLE_DELAY_SECONDS = 0.05

DEFAULT_FLIP_DURATION = 0.6
DEFAULT_FLIP_FRAME_COUNT = 15
DEFAULT_HIGHLIGHT_FRAME_INTERVAL = 0.5

DEFAULT_STORAGE_DIR = Path("storage")
DEFAULT_JOB_MAX_WORKERS = 1
DEFAULT_RENDER_BASE_URL = "http://127.0.0.1:3000"

VALID_NAVIGATION_WAIT_STATES = {"load", "domcontentloaded", "networkidle", "commit"}

__all__ = [
    "DEFAULT_AUDIO_BITRATE",
    "DEFAULT_AUDIO_CODEC",
    "DEFAULT_FLIP_DURATION",
    "DEFAULT_FLIP_FRAME_COUNT",
    "DEFAULT_FPS",
    "DEFAULT_FRAME_HEIGHT",
    "DEFAULT_FRAME_WIDTH",
    "DEFAULT_HIGHLIGHT_FRAME_INTERVAL",
    "DEFAULT_JOB_MAX_WORKERS",
    "DEFAULT_JPEG_QUALITY",
    "DEFAULT_NAVIGATION_TIMEOUT_SECONDS",
    "DEFAULT_PIXEL_FORMAT",
    "DEFAULT_READY_POLL_INTERVAL_SECONDS",
    "DEFAULT_RENDER_BASE_URL",
    "DEFAULT_READY_TIMEOUT_SECONDS",
    "DEFAULT_SETTLE_DELAY_SECONDS",
    "DEFAULT_STORAGE_DIR",
    "DEFAULT_VIDEO_CODEC",
    "DEFAULT_VIDEO_CRF",
    "DEFAULT_VIDEO_PRESET",
    "MAX_JPEG_QUALITY",
    "MIN_JPEG_QUALITY",
    "VALID_NAVIGATION_WAIT_STATES",
]
