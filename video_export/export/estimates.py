"""Rough size and runtime estimates shown before an export starts."""

from __future__ import annotations

import math
from dataclasses import dataclass

from video_export.timing.models import VideoManifest

MEGABYTES_PER_MINUTE = 3
SECONDS_PER_FRAME = 2.5
OVERHEAD_FACTOR = 1.3


@dataclass(frozen=True)
class SizeEstimate:
    estimated_size_mb: int
    estimated_duration_minutes: float


def estimate_video_size(manifest: VideoManifest) -> SizeEstimate:
    minutes = manifest.total_duration / 60
    return SizeEstimate(
        estimated_size_mb=math.ceil(minutes * MEGABYTES_PER_MINUTE),
        estimated_duration_minutes=round(minutes, 1),
    )


def estimate_export_time(manifest: VideoManifest) -> int:
    """Expected wall-clock seconds for capture plus encoding."""

    return math.ceil(manifest.total_frames * SECONDS_PER_FRAME * OVERHEAD_FACTOR)


__all__ = ["SizeEstimate", "estimate_export_time", "estimate_video_size"]
