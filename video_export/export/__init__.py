"""Export orchestration: frames, narration, encoding and upload."""

from .audio import AudioPreparer
from .encoder import FFmpegEncoder, build_concat_file, frame_durations, merge_coincident_frames
from .estimates import SizeEstimate, estimate_export_time, estimate_video_size
from .jobs import ExportJobSnapshot, ExportJobStatus, VideoExportJobManager
from .service import (
    READING_THEMES,
    ExportOptions,
    ExportResult,
    VideoExportService,
    validate_render_style,
)

__all__ = [
    "AudioPreparer",
    "ExportJobSnapshot",
    "ExportJobStatus",
    "ExportOptions",
    "ExportResult",
    "FFmpegEncoder",
    "READING_THEMES",
    "SizeEstimate",
    "VideoExportJobManager",
    "VideoExportService",
    "build_concat_file",
    "estimate_export_time",
    "estimate_video_size",
    "frame_durations",
    "merge_coincident_frames",
    "validate_render_style",
]
