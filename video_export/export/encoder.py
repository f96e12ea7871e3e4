"""FFmpeg concat-demuxer encoding of still frames plus narration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from video_export import logging_manager as log_mgr
from video_export.config_manager import ExportSettings
from video_export.errors import EncodeError
from video_export.media import CommandExecutionError, run_command
from video_export.timing.models import FrameInfo, FrameType

logger = log_mgr.get_logger().getChild("export.encoder")

MIN_FRAME_DURATION = 0.01
COINCIDENT_FRAME_TOLERANCE = 1e-6


def merge_coincident_frames(frames: Sequence[FrameInfo]) -> List[FrameInfo]:
    """Time-order ``frames`` keeping a single still per instant.

    Interval-sampled stills can coincide with the first still of a page
    flip; the flip still is kept so every concat entry has a positive
    duration.
    """

    merged: List[FrameInfo] = []
    for frame in sorted(frames, key=lambda item: (item.time, item.type is FrameType.FLIP)):
        if merged and frame.time - merged[-1].time <= COINCIDENT_FRAME_TOLERANCE:
            if merged[-1].type is not FrameType.FLIP or frame.type is FrameType.FLIP:
                merged[-1] = frame
            continue
        merged.append(frame)
    return merged


def frame_durations(frames: Sequence[FrameInfo], total_duration: float) -> List[float]:
    """Display time of each frame: the gap to the next one, the last runs to the end."""

    durations: List[float] = []
    for index, frame in enumerate(frames):
        following = frames[index + 1].time if index + 1 < len(frames) else total_duration
        durations.append(max(MIN_FRAME_DURATION, following - frame.time))
    return durations


def build_concat_file(
    entries: Sequence[Tuple[Path, float]], target: Path
) -> Path:
    """Write a concat-demuxer list for ``(image, duration)`` pairs.

    The demuxer ignores the duration of the final entry, so the last image
    is listed a second time to hold it for its full duration.
    """

    lines: List[str] = []
    for path, duration in entries:
        lines.append(f"file '{os.fspath(path)}'")
        lines.append(f"duration {max(MIN_FRAME_DURATION, duration):.4f}")
    if entries:
        lines.append(f"file '{os.fspath(entries[-1][0])}'")
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return target


class FFmpegEncoder:
    """Mux an ordered image sequence and optional audio into an MP4."""

    def __init__(
        self,
        settings: ExportSettings,
        *,
        executable: Optional[str] = "ffmpeg",
        loglevel: str = "error",
        command_runner=run_command,
    ) -> None:
        self._settings = settings
        self._executable = executable
        self._loglevel = loglevel
        self._run_external = command_runner

    def build_command(
        self, concat_path: Path, audio_path: Optional[Path], output_path: Path
    ) -> List[str]:
        settings = self._settings
        command = [
            self._executable or "ffmpeg",
            "-y",
            "-loglevel",
            self._loglevel,
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            os.fspath(concat_path),
        ]
        if audio_path is not None:
            command.extend(["-i", os.fspath(audio_path)])
        command.extend(
            [
                "-c:v",
                settings.video_codec,
                "-preset",
                settings.video_preset,
                "-crf",
                str(settings.video_crf),
                "-pix_fmt",
                settings.pixel_format,
                "-movflags",
                "+faststart",
                "-r",
                str(settings.fps),
            ]
        )
        if audio_path is not None:
            command.extend(
                ["-c:a", settings.audio_codec, "-b:a", settings.audio_bitrate, "-shortest"]
            )
        command.append(os.fspath(output_path))
        return command

    def ensure_available(self) -> str:
        """Return the ffmpeg executable or raise :class:`EncodeError` when none was found."""

        if not self._executable:
            raise EncodeError("ffmpeg executable not found")
        return self._executable

    def encode(
        self, concat_path: Path, audio_path: Optional[Path], output_path: Path
    ) -> Path:
        """Run the encoder; raise :class:`EncodeError` when it fails or is missing."""

        self.ensure_available()
        command = self.build_command(concat_path, audio_path, output_path)
        logger.debug(
            "Executing FFmpeg command", extra={"event": "video.export.ffmpeg", "cmd": command}
        )
        try:
            self._run_external(command)
        except CommandExecutionError as exc:
            if exc.timeout:
                raise EncodeError("Video encoding timed out") from exc
            if exc.returncode is None:
                raise EncodeError(f"Unable to run ffmpeg: {exc}") from exc
            detail = exc.stderr_tail or f"exit code {exc.returncode}"
            raise EncodeError(f"Video encoding failed: {detail}") from exc
        if not output_path.is_file():
            raise EncodeError(f"Encoder produced no output at {output_path}")
        return output_path


__all__ = [
    "FFmpegEncoder",
    "MIN_FRAME_DURATION",
    "build_concat_file",
    "frame_durations",
    "merge_coincident_frames",
]
