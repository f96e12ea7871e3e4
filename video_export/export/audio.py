"""Narration download and concatenation."""

from __future__ import annotations

import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Sequence
from urllib.parse import unquote, urlparse

import requests
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from video_export import logging_manager as log_mgr
from video_export.books.models import ChapterRecord
from video_export.errors import AudioPreparationError
from video_export.media import CommandExecutionError, run_command

logger = log_mgr.get_logger().getChild("export.audio")

DEFAULT_AUDIO_SUFFIX = ".wav"
_CHUNK_SIZE = 1024 * 256


def _audio_suffix(url: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    return suffix if suffix and len(suffix) <= 5 else DEFAULT_AUDIO_SUFFIX


class AudioPreparer:
    """Fetch each chapter's narration and merge it into one track.

    Tracks that share a container are joined with ffmpeg's concat demuxer
    without re-encoding; mixed formats are decoded and joined with pydub.
    """

    def __init__(
        self,
        *,
        ffmpeg_executable: Optional[str] = "ffmpeg",
        session: Optional[requests.Session] = None,
        command_runner=run_command,
        segment_loader: Callable[[str], AudioSegment] = AudioSegment.from_file,
        timeout_seconds: float = 120.0,
    ) -> None:
        self._ffmpeg = ffmpeg_executable
        self._session = session or requests.Session()
        self._run_external = command_runner
        self._load_segment = segment_loader
        self._timeout = timeout_seconds

    def download(self, url: str, target: Path) -> Path:
        """Copy or download ``url`` to ``target``."""

        parsed = urlparse(url)
        try:
            if parsed.scheme in {"http", "https"}:
                with self._session.get(url, stream=True, timeout=self._timeout) as response:
                    if response.status_code != 200:
                        raise AudioPreparationError(
                            f"Failed to download {url}: HTTP {response.status_code}"
                        )
                    with target.open("wb") as handle:
                        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                            if chunk:
                                handle.write(chunk)
            else:
                source = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(url)
                shutil.copyfile(source, target)
        except requests.RequestException as exc:
            raise AudioPreparationError(f"Failed to download {url}: {exc}") from exc
        except OSError as exc:
            raise AudioPreparationError(f"Failed to copy audio {url}: {exc}") from exc

        logger.debug(
            "Narration fetched",
            extra={
                "event": "video.export.audio.fetched",
                "attributes": {"url": url, "path": os.fspath(target), "bytes": target.stat().st_size},
            },
        )
        return target

    def prepare(self, chapters: Sequence[ChapterRecord], work_dir: Path) -> Optional[Path]:
        """Return one audio file covering ``chapters`` in order, or ``None``.

        Chapters without narration are skipped.
        """

        files: List[Path] = []
        for chapter in chapters:
            if not chapter.audio_url:
                continue
            target = work_dir / f"audio-ch{chapter.chapter_number}{_audio_suffix(chapter.audio_url)}"
            files.append(self.download(chapter.audio_url, target))

        if not files:
            return None
        if len(files) == 1:
            return files[0]

        suffixes = {path.suffix for path in files}
        if len(suffixes) == 1:
            return self._concat_copy(files, work_dir / f"audio-combined{files[0].suffix}")
        return self._concat_decode(files, work_dir / "audio-combined.wav")

    def _concat_copy(self, files: Sequence[Path], output: Path) -> Path:
        if not self._ffmpeg:
            raise AudioPreparationError("ffmpeg executable not found")
        list_path = output.parent / "audio-concat.txt"
        list_path.write_text(
            "".join(f"file '{os.fspath(path)}'\n" for path in files), encoding="utf-8"
        )
        command = [
            self._ffmpeg,
            "-y",
            "-loglevel",
            "error",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            os.fspath(list_path),
            "-c",
            "copy",
            os.fspath(output),
        ]
        try:
            self._run_external(command)
        except CommandExecutionError as exc:
            raise AudioPreparationError(
                f"Audio concatenation failed: {exc.stderr_tail or exc}"
            ) from exc
        return output

    def _concat_decode(self, files: Sequence[Path], output: Path) -> Path:
        try:
            combined = AudioSegment.empty()
            for path in files:
                combined += self._load_segment(os.fspath(path))
            combined.export(os.fspath(output), format="wav")
        except (OSError, CouldntDecodeError) as exc:
            raise AudioPreparationError(f"Audio concatenation failed: {exc}") from exc
        return output


__all__ = ["AudioPreparer", "DEFAULT_AUDIO_SUFFIX"]
