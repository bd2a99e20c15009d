"""External media renderer used for segment, concat and mux operations."""

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import RendererError
from .captions import STYLES, CaptionStyle, drawtext_filter

logger = logging.getLogger(__name__)


class MediaRenderer(ABC):
    """The four media operations the pipeline needs from a renderer.

    Every method raises `RendererError` when the renderer fails.
    """

    @abstractmethod
    def render_still(
        self,
        image_path: Path,
        caption: str,
        duration: float,
        output_path: Path,
    ) -> None:
        """Render a fixed-duration video from one image with the caption burned in."""
        ...

    @abstractmethod
    def concat_video(self, inputs: Sequence[Path], output_path: Path) -> None:
        """Concatenate same-codec video files in order."""
        ...

    @abstractmethod
    def concat_audio(self, inputs: Sequence[Path], output_path: Path) -> None:
        """Concatenate audio files in order."""
        ...

    @abstractmethod
    def mux(self, video_path: Path, audio_path: Path, output_path: Path) -> None:
        """Combine one video and one audio stream, trimmed to the shorter."""
        ...


def write_concat_list(inputs: Sequence[Path], list_path: Path) -> Path:
    """Write an ffmpeg concat-demuxer list of absolute paths."""
    lines = []
    for path in inputs:
        absolute = str(Path(path).resolve()).replace("'", "'\\''")
        lines.append(f"file '{absolute}'\n")
    list_path.write_text("".join(lines), encoding="utf-8")
    return list_path


class FfmpegRenderer(MediaRenderer):
    """`MediaRenderer` backed by the ffmpeg command line."""

    DEFAULT_FRAME_RATE = 30
    AUDIO_CODECS = {
        ".mp3": ["-c:a", "libmp3lame", "-b:a", "192k"],
        ".m4a": ["-c:a", "aac", "-b:a", "192k"],
        ".wav": ["-c:a", "pcm_s16le"],
    }

    def __init__(
        self,
        binary: str = "ffmpeg",
        frame_rate: int = DEFAULT_FRAME_RATE,
        caption_style: Optional[CaptionStyle] = None,
    ) -> None:
        self._binary = binary
        self._frame_rate = frame_rate
        self._caption_style = caption_style or STYLES["default"]

    def render_still(
        self,
        image_path: Path,
        caption: str,
        duration: float,
        output_path: Path,
    ) -> None:
        logger.info(f"Creating video segment for: {caption[:40]}")
        self._run([
            "-loop", "1",
            "-i", str(image_path),
            "-vf", drawtext_filter(caption, self._caption_style),
            "-t", f"{duration:.3f}",
            "-pix_fmt", "yuv420p",
            "-r", str(self._frame_rate),
            str(output_path),
        ])

    def concat_video(self, inputs: Sequence[Path], output_path: Path) -> None:
        logger.info(f"Concatenating {len(inputs)} video segments...")
        self._run_concat(inputs, output_path, ["-c", "copy"])

    def concat_audio(self, inputs: Sequence[Path], output_path: Path) -> None:
        logger.info(f"Merging {len(inputs)} audio chunks...")
        codec = self.AUDIO_CODECS.get(output_path.suffix.lower(), [])
        self._run_concat(inputs, output_path, codec)

    def mux(self, video_path: Path, audio_path: Path, output_path: Path) -> None:
        logger.info("Adding audio to video...")
        self._run([
            "-i", str(video_path),
            "-i", str(audio_path),
            "-c:v", "copy",
            "-c:a", "aac",
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-shortest",
            str(output_path),
        ])

    def _run_concat(self, inputs: Sequence[Path], output_path: Path, codec_args: List[str]) -> None:
        list_path = output_path.with_name(output_path.name + ".concat.txt")
        write_concat_list(inputs, list_path)
        try:
            self._run([
                "-f", "concat",
                "-safe", "0",
                "-i", str(list_path),
                *codec_args,
                str(output_path),
            ])
        finally:
            try:
                list_path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove concat list {list_path}: {e}")

    def _run(self, args: Sequence[str]) -> None:
        cmd: List[str] = [self._binary, "-y", "-hide_banner", "-loglevel", "error", *args]
        logger.debug("FFmpeg: " + " ".join(a if " " not in a else f"'{a}'" for a in cmd))

        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise RendererError(cmd, -1, f"Failed to run {self._binary}: {e}") from e

        if proc.returncode != 0:
            raise RendererError(cmd, proc.returncode, proc.stderr or "")
