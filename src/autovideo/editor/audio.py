"""Narration audio assembly."""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from moviepy import AudioFileClip

from ..errors import AssemblyError, RendererError
from ..models.run import PipelineStage
from .renderer import MediaRenderer

logger = logging.getLogger(__name__)


class AudioAssembler:
    """Joins per-chunk narration clips into one track.

    The assembler never deletes its inputs; whoever created the chunks
    removes them after a successful concatenation.
    """

    def __init__(self, renderer: MediaRenderer) -> None:
        self._renderer = renderer

    def concatenate(self, clip_paths: Sequence[Path], output_path: Path) -> Path:
        """Concatenate ``clip_paths`` in order into ``output_path``.

        Args:
            clip_paths: Two or more audio files, in narration order.
            output_path: Destination of the joined track.

        Returns:
            ``output_path``.

        Raises:
            ValueError: If fewer than two clips are given.
            AssemblyError: If a clip is missing or the renderer fails.
        """
        if len(clip_paths) < 2:
            raise ValueError(f"Need at least two clips to concatenate, got {len(clip_paths)}")

        manifest: List[Path] = []
        for clip in clip_paths:
            absolute = Path(clip).resolve()
            if not absolute.is_file():
                raise AssemblyError(
                    f"Audio chunk not found: {absolute}",
                    stage=PipelineStage.GENERATE_NARRATION,
                )
            manifest.append(absolute)

        try:
            self._renderer.concat_audio(manifest, output_path)
        except RendererError as e:
            raise AssemblyError(
                f"Audio concatenation failed:\n{e.stderr}",
                stage=PipelineStage.GENERATE_NARRATION,
            ) from e

        logger.info(f"Merged {len(manifest)} audio chunks into {output_path}")
        return output_path


def get_audio_duration(audio_path: Path) -> Optional[float]:
    """Get the duration of an audio (or audio-bearing video) file.

    Args:
        audio_path: Path to the media file.

    Returns:
        Duration in seconds, or None if the file cannot be decoded.
    """
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    try:
        audio = AudioFileClip(str(audio_path))
    except (OSError, KeyError, ValueError) as e:
        logger.debug(f"Could not probe {audio_path}: {e}")
        return None

    try:
        return audio.duration
    finally:
        audio.close()
