"""Slideshow compositor: scene segments, concatenation and narration mux."""

import logging
from pathlib import Path
from typing import Iterable, List

from ..errors import AssemblyError, RendererError
from ..files import remove_quietly
from ..models.scene import Scene
from .renderer import MediaRenderer

logger = logging.getLogger(__name__)


class SegmentAssembler:
    """Builds the final video from scene images, subtitles and narration."""

    SEGMENT_NAME = "segment_{index}.mp4"
    MERGED_NAME = "merged.mp4"

    def __init__(self, renderer: MediaRenderer, work_dir: Path) -> None:
        self._renderer = renderer
        self._work_dir = work_dir

    def assemble(
        self,
        scenes: Iterable[Scene],
        narration_path: Path,
        output_path: Path,
    ) -> float:
        """Render one segment per illustrated scene and mux the narration on top.

        Scenes without an image contribute narration only and are skipped.
        Intermediate segments and the pre-mux video are removed on success.

        Args:
            scenes: Scenes in storyboard order.
            narration_path: Narration track to mux.
            output_path: Final video file.

        Returns:
            Length of the video timeline in seconds, before trimming to the
            narration.

        Raises:
            AssemblyError: If there is nothing to render or the renderer fails.
        """
        illustrated = [scene for scene in sorted(scenes, key=lambda s: s.index) if scene.has_image]
        if not illustrated:
            raise AssemblyError("No scene has an image to render")
        if not narration_path.is_file():
            raise AssemblyError(f"Narration audio not found: {narration_path}")

        segments: List[Path] = []
        merged = self._work_dir / self.MERGED_NAME

        for scene in illustrated:
            segment = self._work_dir / self.SEGMENT_NAME.format(index=scene.index)
            self._render(
                lambda: self._renderer.render_still(
                    Path(scene.image_path), scene.subtitle, scene.duration, segment
                ),
                f"segment for scene {scene.index}",
                scene.index,
            )
            segments.append(segment)
            logger.info(f"Created segment: {segment}")

        self._render(lambda: self._renderer.concat_video(segments, merged), "segment concatenation")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        self._render(lambda: self._renderer.mux(merged, narration_path, output_path), "narration mux")

        for path in [*segments, merged]:
            remove_quietly(path)

        timeline = sum(scene.duration for scene in illustrated)
        logger.info(f"Video generation completed: {output_path} ({timeline:.1f}s timeline)")
        return timeline

    @staticmethod
    def _render(action, what: str, scene_index=None) -> None:
        try:
            action()
        except RendererError as e:
            raise AssemblyError(f"Renderer failed on {what}:\n{e.stderr}", scene_index=scene_index) from e
