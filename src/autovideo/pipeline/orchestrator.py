"""Stage orchestration: decompose, illustrate, narrate, assemble."""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from ..config import PipelineSettings
from ..editor.audio import AudioAssembler
from ..editor.compositor import SegmentAssembler
from ..editor.renderer import MediaRenderer
from ..errors import (
    AssemblyError,
    AutoVideoError,
    DecompositionError,
    ImageGenerationError,
    NarrationError,
    StageError,
)
from ..files import remove_quietly, write_atomic
from ..models.run import PipelineStage, RunSummary
from ..models.scene import Scene
from ..models.store import SceneStore
from ..services.base import Decomposer, ImageService, SpeechService
from .cache import AssetCache
from .chunking import split_text
from .events import RunEvents
from .polling import AsyncTaskPoller

logger = logging.getLogger(__name__)

STAGE_ORDER = [
    PipelineStage.DECOMPOSE,
    PipelineStage.GENERATE_IMAGES,
    PipelineStage.GENERATE_NARRATION,
    PipelineStage.ASSEMBLE,
    PipelineStage.DONE,
]


@dataclass
class ImageStageResult:
    generated: List[int] = field(default_factory=list)
    reused: List[int] = field(default_factory=list)
    missing: List[int] = field(default_factory=list)


@dataclass
class NarrationStageResult:
    path: Path
    reused: bool = False
    chunks: int = 0


class StageOrchestrator:
    """Runs the four pipeline stages in order against one working directory.

    Every generated artifact has a deterministic path and goes through the
    `AssetCache`, so re-running after a failure only pays for what is still
    missing. Any stage failure aborts the run with a `StageError`.
    """

    def __init__(
        self,
        decomposer: Decomposer,
        image_service: ImageService,
        speech_service: SpeechService,
        renderer: MediaRenderer,
        settings: Optional[PipelineSettings] = None,
        events: Optional[RunEvents] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            decomposer: Storyboard decomposition capability.
            image_service: Asynchronous image generation capability.
            speech_service: Speech synthesis capability.
            renderer: External media renderer.
            settings: Polling, chunking and naming policy.
            events: Event sink for this run. A fresh one is created if omitted.
            sleep: Sleep function used between polls.
        """
        self._decomposer = decomposer
        self._images = image_service
        self._speech = speech_service
        self._renderer = renderer
        self._settings = settings or PipelineSettings()
        self._events = events or RunEvents()
        self._cache = AssetCache(self._events)
        self._image_poller = AsyncTaskPoller(self._settings.image_poll, sleep, self._events)
        self._speech_poller = AsyncTaskPoller(self._settings.speech_poll, sleep, self._events)
        self._audio = AudioAssembler(renderer)
        self._stage: Optional[PipelineStage] = None

    @property
    def events(self) -> RunEvents:
        return self._events

    @property
    def stage(self) -> Optional[PipelineStage]:
        return self._stage

    def run(
        self,
        text: str,
        work_dir: Path,
        output_path: Path,
        images_ready: bool = False,
    ) -> RunSummary:
        """Produce the narrated video for ``text``.

        Args:
            text: Source prose.
            work_dir: Directory holding the resumable intermediate assets.
            output_path: Final video file.
            images_ready: Skip image generation and only attach scene images
                already present in ``work_dir``.

        Returns:
            Summary of what was generated and what was reused.

        Raises:
            StageError: The failing stage's error, naming the scene if any.
        """
        self._stage = None
        self._events.emit("run_started", work_dir=str(work_dir), output=str(output_path), images_ready=images_ready)

        try:
            self._enter(PipelineStage.DECOMPOSE)
            try:
                work_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DecompositionError(f"Cannot create work directory {work_dir}: {e}") from e

            logger.info("Step 1/4: Generating scenes...")
            store = self.decompose(text)

            self._enter(PipelineStage.GENERATE_IMAGES)
            if images_ready:
                logger.info("Step 2/4: Skipped image generation, using existing images")
                images = self.attach_existing_images(store, work_dir)
            else:
                logger.info("Step 2/4: Generating images for each scene...")
                images = self.generate_images(store, work_dir)

            self._enter(PipelineStage.GENERATE_NARRATION)
            logger.info("Step 3/4: Generating speech...")
            narration = self.generate_narration(store, work_dir)

            self._enter(PipelineStage.ASSEMBLE)
            logger.info("Step 4/4: Generating final video...")
            timeline = self.assemble(store, narration.path, output_path, work_dir)

            self._enter(PipelineStage.DONE)
        except StageError as e:
            self._events.emit(
                "run_failed",
                level=logging.ERROR,
                stage=e.stage.value,
                scene=e.scene_index,
                error=e.detail,
            )
            raise

        self._events.emit("run_completed", output=str(output_path))
        return RunSummary(
            run_id=self._events.run_id,
            output_path=str(output_path),
            scene_count=len(store),
            images_generated=images.generated,
            images_reused=images.reused,
            narration_path=str(narration.path),
            narration_reused=narration.reused,
            narration_chunks=narration.chunks,
            video_timeline=timeline,
            stage=PipelineStage.DONE,
        )

    # ------------------------------------------------------------------
    # Decompose
    # ------------------------------------------------------------------

    def decompose(self, text: str) -> SceneStore:
        """Call the decomposition capability once and index its scenes."""
        try:
            drafts = self._decomposer.decompose(text)
            store = SceneStore.from_drafts(drafts)
        except (AutoVideoError, ValueError) as e:
            raise DecompositionError(str(e)) from e

        if not len(store):
            raise DecompositionError("Decomposition produced no scenes")

        logger.info(f"Generated {len(store)} scenes")
        self._events.emit("scenes_decomposed", count=len(store), duration=store.total_duration)
        return store

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def generate_images(self, store: SceneStore, work_dir: Path) -> ImageStageResult:
        """Make sure every scene has an image, generating the missing ones.

        Scenes run in index order, or on a bounded worker pool when
        ``image_workers`` is above one. The first failure aborts the stage.
        """
        result = ImageStageResult()
        workers = min(self._settings.image_workers, len(store))

        if workers <= 1:
            for scene in store:
                self._record(result, scene.index, self._illustrate(store, scene, work_dir))
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(self._illustrate, store, scene, work_dir): scene.index
                    for scene in store
                }
                try:
                    for future in as_completed(futures):
                        self._record(result, futures[future], future.result())
                except StageError:
                    for future in futures:
                        future.cancel()
                    raise

        result.generated.sort()
        result.reused.sort()
        return result

    def attach_existing_images(self, store: SceneStore, work_dir: Path) -> ImageStageResult:
        """Attach images already in ``work_dir`` without generating anything."""
        result = ImageStageResult()
        for scene in store:
            path = self._settings.image_path(work_dir, scene.index)
            if self._cache.exists(path):
                store.attach_image(scene.index, str(path))
                result.reused.append(scene.index)
            else:
                logger.warning(f"No image for scene {scene.index} at {path}; it will be narrated without a visual")
                result.missing.append(scene.index)

        self._events.emit("images_attached", found=len(result.reused), missing=len(result.missing))
        return result

    def _illustrate(self, store: SceneStore, scene: Scene, work_dir: Path) -> bool:
        """Ensure one scene's image exists. Returns True if it was generated now."""
        path = self._settings.image_path(work_dir, scene.index)
        generated = []

        def generate(target: Path) -> None:
            snapshot = self._images.submit_image_job(scene.description)
            url = self._image_poller.resolve(snapshot, self._images.poll_image_job)
            write_atomic(target, self._images.fetch(url))
            generated.append(target)

        try:
            self._cache.ensure(path, generate)
        except StageError:
            raise
        except (AutoVideoError, OSError) as e:
            raise ImageGenerationError(str(e), scene_index=scene.index) from e

        store.attach_image(scene.index, str(path))
        if generated:
            logger.info(f"Generated image for scene {scene.index} of {len(store)}")
            self._events.emit("image_generated", scene=scene.index, path=str(path))
        return bool(generated)

    @staticmethod
    def _record(result: ImageStageResult, index: int, generated: bool) -> None:
        (result.generated if generated else result.reused).append(index)

    # ------------------------------------------------------------------
    # Narration
    # ------------------------------------------------------------------

    def generate_narration(self, store: SceneStore, work_dir: Path) -> NarrationStageResult:
        """Make sure the narration track exists, synthesizing it chunk by chunk."""
        script = store.narration_script(self._settings.subtitle_separator)
        audio_path = self._settings.audio_path(work_dir)
        result = NarrationStageResult(path=audio_path, reused=True)

        def generate(target: Path) -> None:
            result.reused = False
            if not script:
                raise NarrationError("Narration script is empty")

            plan = split_text(script, self._chunk_cap())
            result.chunks = len(plan)
            self._events.emit("narration_planned", chars=len(script), chunks=len(plan))

            if len(plan) == 1:
                self._synthesize(plan[0], target)
                return

            logger.info(f"Text too long, splitting into {len(plan)} chunks")
            parts = [
                target.with_name(f"{target.stem}.part{i}{self._settings.chunk_suffix}")
                for i in range(len(plan))
            ]
            for i, (piece, part) in enumerate(zip(plan, parts), start=1):
                logger.info(f"Generating speech chunk {i}/{len(plan)} ({len(piece)} chars)")
                self._synthesize(piece, part)

            staging = target.with_name(f"{target.stem}.partial{target.suffix}")
            self._audio.concatenate(parts, staging)
            os.replace(staging, target)

            for part in parts:
                remove_quietly(part)

        try:
            self._cache.ensure(audio_path, generate)
        except StageError:
            raise
        except (AutoVideoError, OSError) as e:
            raise NarrationError(str(e)) from e

        logger.info(f"Speech saved to: {audio_path}")
        return result

    def _chunk_cap(self) -> int:
        service_cap = getattr(self._speech, "max_input_chars", None)
        if service_cap:
            return min(self._settings.max_chunk_chars, service_cap)
        return self._settings.max_chunk_chars

    def _synthesize(self, text: str, target: Path) -> None:
        snapshot = self._speech.synthesize(text)
        poll = getattr(self._speech, "poll_speech_job", None)
        url = self._speech_poller.resolve(snapshot, poll)
        write_atomic(target, self._speech.fetch(url))
        self._events.emit("speech_generated", path=str(target), chars=len(text))

    # ------------------------------------------------------------------
    # Assemble
    # ------------------------------------------------------------------

    def assemble(
        self,
        store: SceneStore,
        narration_path: Path,
        output_path: Path,
        work_dir: Path,
    ) -> float:
        """Render the slideshow and mux the narration onto it."""
        assembler = SegmentAssembler(self._renderer, work_dir)
        try:
            timeline = assembler.assemble(store.scenes, narration_path, output_path)
        except StageError:
            raise
        except (AutoVideoError, OSError) as e:
            raise AssemblyError(str(e)) from e

        self._events.emit("video_assembled", output=str(output_path), timeline=timeline)
        return timeline

    def _enter(self, stage: PipelineStage) -> None:
        if self._stage is not None and STAGE_ORDER.index(stage) <= STAGE_ORDER.index(self._stage):
            raise RuntimeError(f"Cannot move from {self._stage.value} back to {stage.value}")
        self._stage = stage
        self._events.emit("stage_started", stage=stage.value)
