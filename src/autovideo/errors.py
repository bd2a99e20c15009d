"""Exception hierarchy for the slideshow pipeline."""

from typing import Optional, Sequence

from .models.run import PipelineStage


class AutoVideoError(Exception):
    """Base class for all pipeline errors."""


class InvalidResponse(AutoVideoError):
    """A collaborator returned data that does not match its contract."""


class ServiceError(AutoVideoError):
    """A collaborator request failed outright (HTTP error, unreachable host)."""


class TransientPollError(AutoVideoError):
    """A single status poll failed; the poller retries within its budget."""


class PollTimeout(AutoVideoError):
    """A remote task did not reach a terminal state within the poll budget."""

    def __init__(self, task_id: str, attempts: int) -> None:
        self.task_id = task_id
        self.attempts = attempts
        super().__init__(f"Task {task_id} still pending after {attempts} polls")


class RemoteTaskFailed(AutoVideoError):
    """The remote service reported a terminal failure."""

    def __init__(self, task_id: str, message: Optional[str] = None) -> None:
        self.task_id = task_id
        self.message = message
        detail = f": {message}" if message else ""
        super().__init__(f"Task {task_id} failed{detail}")


class EmptyResult(AutoVideoError):
    """A task succeeded but produced no result locator."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} succeeded without a result")


class RendererError(AutoVideoError):
    """The external media renderer exited with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{self.command[0]} exited with code {returncode}:\n{stderr}")


class StageError(AutoVideoError):
    """A pipeline stage failed; the run is aborted."""

    stage: PipelineStage = PipelineStage.DONE

    def __init__(
        self,
        message: str,
        scene_index: Optional[int] = None,
        stage: Optional[PipelineStage] = None,
    ) -> None:
        if stage is not None:
            self.stage = stage
        self.scene_index = scene_index
        self.detail = message
        super().__init__(message)

    def __str__(self) -> str:
        where = f"{self.stage.label} stage"
        if self.scene_index is not None:
            where += f", scene {self.scene_index}"
        return f"{where} failed: {self.detail}"


class DecompositionError(StageError):
    stage = PipelineStage.DECOMPOSE


class ImageGenerationError(StageError):
    stage = PipelineStage.GENERATE_IMAGES


class NarrationError(StageError):
    stage = PipelineStage.GENERATE_NARRATION


class AssemblyError(StageError):
    """Media assembly failed. Raised with the narration stage when audio
    concatenation fails, otherwise belongs to the assemble stage."""

    stage = PipelineStage.ASSEMBLE
