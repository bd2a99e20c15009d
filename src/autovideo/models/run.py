"""Pipeline run state."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PipelineStage(str, Enum):
    """Pipeline stages, in execution order."""

    DECOMPOSE = "decompose"
    GENERATE_IMAGES = "generate_images"
    GENERATE_NARRATION = "generate_narration"
    ASSEMBLE = "assemble"
    DONE = "done"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class RunSummary(BaseModel):
    """Outcome of a completed pipeline run."""

    run_id: str = Field(..., description="Identifier attached to every run event")
    output_path: str = Field(..., description="Final muxed video")
    scene_count: int = Field(default=0, description="Scenes produced by decomposition")
    images_generated: List[int] = Field(default_factory=list, description="Scenes whose image was generated this run")
    images_reused: List[int] = Field(default_factory=list, description="Scenes whose image already existed")
    narration_path: Optional[str] = Field(None, description="Narration audio file")
    narration_reused: bool = Field(default=False, description="Narration already existed")
    narration_chunks: int = Field(default=0, description="Synthesis calls made for narration")
    video_timeline: float = Field(default=0.0, description="Sum of rendered scene durations in seconds")
    stage: PipelineStage = Field(default=PipelineStage.DONE, description="Last stage reached")
