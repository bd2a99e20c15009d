"""Data models for the slideshow pipeline."""

from .run import PipelineStage, RunSummary
from .scene import Scene, SceneDraft
from .store import SceneStore
from .task import PollPolicy, TaskSnapshot, TaskStatus

__all__ = [
    "PipelineStage",
    "PollPolicy",
    "RunSummary",
    "Scene",
    "SceneDraft",
    "SceneStore",
    "TaskSnapshot",
    "TaskStatus",
]
