"""Pipeline orchestration and resumable staging."""

from .cache import AssetCache
from .chunking import split_text
from .events import RunEvent, RunEvents
from .orchestrator import StageOrchestrator
from .polling import AsyncTaskPoller

__all__ = [
    "AssetCache",
    "AsyncTaskPoller",
    "RunEvent",
    "RunEvents",
    "StageOrchestrator",
    "split_text",
]
