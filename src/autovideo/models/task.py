"""Remote task state model."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Normalized status of a remote generation task."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCEEDED, TaskStatus.FAILED)

    @classmethod
    def from_provider(cls, raw: Optional[str]) -> "TaskStatus":
        """Map a provider status spelling onto the four-state model.

        Unrecognized spellings are treated as still running so the poller keeps
        waiting until its attempt budget runs out.
        """
        value = (raw or "").strip().upper()
        if value in _QUEUED:
            return cls.QUEUED
        if value in _SUCCEEDED:
            return cls.SUCCEEDED
        if value in _FAILED:
            return cls.FAILED
        return cls.RUNNING


_QUEUED = {"PENDING", "QUEUED", "SUBMITTED"}
_SUCCEEDED = {"SUCCEEDED", "SUCCESS", "COMPLETED", "DONE"}
_FAILED = {"FAILED", "FAILURE", "CANCELED", "CANCELLED", "UNKNOWN", "ERROR"}


@dataclass
class TaskSnapshot:
    """One observation of a remote task."""

    task_id: str
    status: TaskStatus
    result_urls: List[str] = field(default_factory=list)
    raw_status: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def completed(cls, task_id: str, url: Optional[str]) -> "TaskSnapshot":
        """Wrap a synchronous response as an already-terminal success."""
        return cls(
            task_id=task_id,
            status=TaskStatus.SUCCEEDED,
            result_urls=[url] if url else [],
            raw_status="SUCCEEDED",
        )


class PollPolicy(BaseModel):
    """How long and how often to wait on a remote task."""

    interval: float = Field(default=5.0, description="Seconds slept before every poll", ge=0)
    max_attempts: int = Field(default=60, description="Polls before giving up", gt=0)

    model_config = {"frozen": True}

    @property
    def budget(self) -> float:
        """Upper bound on seconds spent sleeping for one task."""
        return self.interval * self.max_attempts
