"""Capability contracts the pipeline needs from external services."""

from typing import List, Optional, Protocol

from ..models.scene import SceneDraft
from ..models.task import TaskSnapshot


class TextClient(Protocol):
    """Anything that turns a prompt into a completion."""

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        ...


class Decomposer(Protocol):
    """Turns source text into ordered storyboard records."""

    def decompose(self, text: str) -> List[SceneDraft]:
        ...


class ImageService(Protocol):
    """Asynchronous text-to-image generation."""

    def submit_image_job(self, prompt: str) -> TaskSnapshot:
        ...

    def poll_image_job(self, task_id: str) -> TaskSnapshot:
        ...

    def fetch(self, url: str) -> bytes:
        ...


class SpeechService(Protocol):
    """Text-to-speech generation.

    Synchronous services return an already-succeeded snapshot from
    `synthesize`; asynchronous ones also implement `AsyncSpeechService`.
    """

    max_input_chars: int

    def synthesize(self, text: str) -> TaskSnapshot:
        ...

    def fetch(self, url: str) -> bytes:
        ...


class AsyncSpeechService(SpeechService, Protocol):
    def poll_speech_job(self, task_id: str) -> TaskSnapshot:
        ...
