from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest
import requests

from autovideo.config import PipelineSettings
from autovideo.editor.renderer import MediaRenderer
from autovideo.errors import InvalidResponse, RendererError
from autovideo.models import PollPolicy, SceneDraft, TaskSnapshot, TaskStatus
from autovideo.pipeline import RunEvents, StageOrchestrator


class FakeDecomposer:
    def __init__(self, drafts: Optional[List[SceneDraft]] = None, error: Optional[Exception] = None) -> None:
        self.drafts = drafts or []
        self.error = error
        self.calls: List[str] = []

    def decompose(self, text: str) -> List[SceneDraft]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.drafts)


class FakeImageService:
    """Image service whose poll answers are scripted per prompt.

    A script is a list of raw provider statuses (or exceptions) returned by
    successive polls; the last entry repeats once the list is exhausted.
    """

    def __init__(self, scripts: Optional[Dict[str, List[Any]]] = None) -> None:
        self.scripts = scripts or {}
        self.submitted: List[str] = []
        self.polls: List[str] = []
        self.fetched: List[str] = []
        self._tasks: Dict[str, List[Any]] = {}
        self._lock = threading.Lock()

    def submit_image_job(self, prompt: str) -> TaskSnapshot:
        with self._lock:
            task_id = f"img-{len(self.submitted)}"
            self.submitted.append(prompt)
            self._tasks[task_id] = list(self.scripts.get(prompt, ["RUNNING", "SUCCEEDED"]))
        return TaskSnapshot(task_id=task_id, status=TaskStatus.QUEUED, raw_status="PENDING")

    def poll_image_job(self, task_id: str) -> TaskSnapshot:
        with self._lock:
            self.polls.append(task_id)
            script = self._tasks[task_id]
            raw = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(raw, Exception):
            raise raw
        urls = [f"https://img.example/{task_id}.png"] if raw == "SUCCEEDED" else []
        return TaskSnapshot(
            task_id=task_id,
            status=TaskStatus.from_provider(raw),
            result_urls=urls,
            raw_status=raw,
        )

    def fetch(self, url: str) -> bytes:
        with self._lock:
            self.fetched.append(url)
        return b"PNG:" + url.encode()


class FakeSpeechService:
    """Synchronous speech service."""

    def __init__(self, max_input_chars: int = 250, fail_on: Optional[int] = None) -> None:
        self.max_input_chars = max_input_chars
        self.fail_on = fail_on
        self.texts: List[str] = []

    def synthesize(self, text: str) -> TaskSnapshot:
        call = len(self.texts)
        self.texts.append(text)
        if self.fail_on == call:
            raise InvalidResponse("No audio URL in response")
        return TaskSnapshot.completed(f"tts-{call}", f"https://audio.example/{call}.wav")

    def fetch(self, url: str) -> bytes:
        return b"RIFF:" + url.encode()


class AsyncFakeSpeechService(FakeSpeechService):
    """Speech service that queues a job and answers on the first poll."""

    def __init__(self, max_input_chars: int = 250) -> None:
        super().__init__(max_input_chars)
        self.polls: List[str] = []

    def synthesize(self, text: str) -> TaskSnapshot:
        task_id = f"tts-{len(self.texts)}"
        self.texts.append(text)
        return TaskSnapshot(task_id=task_id, status=TaskStatus.QUEUED, raw_status="PENDING")

    def poll_speech_job(self, task_id: str) -> TaskSnapshot:
        self.polls.append(task_id)
        return TaskSnapshot.completed(task_id, f"https://audio.example/{task_id}.wav")


class RecordingRenderer(MediaRenderer):
    """Renderer that records calls and writes placeholder outputs."""

    def __init__(self, fail_on: Optional[str] = None, stderr: str = "boom: invalid data") -> None:
        self.calls: List[tuple] = []
        self.fail_on = fail_on
        self.stderr = stderr

    def _do(self, op: str, output_path: Path, *details: Any) -> None:
        self.calls.append((op, *details, output_path))
        if self.fail_on == op:
            raise RendererError(["ffmpeg", op], 1, self.stderr)
        Path(output_path).write_bytes(f"{op}".encode())

    def render_still(self, image_path: Path, caption: str, duration: float, output_path: Path) -> None:
        self._do("render_still", output_path, Path(image_path), caption, duration)

    def concat_video(self, inputs: Sequence[Path], output_path: Path) -> None:
        self._do("concat_video", output_path, list(inputs))

    def concat_audio(self, inputs: Sequence[Path], output_path: Path) -> None:
        self._do("concat_audio", output_path, list(inputs))

    def mux(self, video_path: Path, audio_path: Path, output_path: Path) -> None:
        self._do("mux", output_path, Path(video_path), Path(audio_path))

    def ops(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


class DummyResponse:
    def __init__(self, payload=None, status_code=200, content=b"", text=""):
        self._payload = payload
        self.status_code = status_code
        self.content = content
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("Expecting value")
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Stands in for requests.Session, replaying canned responses in order."""

    def __init__(self, responses=None):
        self.headers = {}
        self.responses = list(responses or [])
        self.requests = []

    def _next(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings(
        image_poll=PollPolicy(interval=5.0, max_attempts=4),
        speech_poll=PollPolicy(interval=1.0, max_attempts=3),
        max_chunk_chars=250,
    )


@pytest.fixture
def two_scenes() -> List[SceneDraft]:
    return [
        SceneDraft(description="A lighthouse at dawn", subtitle="Scene one.", duration=3.0),
        SceneDraft(description="A ship leaving port", subtitle="Scene two.", duration=4.0),
    ]


@pytest.fixture
def make_orchestrator(settings, sleeper):
    def factory(
        drafts: List[SceneDraft],
        images: Optional[FakeImageService] = None,
        speech: Optional[FakeSpeechService] = None,
        renderer: Optional[RecordingRenderer] = None,
        **overrides: Any,
    ):
        run_settings = settings.model_copy(update=overrides) if overrides else settings
        parts = {
            "decomposer": FakeDecomposer(drafts),
            "images": images or FakeImageService(),
            "speech": speech or FakeSpeechService(max_input_chars=run_settings.max_chunk_chars),
            "renderer": renderer or RecordingRenderer(),
            "events": RunEvents(run_id="test-run"),
        }
        orchestrator = StageOrchestrator(
            decomposer=parts["decomposer"],
            image_service=parts["images"],
            speech_service=parts["speech"],
            renderer=parts["renderer"],
            settings=run_settings,
            events=parts["events"],
            sleep=sleeper,
        )
        return orchestrator, parts

    return factory
