"""Alibaba DashScope (Qwen) API client wrapper."""

import logging
import uuid
from typing import Any, Dict, Optional

import requests

from ..config import Config, config
from ..errors import InvalidResponse, ServiceError, TransientPollError
from ..models.task import TaskSnapshot, TaskStatus

logger = logging.getLogger(__name__)


class DashScopeClient:
    """Client wrapper for DashScope text, image and speech generation.

    This client handles:
    - Text completion for storyboard decomposition
    - Submitting asynchronous image jobs and reading their status
    - Synchronous speech synthesis
    - Downloading generated assets
    """

    BASE_URL = "https://dashscope.aliyuncs.com/api/v1"
    TEXT_PATH = "/services/aigc/text-generation/generation"
    IMAGE_PATH = "/services/aigc/text2image/image-synthesis"
    TTS_PATH = "/services/aigc/multimodal-generation/generation"
    TASKS_PATH = "/tasks"

    # The TTS endpoint counts CJK characters double against a 600 limit.
    MAX_TTS_CHARS = 250

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = BASE_URL,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        max_input_chars: int = MAX_TTS_CHARS,
        settings: Optional[Config] = None,
    ) -> None:
        """Initialize the DashScope client.

        Args:
            api_key: DashScope API key. Defaults to DASHSCOPE_API_KEY env var.
            base_url: API root, overridable for proxies.
            timeout: Per-request timeout in seconds.
            session: Optional preconfigured requests session.
            max_input_chars: Speech input cap, in characters.
            settings: Model and voice configuration. Defaults to the global config.
        """
        self._config = settings or config
        self._api_key = api_key or self._config.dashscope_api_key
        if not self._api_key:
            raise ValueError("DashScope API key not provided. Set DASHSCOPE_API_KEY env var.")

        self._base_url = base_url.rstrip("/")
        self._timeout = timeout if timeout is not None else self._config.http_timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {self._api_key}"})
        self.max_input_chars = max_input_chars

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        """Run a single-turn chat completion and return the reply text."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        body = {
            "model": self._config.text_model,
            "input": {"messages": messages},
            "parameters": {"result_format": "message"},
        }
        data = self._post(self.TEXT_PATH, body, "Text generation")

        output = self._output(data, "Text generation")
        choices = output.get("choices") or []
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        if isinstance(output.get("text"), str):
            return output["text"]
        raise InvalidResponse(f"No generated text in response: {data}")

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def submit_image_job(self, prompt: str) -> TaskSnapshot:
        """Submit an asynchronous text-to-image task."""
        logger.info(f"Generating image for prompt: {prompt[:60]}")
        body = {
            "model": self._config.image_model,
            "input": {"prompt": prompt},
            "parameters": {
                "style": self._config.image_style,
                "size": self._config.image_size,
                "n": 1,
            },
        }
        data = self._post(
            self.IMAGE_PATH,
            body,
            "Image generation",
            headers={"X-DashScope-Async": "enable"},
        )

        output = self._output(data, "Image generation")
        task_id = output.get("task_id")
        if not task_id:
            raise InvalidResponse(f"No task_id in image submission response: {data}")

        logger.info(f"Image generation task submitted: {task_id}")
        return self._snapshot(task_id, output)

    def poll_image_job(self, task_id: str) -> TaskSnapshot:
        """Read the current status of an image task."""
        url = f"{self._base_url}{self.TASKS_PATH}/{task_id}"
        logger.debug(f"Querying task status: {url}")

        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise TransientPollError(f"Task query failed: {e}") from e

        if not response.ok:
            raise TransientPollError(f"HTTP {response.status_code}: {response.text[:500]}")

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponse(f"Failed to parse task response: {e}") from e
        if not isinstance(data, dict):
            raise InvalidResponse(f"Task response is not a JSON object: {data!r}")

        output = data.get("output")
        if not isinstance(output, dict) or "task_status" not in output:
            raise InvalidResponse(f"Task response has no status: {data}")
        return self._snapshot(task_id, output)

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------

    def synthesize(self, text: str) -> TaskSnapshot:
        """Synthesize speech for one chunk; the endpoint answers synchronously."""
        if len(text) > self.max_input_chars:
            raise ValueError(
                f"Speech input of {len(text)} chars exceeds the {self.max_input_chars} char cap"
            )

        body = {
            "model": self._config.tts_model,
            "input": {"text": text},
            "parameters": {
                "voice": self._config.tts_voice,
                "format": "wav",
                "sample_rate": self._config.tts_sample_rate,
            },
        }
        data = self._post(self.TTS_PATH, body, f"TTS ({len(text)} chars)")

        audio = self._output(data, "TTS").get("audio") or {}
        if not isinstance(audio, dict):
            raise InvalidResponse(f"TTS audio field is not an object: {audio!r}")
        request_id = data.get("request_id") or f"tts-{uuid.uuid4().hex[:12]}"
        return TaskSnapshot.completed(request_id, audio.get("url"))

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def fetch(self, url: str) -> bytes:
        """Download a generated asset."""
        logger.info(f"Downloading asset from: {url}")
        try:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ServiceError(f"Download of {url} failed: {e}") from e
        return response.content

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _post(
        self,
        path: str,
        body: Dict[str, Any],
        what: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        try:
            response = self._session.post(
                f"{self._base_url}{path}",
                json=body,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ServiceError(f"{what} request failed: {e}") from e

        if not response.ok:
            raise ServiceError(f"{what} API error ({response.status_code}): {response.text[:500]}")

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponse(f"{what} returned non-JSON body: {e}") from e

        if not isinstance(data, dict):
            raise InvalidResponse(f"{what} returned {type(data).__name__}, expected a JSON object")
        return data

    @staticmethod
    def _output(data: Dict[str, Any], what: str) -> Dict[str, Any]:
        output = data.get("output") or {}
        if not isinstance(output, dict):
            raise InvalidResponse(f"{what} output is not an object: {output!r}")
        return output

    @staticmethod
    def _snapshot(task_id: str, output: Dict[str, Any]) -> TaskSnapshot:
        raw_status = output.get("task_status")
        results = output.get("results") or []
        return TaskSnapshot(
            task_id=task_id,
            status=TaskStatus.from_provider(raw_status),
            result_urls=[item["url"] for item in results if isinstance(item, dict) and item.get("url")],
            raw_status=raw_status,
            message=output.get("message"),
        )
