"""Anthropic Claude text backend for storyboard decomposition."""

import logging
import time
from typing import Callable, Optional

from anthropic import Anthropic, APIConnectionError, APIError, RateLimitError

from ..config import config
from ..errors import InvalidResponse, ServiceError

logger = logging.getLogger(__name__)


class AnthropicClient:
    """`TextClient` backed by Claude, with backoff on rate limits and dropped connections."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        max_tokens: int = 4096,
        client: Optional[Anthropic] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the Claude backend.

        Args:
            api_key: Anthropic API key. Defaults to ANTHROPIC_API_KEY env var.
            model: Model to use. Defaults to config.anthropic_model.
            max_retries: Attempts before giving up on retryable errors.
            retry_delay: Base delay between retries in seconds (exponential backoff).
            max_tokens: Completion budget; storyboards for long texts run long.
            client: Preconfigured SDK client.
            sleep: Sleep function used between retries.

        Raises:
            ValueError: If no API key is available or max_retries is below 1.
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")

        if client is None:
            api_key = api_key or config.anthropic_api_key
            if not api_key:
                raise ValueError("Anthropic API key not provided. Set ANTHROPIC_API_KEY env var.")
            client = Anthropic(api_key=api_key)

        self._client = client
        self._model = model or config.anthropic_model
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._max_tokens = max_tokens
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self._model

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        """Send one user turn and return the reply text.

        Raises:
            ServiceError: If the API keeps failing or rejects the request.
            InvalidResponse: If the reply carries no text block.
        """
        kwargs = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.3,
        }
        if system:
            kwargs["system"] = system

        for attempt in range(1, self._max_retries + 1):
            try:
                logger.debug(f"Sending storyboard request to Claude (attempt {attempt}/{self._max_retries})")
                response = self._client.messages.create(**kwargs)
                break
            except (RateLimitError, APIConnectionError) as e:
                if attempt == self._max_retries:
                    raise ServiceError(f"Claude request failed after {attempt} attempts: {e}") from e
                delay = self._retry_delay * (2 ** (attempt - 1))
                logger.warning(f"{type(e).__name__} from Claude. Retrying in {delay:.1f}s...")
                self._sleep(delay)
            except APIError as e:
                raise ServiceError(f"Claude API error: {e}") from e

        texts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        if not texts:
            raise InvalidResponse("Claude reply contained no text")
        return "".join(texts)
