"""Base agent abstraction."""

import logging
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from ..services.base import TextClient

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """Abstract base class for prompt-driven agents.

    Holds the text backend and system prompt; subclasses build the user
    prompt and parse the reply.
    """

    def __init__(self, client: TextClient) -> None:
        """Initialize the agent.

        Args:
            client: Text completion backend (DashScope or Claude).
        """
        self._client = client
        self._logger = logging.getLogger(f"{__name__}.{self.name}")

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the agent's name."""
        ...

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        """Return the system prompt for this agent."""
        ...

    @abstractmethod
    def run(self, input_data: InputT) -> OutputT:
        """Execute the agent's main task."""
        ...

    def _complete(self, prompt: str) -> str:
        self._logger.debug(f"Sending prompt of length {len(prompt)}")
        response = self._client.complete(prompt, system=self.system_prompt)
        self._logger.debug(f"Received response of length {len(response)}")
        return response
