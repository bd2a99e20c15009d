"""External service integrations."""

from .anthropic import AnthropicClient
from .base import AsyncSpeechService, Decomposer, ImageService, SpeechService, TextClient
from .dashscope import DashScopeClient

__all__ = [
    "AnthropicClient",
    "AsyncSpeechService",
    "DashScopeClient",
    "Decomposer",
    "ImageService",
    "SpeechService",
    "TextClient",
]
