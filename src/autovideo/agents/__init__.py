"""Prompt-driven agents."""

from .base import BaseAgent
from .storyboard import StoryboardAgent

__all__ = ["BaseAgent", "StoryboardAgent"]
