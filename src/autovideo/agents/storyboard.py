"""Storyboard agent: decomposes prose into scenes."""

import json
import logging
from typing import Any, List

from pydantic import ValidationError

from ..errors import InvalidResponse
from ..models.scene import SceneDraft
from .base import BaseAgent

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a storyboard artist turning prose into a narrated slideshow.
Output valid JSON only, with no additional text or markdown formatting."""

PROMPT_TEMPLATE = """Break the following text into storyboard scenes. For each scene give:
1. description: a detailed English prompt for an image generator describing what the frame shows
2. subtitle: the narrated line for this scene, kept verbatim in the language of the source text
3. duration: the suggested on-screen time in seconds (a number)

Return a JSON array whose elements have exactly the keys description, subtitle and duration.
Every part of the text must be covered by exactly one subtitle, in order.

Text:
{text}

Return the JSON array directly, with no other commentary."""


class StoryboardAgent(BaseAgent[str, List[SceneDraft]]):
    """Agent implementing the decomposition capability.

    The reply must be an ordered list of scene records; anything else is an
    `InvalidResponse`, since a malformed storyboard cannot be partially used.
    """

    @property
    def name(self) -> str:
        return "StoryboardAgent"

    @property
    def system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def decompose(self, text: str) -> List[SceneDraft]:
        return self.run(text)

    def run(self, input_data: str) -> List[SceneDraft]:
        """Generate storyboard records for ``input_data``.

        Raises:
            InvalidResponse: If the reply is not a non-empty list of valid records.
        """
        self._logger.info(f"Generating scenes from text ({len(input_data)} chars)")
        response = self._complete(PROMPT_TEMPLATE.format(text=input_data))
        self._logger.debug(f"Storyboard reply: {response}")

        drafts = self.parse(response)
        self._logger.info(f"Generated {len(drafts)} scenes")
        return drafts

    @classmethod
    def parse(cls, response: str) -> List[SceneDraft]:
        """Parse a storyboard reply into scene drafts."""
        json_str = extract_json(response)

        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise InvalidResponse(f"Failed to parse scenes JSON: {e}") from e

        records = data.get("scenes") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise InvalidResponse("Storyboard reply is not a list of scenes")
        if not records:
            raise InvalidResponse("Storyboard reply contains no scenes")

        return [cls._draft(i, record) for i, record in enumerate(records)]

    @staticmethod
    def _draft(position: int, record: Any) -> SceneDraft:
        if not isinstance(record, dict):
            raise InvalidResponse(f"Scene {position} is not an object: {record!r}")
        try:
            return SceneDraft(
                description=record["description"],
                subtitle=record["subtitle"],
                duration=record["duration"],
            )
        except KeyError as e:
            raise InvalidResponse(f"Scene {position} is missing field {e}") from e
        except ValidationError as e:
            raise InvalidResponse(f"Scene {position} is invalid: {e}") from e


def extract_json(response: str) -> str:
    """Extract JSON from a reply that may be wrapped in markdown or prose."""
    text = response.strip()

    # Code fences
    if "```" in text:
        start = text.find("```")
        body_start = text.find("\n", start)
        end = text.find("```", start + 3)
        if body_start != -1 and end > body_start:
            return text[body_start + 1:end].strip()

    if text[:1] in "[{":
        return text

    # First balanced array or object in the prose
    for start_char, end_char in [("[", "]"), ("{", "}")]:
        start = text.find(start_char)
        if start == -1:
            continue
        depth = 0
        in_string = False
        escaped = False
        for i, char in enumerate(text[start:], start):
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == start_char:
                depth += 1
            elif char == end_char:
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]

    return text
