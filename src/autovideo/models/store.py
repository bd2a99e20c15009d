"""Ordered scene collection for one pipeline run."""

import threading
from pathlib import Path
from typing import Iterator, List, Sequence

import yaml

from .scene import Scene, SceneDraft


class SceneStore:
    """Scenes of a single run, in storyboard order.

    Scene indices are contiguous from 0 and equal each scene's position.
    Image attachment goes through the store so that concurrent image workers
    serialize their writes.
    """

    def __init__(self, scenes: Sequence[Scene] = ()) -> None:
        self._scenes: List[Scene] = list(scenes)
        self._lock = threading.Lock()
        for position, scene in enumerate(self._scenes):
            if scene.index != position:
                raise ValueError(
                    f"Scene at position {position} carries index {scene.index}"
                )

    @classmethod
    def from_drafts(cls, drafts: Sequence[SceneDraft]) -> "SceneStore":
        """Index decomposition records in the order they were returned."""
        return cls(
            Scene(
                index=i,
                description=draft.description,
                subtitle=draft.subtitle,
                duration=draft.duration,
            )
            for i, draft in enumerate(drafts)
        )

    def __len__(self) -> int:
        return len(self._scenes)

    def __iter__(self) -> Iterator[Scene]:
        return iter(self._scenes)

    def __getitem__(self, index: int) -> Scene:
        return self._scenes[index]

    @property
    def scenes(self) -> List[Scene]:
        return list(self._scenes)

    @property
    def total_duration(self) -> float:
        return sum(scene.duration for scene in self._scenes)

    def attach_image(self, index: int, path: str) -> None:
        with self._lock:
            self._scenes[index].attach_image(path)

    def missing_images(self) -> List[int]:
        return [scene.index for scene in self._scenes if not scene.has_image]

    def narration_script(self, separator: str) -> str:
        """Join every subtitle in index order."""
        return separator.join(scene.subtitle for scene in self._scenes)

    def to_yaml(self, path: Path) -> None:
        """Save the storyboard to a YAML file."""
        data = {"scenes": [scene.model_dump() for scene in self._scenes]}
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    @classmethod
    def from_yaml(cls, path: Path) -> "SceneStore":
        """Load a storyboard previously written by `to_yaml`."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls(Scene(**item) for item in data.get("scenes", []))
