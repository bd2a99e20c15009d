"""File-existence cache that makes interrupted runs resumable."""

import logging
import os
import threading
from collections import defaultdict
from pathlib import Path
from typing import Callable, DefaultDict, Optional

from .events import RunEvents

logger = logging.getLogger(__name__)


class AssetCache:
    """Skips generation of any artifact whose deterministic path already exists.

    Validity is decided by a metadata lookup only: a truncated or empty file at
    the expected path counts as complete. There is no eviction and no expiry;
    the cache is the working directory itself.

    Checks are serialized per path, so concurrent callers never run two
    generators for the same artifact.
    """

    def __init__(self, events: Optional[RunEvents] = None) -> None:
        self._events = events
        self._locks: DefaultDict[str, threading.Lock] = defaultdict(threading.Lock)
        self._registry_lock = threading.Lock()

    def ensure(self, expected_path: Path, generator: Callable[[Path], None]) -> Path:
        """Return ``expected_path``, invoking ``generator`` only if it is missing.

        Args:
            expected_path: Where the artifact lives.
            generator: Called with ``expected_path``; must write the file there.

        Returns:
            ``expected_path``.

        Raises:
            FileNotFoundError: If the generator returned without writing the file.
        """
        with self._lock_for(expected_path):
            if self.exists(expected_path):
                logger.info(f"{expected_path.name} already exists, skipping generation")
                self._emit("cache_hit", path=str(expected_path))
                return expected_path

            self._emit("cache_miss", path=str(expected_path))
            generator(expected_path)

            if not self.exists(expected_path):
                raise FileNotFoundError(f"Generator did not produce {expected_path}")
            return expected_path

    @staticmethod
    def exists(path: Path) -> bool:
        return path.is_file()

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._registry_lock:
            return self._locks[os.path.abspath(path)]

    def _emit(self, name: str, **fields) -> None:
        if self._events is not None:
            self._events.emit(name, level=logging.DEBUG, **fields)
