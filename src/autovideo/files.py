"""Filesystem helpers for pipeline artifacts."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def write_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` via a sibling temp file and a rename.

    A process killed mid-download leaves only the ``.partial`` file behind,
    never a file at the resumability key.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + ".partial")
    with open(partial, "wb") as f:
        f.write(data)
    os.replace(partial, path)


def remove_quietly(path: Path) -> bool:
    """Best-effort delete of an intermediate file."""
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")
        return False
