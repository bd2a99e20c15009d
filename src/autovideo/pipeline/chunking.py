"""Split narration text to fit the speech service's input cap."""

from typing import List


def split_text(text: str, max_chars: int) -> List[str]:
    """Split text into consecutive pieces of at most ``max_chars`` characters.

    Lengths are counted in Unicode code points, the unit the speech service
    caps on, so multi-byte scripts are never cut inside a character. Joining
    the pieces with no separator reproduces ``text`` exactly, and no piece is
    empty. Text within the cap comes back as a single piece.

    Args:
        text: Narration script.
        max_chars: Maximum piece length, in code points.

    Returns:
        Ordered list of pieces. Empty when ``text`` is empty.

    Raises:
        ValueError: If ``max_chars`` is not positive.
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    if len(text) <= max_chars:
        return [text] if text else []

    return [text[start:start + max_chars] for start in range(0, len(text), max_chars)]
