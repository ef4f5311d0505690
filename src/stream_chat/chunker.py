"""
Word-pair chunking for animated reveal of streamed text.

A chunk is two whitespace-delimited words followed by a single space. Only
complete pairs are revealed while a response streams; a dangling odd word
waits for its partner (or for the completed turn).
"""

from typing import List, NamedTuple, Tuple

DEFAULT_FADE = 0.75


class ChunkReveal(NamedTuple):
    """A chunk handed to the presentation layer."""

    index: int
    text: str
    fade: float


def derive_new_chunks(buffer: str, cursor: int) -> Tuple[List[str], int]:
    """Return the chunks of ``buffer`` past ``cursor`` and the new cursor.

    Parameters
    ----------
    buffer : str
        Full text received so far.
    cursor : int
        Number of chunks already revealed.

    Returns
    -------
    tuple
        ``(chunks, new_cursor)``. ``new_cursor`` is never below ``cursor``.
    """
    words = buffer.split()
    even = len(words) - len(words) % 2
    start = cursor * 2
    if start >= even:
        return [], cursor

    chunks = [f"{words[i]} {words[i + 1]} " for i in range(start, even, 2)]
    return chunks, even // 2


def pending_tail(buffer: str) -> str:
    """Return the trailing word that has no partner yet, or an empty string."""
    words = buffer.split()
    if len(words) % 2:
        return words[-1]
    return ""


class ChunkRenderer:
    """Tracks the reveal cursor of one stream and emits new chunks."""

    def __init__(self, fade: float = DEFAULT_FADE):
        self.fade = fade
        self.cursor = 0

    def render(self, buffer: str, final: bool = False) -> List[ChunkReveal]:
        """Return reveals for the pairs of ``buffer`` not shown yet.

        While streaming (``final`` false) a last word with no whitespace after
        it may still be arriving, so it is left out until the next fragment or
        the final call.
        """
        words = buffer.split()
        if not final and words and not buffer[-1].isspace():
            buffer = buffer[: buffer.rindex(words[-1])]

        chunks, new_cursor = derive_new_chunks(buffer, self.cursor)
        reveals = [
            ChunkReveal(self.cursor + offset, text, self.fade)
            for offset, text in enumerate(chunks)
        ]
        self.cursor = new_cursor
        return reveals

    def reset(self) -> None:
        self.cursor = 0
