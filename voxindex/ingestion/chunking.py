"""Word-boundary-safe, overlapping character chunking for transcripts."""

from __future__ import annotations

from collections.abc import Iterator

from voxindex.pipeline_config import ChunkingConfig


def _is_word_start(text: str, pos: int) -> bool:
    return pos == 0 or text[pos - 1].isspace() or text[pos].isspace()


def _find_cut(text: str, start: int, end: int) -> int:
    """Return the end offset for a segment starting at *start*.

    Scans back from *end* for a whitespace character in ``(start, end]`` and
    cuts just before it. Falls back to *end* (a plain slice) when the window
    holds no whitespace at all.
    """
    for pos in range(end, start, -1):
        if text[pos].isspace():
            return pos
    return end


def iter_chunk_spans(text: str, chunk_size: int = 500, overlap: int = 100) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` offsets of successive segments of *text*.

    Every span is at most *chunk_size* characters long and, unless the text
    has a whitespace-free run longer than *chunk_size*, ends right before a
    whitespace character. Each span starts at most *overlap* characters
    before the previous end, on a word start, and never after it, so the
    spans cover *text* with no gaps. When no word starts inside the overlap
    window the next span begins right at the previous end, so the actual
    overlap can drop to 0. The last span holds the remainder.

    Empty text yields no spans.
    """
    ChunkingConfig(chunk_size=chunk_size, overlap=overlap)  # validates the pair

    length = len(text)
    start = 0
    while start < length:
        if length - start <= chunk_size:
            yield start, length
            return

        cut = _find_cut(text, start, start + chunk_size)
        yield start, cut

        next_start = cut - overlap
        if next_start <= start:
            next_start = cut
        while next_start < cut and not _is_word_start(text, next_start):
            next_start += 1
        start = next_start


def chunk_text(text: str, chunk_size: int = 500, overlap: int = 100) -> list[str]:
    """Split *text* into overlapping segments that never cut a word in half.

    Args:
        text: Full transcript text.
        chunk_size: Maximum segment length in characters.
        overlap: Upper bound on the characters shared by consecutive
            segments. Only whole words are carried over, so the shared text
            shrinks to nothing when no word fits in *overlap* characters.
            Must be smaller than *chunk_size*.

    Returns:
        Ordered list of segment strings (empty for empty input).

    Raises:
        ValueError: If the size/overlap pair is invalid.
    """
    return [text[start:end] for start, end in iter_chunk_spans(text, chunk_size, overlap)]

