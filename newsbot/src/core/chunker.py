"""
Newsbot - Sentence-Aligned Chunker
===================================
Splits article text into overlapping windows sized for the embedding
model and the generation context budget.

Algorithm (greedy, single pass, no backtracking):
    1. Take a window of up to ``max_chars`` characters at cursor ``i``.
    2. If the window ends before the text does, pull the cut back to the
       last ``.``/``!``/``?`` inside the window, but only when that
       boundary lies at least 70% into the window.  Otherwise hard-cut.
    3. Trim; drop slices shorter than ``MIN_CHUNK_CHARS`` (nav crumbs,
       bylines and similar noise).
    4. Move the cursor to ``end - overlap`` so neighbours share context.
    5. Stop at the end of the text, or after ``max_chunks`` windows;
       very long articles are truncated rather than fully chunked.

Usage:
    from newsbot.src.core.chunker import chunk_text
    pieces = chunk_text(article.text)
"""

from __future__ import annotations

from newsbot.src.utils.logger import get_logger

logger = get_logger(__name__)

MIN_CHUNK_CHARS = 100
SENTENCE_TERMINATORS = (".", "!", "?")
BOUNDARY_RATIO = 0.7


def _last_sentence_end(text: str, start: int, end: int) -> int:
    """Index of the last sentence terminator in ``text[start:end]``, or -1."""
    return max(text.rfind(ch, start, end) for ch in SENTENCE_TERMINATORS)


def chunk_text(text: str, max_chars: int = 1500, overlap: int = 150, max_chunks: int = 30) -> list[str]:
    """
    Split *text* into sentence-aligned, overlapping chunks.

    Args:
        text:       Cleaned article text.
        max_chars:  Upper bound on a chunk's length.
        overlap:    Characters shared by consecutive chunks.
        max_chunks: Hard cap on windows scanned per document.

    Returns:
        Chunks in document order.  May be empty when nothing clears the
        ``MIN_CHUNK_CHARS`` floor.

    Raises:
        ValueError: If ``overlap`` is not smaller than ``max_chars``.
    """
    if overlap < 0 or overlap >= max_chars:
        raise ValueError(f"overlap must be in [0, max_chars), got overlap={overlap}, max_chars={max_chars}")

    chunks: list[str] = []
    length = len(text)
    i = 0
    windows = 0

    while i < length and windows < max_chunks:
        end = min(length, i + max_chars)

        if end < length:
            boundary = _last_sentence_end(text, i, end)
            if boundary >= i + max_chars * BOUNDARY_RATIO:
                end = boundary + 1

        piece = text[i:end].strip()
        if len(piece) >= MIN_CHUNK_CHARS:
            chunks.append(piece)
        windows += 1

        # The remainder is already covered once the window reaches the end
        if end >= length:
            break
        # A sentence cut can land inside the overlap when overlap is large
        i = end - overlap if end - overlap > i else end

    if windows >= max_chunks and i < length:
        logger.debug("Chunk cap hit (%d): %d trailing chars not chunked.", max_chunks, length - i)

    logger.debug("Created %d chunk(s) from text of length %d.", len(chunks), length)
    return chunks
