"""
Newsbot - Retrieval Filter & Citation Deduplication
====================================================
Two pure policies applied to the ranked candidates returned by the
vector store.

``filter_candidates``
    Precision first: keep every candidate scoring ``>= min_score``.
    Availability second: if nothing clears the bar, fall back to the top
    ``fallback_count`` candidates in their original (descending-score)
    order.  A non-empty input therefore never yields an empty context.

``dedupe_citations``
    Collapse chunks from the same article into one citation per ``url``,
    keeping the highest score seen.  Output follows first-occurrence
    order, not score order.
"""

from __future__ import annotations

from collections.abc import Sequence

from newsbot.src.core.models import Candidate, Citation
from newsbot.src.utils.logger import get_logger

logger = get_logger(__name__)


def filter_candidates(candidates: Sequence[Candidate], min_score: float = 0.6, fallback_count: int = 3) -> list[Candidate]:
    """Select which candidates become generation context."""
    kept = [c for c in candidates if c.score >= min_score]
    if kept:
        logger.debug("[FILTER] %d/%d candidate(s) at or above %.2f.", len(kept), len(candidates), min_score)
        return kept

    fallback = list(candidates[:fallback_count])
    if candidates:
        logger.info("[FILTER] No candidate reached %.2f, falling back to top %d.", min_score, len(fallback))
    return fallback


def dedupe_citations(results: Sequence[Candidate]) -> list[Citation]:
    """One citation per distinct ``url``; a later entry wins only on a strictly higher score."""
    by_url: dict[str, Citation] = {}
    for result in results:
        current = by_url.get(result.url)
        if current is None or result.score > current.score:
            # Dict assignment keeps the key's original insertion slot
            by_url[result.url] = Citation(title=result.title, url=result.url, score=result.score)
    return list(by_url.values())
