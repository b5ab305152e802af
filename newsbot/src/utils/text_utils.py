"""
Newsbot - Text Utilities
=========================
Helper functions for text cleaning and normalisation of scraped
article bodies.

These utilities are consumed by the scraper and should remain
stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata

# Control / zero-width characters (BOM, soft hyphen, directional marks).
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")

# Anything that is not a word char, whitespace or basic punctuation.
_SYMBOL_RE = re.compile(r"[^\w\s.,!?;:()\-'\"]")

# Call-to-action words news sites scatter through article bodies.
_SITE_NOISE_RE = re.compile(r"\b(Subscribe|Follow us|Download|Share|Comment|Rate|Read more|View all|Latest news|Trending|Popular)\b", re.IGNORECASE)

_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """
    Sanitise scraped article text for chunking and embedding.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Replace symbols outside basic punctuation with spaces.
        4. Drop common site call-to-action words.
        5. Collapse all whitespace runs into single spaces.

    Args:
        text: Raw text extracted from an HTML page.

    Returns:
        A single-line, cleaned string.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = _SYMBOL_RE.sub(" ", text)
    text = _SITE_NOISE_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def amp_variant(url: str) -> str:
    """Naive AMP URL for *url*; returns *url* unchanged if it already is one."""
    if "/amp" in url:
        return url
    return url.rstrip("/") + "/amp"
