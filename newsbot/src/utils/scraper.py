"""
Newsbot - Article Scraper
==========================
Fetches a news page with ``httpx`` and extracts its main body with
BeautifulSoup.  Extraction is deliberately simple: strip obvious page
chrome, try a handful of article-body selectors, keep the longest text.

Short or empty text is returned as-is; the ingestion pipeline treats
it as a skip condition, not an error.  HTTP and transport errors
propagate.
"""

from __future__ import annotations

import httpx
from bs4 import BeautifulSoup

from newsbot.src.core.models import Document
from newsbot.src.utils.logger import get_logger
from newsbot.src.utils.text_utils import amp_variant, clean_text

logger = get_logger(__name__)

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124 Safari/537.36",
    "Accept-Language": "en-US,en;q=0.9",
}

_NOISE_SELECTOR = "script, style, nav, header, footer, .advertisement, .ads, .sidebar, .menu, .navigation, .social-share, .comments, .related-articles"

_BODY_SELECTORS = (
    "[itemprop='articleBody']",
    "article .story-content, article .content",
    ".article__content, .story-content, .content__article-body, .post-content, .entry-content",
    "article",
    ".content, .main-content",
    "main",
)


def extract_document(url: str, html: str) -> Document:
    """Parse *html* into a ``Document`` (title + cleaned body text)."""
    soup = BeautifulSoup(html, "html.parser")

    og_title = soup.find("meta", attrs={"property": "og:title"})
    h1 = soup.find("h1")
    title = (
        (og_title.get("content", "") if og_title else "")
        or (h1.get_text(strip=True) if h1 else "")
        or (soup.title.get_text(strip=True) if soup.title else "")
    )

    for node in soup.select(_NOISE_SELECTOR):
        node.decompose()

    longest = ""
    for selector in _BODY_SELECTORS:
        text = " ".join(node.get_text(" ", strip=True) for node in soup.select(selector)).strip()
        if len(text) > len(longest):
            longest = text

    return Document(url=url, title=str(title).strip(), text=clean_text(longest))


class ArticleScraper:
    """
    Async scraper with an AMP fallback for thin pages.

    Parameters
    ----------
    timeout
        Per-request timeout in seconds.
    min_chars
        Below this body length the ``/amp`` variant is tried as well.
    client
        Optional pre-built ``httpx.AsyncClient`` (tests inject a mock
        transport here).
    """

    __slots__ = ("_client", "_min_chars")

    def __init__(self, timeout: float = 30.0, min_chars: int = 500, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=_HEADERS, follow_redirects=True)
        self._min_chars = min_chars


    async def _fetch_once(self, url: str) -> Document:
        response = await self._client.get(url)
        response.raise_for_status()
        return extract_document(url, response.text)


    async def fetch_document(self, url: str) -> Document:
        doc = await self._fetch_once(url)
        if len(doc.text) >= self._min_chars:
            return doc

        amp_url = amp_variant(url)
        if amp_url == url:
            return doc
        try:
            amp_doc = await self._fetch_once(amp_url)
        except httpx.HTTPError as exc:
            logger.debug("AMP fallback failed for %s: %s", url, exc)
            return doc

        if len(amp_doc.text) > len(doc.text):
            logger.debug("Using AMP variant for %s (%d chars).", url, len(amp_doc.text))
            return Document(url=url, title=amp_doc.title or doc.title, text=amp_doc.text)
        return doc


    async def aclose(self) -> None:
        await self._client.aclose()
