"""
Newsbot - Embedding Service
============================
Thin async adapter over a LangChain ``Embeddings`` model (Gemini by
default).  Its only job beyond delegation is error translation: every
SDK failure leaves as ``UpstreamTransient`` (timeouts, 429/5xx,
overload) or ``UpstreamPermanent`` (auth, bad request), so callers can
hand the call to ``with_retry`` without knowing the SDK.
"""

from __future__ import annotations

from collections.abc import Sequence

from langchain_core.embeddings import Embeddings

from newsbot.config.settings import Settings, settings
from newsbot.src.core.errors import UpstreamPermanent
from newsbot.src.core.resilience import to_upstream_error
from newsbot.src.utils.logger import get_logger

logger = get_logger(__name__)


def build_embedder(config: Settings = settings) -> Embeddings:
    """Create the Gemini embedding model configured in *config*."""
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    logger.info("Initialising embedding model: %s", config.EMBEDDING_MODEL)
    return GoogleGenerativeAIEmbeddings(model=config.EMBEDDING_MODEL, google_api_key=config.GOOGLE_API_KEY.get_secret_value())


class EmbeddingService:
    """``embed`` / ``embed_many`` with upstream-classified failures."""

    __slots__ = ("_embedder",)

    def __init__(self, embedder: Embeddings) -> None:
        self._embedder = embedder


    async def embed(self, text: str) -> list[float]:
        try:
            return await self._embedder.aembed_query(text)
        except Exception as exc:
            logger.error("[EMBED] Query embedding failed: %s", exc)
            raise to_upstream_error(exc, "embedding") from exc


    async def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts*, returning vectors in the same order."""
        batch = list(texts)
        try:
            vectors = await self._embedder.aembed_documents(batch)
        except Exception as exc:
            logger.error("[EMBED] Batch of %d failed: %s", len(batch), exc)
            raise to_upstream_error(exc, "embedding") from exc

        if len(vectors) != len(batch):
            raise UpstreamPermanent(f"embedding returned {len(vectors)} vectors for {len(batch)} texts")
        return vectors
