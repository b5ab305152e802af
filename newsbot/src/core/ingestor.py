"""
Newsbot - IngestionPipeline
============================
Batch pipeline that scrapes news articles, chunks them on sentence
boundaries, embeds the chunks and persists them into the
``NewsVectorStore``.

Key design decisions:
    • **Dependency Injection** – receives the vector store, embedding
      service and scraper.
    • **Sequential URLs** – articles are processed one at a time to stay
      inside third-party rate limits; a short pause follows each article.
    • **Paced embedding** – chunks are embedded in small groups with a
      fixed delay after each group; every group call goes through
      ``with_retry``.
    • **Partial-failure tolerant** – an error on one URL is logged and
      the batch moves on.  The run reports ``processed/total``.
    • **Backup log** – every stored chunk is also appended to a local
      JSONL file for debugging and re-indexing.

Usage:
    from newsbot.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(vector_store, embeddings, scraper)
    await pipeline.prepare(fresh=True)
    summary = await pipeline.run(urls)
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any, Protocol

from newsbot.config.settings import Settings, settings
from newsbot.src.core.chunker import chunk_text
from newsbot.src.core.embeddings import EmbeddingService
from newsbot.src.core.models import Chunk, Document
from newsbot.src.core.resilience import with_retry
from newsbot.src.database.vector_store import NewsVectorStore, VectorPoint
from newsbot.src.utils.logger import get_logger

logger = get_logger(__name__)


class Scraper(Protocol):
    async def fetch_document(self, url: str) -> Document: ...


def load_urls(path: Path) -> list[str]:
    """Read one URL per line, dropping blanks and duplicates (first occurrence wins)."""
    lines = (line.strip() for line in path.read_text(encoding="utf-8").splitlines())
    return list(dict.fromkeys(line for line in lines if line))


def _groups(items: Sequence[str], size: int) -> list[Sequence[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class IngestionPipeline:
    """
    End-to-end article ingestion: fetch → chunk → embed → store → back up.

    Parameters
    ----------
    vector_store
        An initialised ``NewsVectorStore`` instance (injected).
    embeddings
        ``EmbeddingService`` for chunk and probe embeddings.
    scraper
        Anything exposing ``async fetch_document(url) -> Document``.
    backup_path
        Override the JSONL backup file.  Defaults to ``DATA_DIR/news.jsonl``.
    config
        Settings source for chunking, pacing and retry parameters.
    sleep
        Awaitable sleep used for pacing delays.
    """

    def __init__(self, vector_store: NewsVectorStore, embeddings: EmbeddingService, scraper: Scraper, backup_path: Path | None = None, config: Settings = settings, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        self._store = vector_store
        self._embeddings = embeddings
        self._scraper = scraper
        self._config = config
        self._collection = config.COLLECTION_NAME
        self._backup_path: Path = backup_path or config.DATA_DIR / "news.jsonl"
        self._sleep = sleep

    # ══════════════════════════════════════════════════════════════════
    #  SETUP
    # ══════════════════════════════════════════════════════════════════

    async def prepare(self, fresh: bool = True) -> int:
        """
        Probe the embedding width and make sure the collection exists.

        With ``fresh=True`` the collection is dropped first and the
        backup log truncated, so the run starts from an empty corpus.

        Returns
        -------
        int
            The embedding dimension.
        """
        probe = await with_retry(lambda: self._embeddings.embed("ping"), self._config.RETRY_MAX_ATTEMPTS, self._config.RETRY_BASE_DELAY)
        dim = len(probe)
        logger.info("[INGEST] Embedding dimension: %d", dim)

        if fresh:
            logger.info("[INGEST] Clearing collection '%s' for fresh ingestion.", self._collection)
            await asyncio.to_thread(self._store.delete_collection, self._collection)

        await asyncio.to_thread(self._store.ensure_collection, self._collection, dim)

        self._backup_path.parent.mkdir(parents=True, exist_ok=True)
        if fresh or not self._backup_path.exists():
            self._backup_path.write_text("", encoding="utf-8")
        return dim

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    async def run(self, urls: Sequence[str]) -> dict[str, Any]:
        """
        Ingest *urls* one after another.

        Returns
        -------
        dict
            Execution summary with keys ``total_urls``, ``processed``,
            ``skipped``, ``failed``, ``total_chunks``, ``elapsed_seconds``.
        """
        t_start = time.perf_counter()
        total = len(urls)
        processed = skipped = failed = total_chunks = 0

        for idx, url in enumerate(urls, 1):
            logger.info("[INGEST] [%d/%d] Fetching: %s", idx, total, url)
            try:
                added = await self._ingest_url(url)
            except Exception:
                failed += 1
                logger.exception("[INGEST] Error for URL: %s", url)
                continue

            if added is None:
                skipped += 1
                continue

            processed += 1
            total_chunks += added
            await self._sleep(self._config.URL_DELAY)

        elapsed = time.perf_counter() - t_start
        logger.info("[INGEST] Done. Ingested %d/%d (%d chunk(s), %d skipped, %d failed) in %.2fs. Backup: %s", processed, total, total_chunks, skipped, failed, elapsed, self._backup_path)
        return self._summary(total, processed, skipped, failed, total_chunks, elapsed)

    # ══════════════════════════════════════════════════════════════════
    #  PER-URL PROCESSING
    # ══════════════════════════════════════════════════════════════════

    async def _ingest_url(self, url: str) -> int | None:
        """
        Fetch, chunk, embed and store one article.

        Returns
        -------
        int | None
            Number of chunks stored, or ``None`` when the article was
            skipped as too short.
        """
        cfg = self._config
        doc = await self._scraper.fetch_document(url)
        logger.info("[INGEST]   Scraped: title=%r, text_length=%d", doc.title, len(doc.text))

        if len(doc.text) < cfg.MIN_DOCUMENT_CHARS:
            logger.info("[INGEST]   Skip (too short): %s", url)
            return None

        pieces = chunk_text(doc.text, cfg.CHUNK_SIZE, cfg.CHUNK_OVERLAP, cfg.MAX_CHUNKS)
        if not pieces:
            logger.info("[INGEST]   Skip (no substantive chunks): %s", url)
            return None
        chunks = [Chunk(source_url=doc.url, source_title=doc.title, text=piece) for piece in pieces]
        logger.info("[INGEST]   Text length: %d, chunks: %d", len(doc.text), len(chunks))

        vectors = await self._embed_paced([c.text for c in chunks])

        points: list[VectorPoint] = [{"id": c.id, "vector": v, "payload": c.payload()} for c, v in zip(chunks, vectors)]
        await asyncio.to_thread(self._store.upsert, self._collection, points)
        self._append_backup(chunks)

        logger.info("[INGEST]   Ingested: %s (+%d chunks)", doc.title, len(points))
        return len(points)


    async def _embed_paced(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in groups of ``EMBED_BATCH_SIZE`` with a pause after each group."""
        cfg = self._config
        vectors: list[list[float]] = []
        for group in _groups(texts, cfg.EMBED_BATCH_SIZE):
            logger.debug("[INGEST]   Embedding group of %d chunk(s)", len(group))
            vectors.extend(await with_retry(lambda: self._embeddings.embed_many(group), cfg.RETRY_MAX_ATTEMPTS, cfg.RETRY_BASE_DELAY))
            await self._sleep(cfg.EMBED_BATCH_DELAY)
        return vectors


    def _append_backup(self, chunks: Sequence[Chunk]) -> None:
        self._backup_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._backup_path, "a", encoding="utf-8") as fh:
            for chunk in chunks:
                fh.write(json.dumps({"id": chunk.id, **chunk.payload()}, ensure_ascii=False) + "\n")

    # ── Summary helper ─────────────────────────────────────────────────

    @staticmethod
    def _summary(total: int, processed: int, skipped: int, failed: int, chunks: int, elapsed: float) -> dict[str, Any]:
        return {
            "total_urls": total,
            "processed": processed,
            "skipped": skipped,
            "failed": failed,
            "total_chunks": chunks,
            "elapsed_seconds": round(elapsed, 2),
        }
