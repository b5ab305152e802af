"""
Newsbot - Corpus Setup & Ingestion Script
==========================================
CLI entry point that orchestrates:
    1. Validate settings (fail-fast on a missing ``GOOGLE_API_KEY``).
    2. Initialise the embedder and ``NewsVectorStore``.
    3. Probe the embedding width, reset and (re)create the collection.
    4. Run the ``IngestionPipeline`` over ``data/urls.txt``.
    5. Print a structured execution summary with timing breakdown.

Flags:
    --urls PATH   Read URLs from PATH instead of ``DATA_DIR/urls.txt``.
    --keep        Keep the existing collection and backup log (append).
    --drop-only   Drop the collection and exit immediately.

Usage:
    python -m newsbot.scripts.setup_db
    python -m newsbot.scripts.setup_db --keep
    python -m newsbot.scripts.setup_db --drop-only
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

# Export .env into the process environment before settings are imported
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Newsbot: scrape news URLs and build the vector corpus.")
    parser.add_argument("--urls", type=Path, default=None, help="File with one article URL per line (default: DATA_DIR/urls.txt).")
    parser.add_argument("--keep", action="store_true", default=False, help="Keep the existing collection and backup log instead of starting fresh.")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the collection and exit (no ingestion).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

async def _run(args: argparse.Namespace) -> int:
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from newsbot.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error, check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    # Logger depends on settings, so it is imported only now
    from newsbot.src.utils.logger import get_logger, quiet_third_party
    logger = get_logger(__name__)
    quiet_third_party()
    logger.info("Settings loaded in %.1fms", settings_ms)

    urls_file: Path = args.urls or settings.DATA_DIR / "urls.txt"
    if not args.drop_only and not urls_file.exists():
        print(f"\n[FATAL] {urls_file} not found. Create it with ~30–50 article URLs (one per line).\n")
        return 1

    _print_header(settings, urls_file)

    from newsbot.src.core.embeddings import EmbeddingService, build_embedder
    from newsbot.src.core.ingestor import IngestionPipeline, load_urls
    from newsbot.src.database.vector_store import NewsVectorStore
    from newsbot.src.utils.scraper import ArticleScraper

    # ── 1. Initialise embedder + vector store (timed) ──────────────────
    t_init = time.perf_counter()
    store = NewsVectorStore()
    if args.drop_only:
        store.delete_collection(settings.COLLECTION_NAME)
        logger.info("--drop-only: Collection dropped. Exiting.")
        return 0

    embeddings = EmbeddingService(build_embedder(settings))
    scraper = ArticleScraper(timeout=settings.SCRAPE_TIMEOUT, min_chars=settings.MIN_DOCUMENT_CHARS)
    init_ms = (time.perf_counter() - t_init) * 1000

    urls = load_urls(urls_file)
    logger.info("Loaded %d unique URL(s) from %s", len(urls), urls_file)

    # ── 2. Prepare collection + run pipeline ───────────────────────────
    pipeline = IngestionPipeline(vector_store=store, embeddings=embeddings, scraper=scraper)
    try:
        await pipeline.prepare(fresh=not args.keep)
        summary = await pipeline.run(urls)
    finally:
        await scraper.aclose()

    # ── 3. Print execution summary ─────────────────────────────────────
    elapsed = time.perf_counter() - t_start
    _print_footer(summary, settings.COLLECTION_NAME, store.count(settings.COLLECTION_NAME), elapsed, settings_ms, init_ms)
    return 0


def main(argv: list[str] | None = None) -> None:
    sys.exit(asyncio.run(_run(_parse_args(argv))))


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, urls_file: Path) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()  # type: ignore[attr-defined]
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    mongo_uri = settings.MONGO_URI  # type: ignore[attr-defined]
    if mongo_uri is None:
        mongo_masked = "(not set, in-memory sessions)"
    else:
        raw = mongo_uri.get_secret_value()
        mongo_masked = raw.split("@")[-1] if "@" in raw else raw

    print()
    print("=" * 60)
    print("  NEWSBOT | Corpus Setup & Ingestion")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                    # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")        # type: ignore[attr-defined]
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")           # type: ignore[attr-defined]
    print(f"  Collection   : {settings.COLLECTION_NAME}")        # type: ignore[attr-defined]
    print(f"  MongoDB      : {mongo_masked}")
    print(f"  URL list     : {urls_file}")
    print(f"  Chunking     : {settings.CHUNK_SIZE} chars, overlap {settings.CHUNK_OVERLAP}, max {settings.MAX_CHUNKS}")  # type: ignore[attr-defined]
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(summary: dict, collection: str, rows: int, elapsed: float, settings_ms: float, init_ms: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Articles ingested    : {summary['processed']}/{summary['total_urls']}")
    print(f"  Skipped (too short)  : {summary['skipped']}")
    print(f"  Failed               : {summary['failed']}")
    print(f"  Chunks stored        : {summary['total_chunks']}")
    print(f"  Rows in '{collection}'".ljust(23) + f": {rows}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  Client init          : {init_ms:>8.1f}ms")
    print(f"  Pipeline             : {summary['elapsed_seconds']:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
