"""
Newsbot - NewsVectorStore
==========================
OOP wrapper around LanceDB providing the collection-level operations
the pipelines need:
  • ``ensure_collection``: create a table with a fixed-dimension schema
  • ``upsert``:            insert-or-replace points keyed by ``id``
  • ``search``:            cosine similarity search, best match first
  • ``delete_collection``: drop a table (missing table is a no-op)

Design decisions:
  • **Singleton DB connection**: ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per path to avoid file-lock issues.
  • **Vectors in, vectors out**: embedding happens in the pipelines,
    so the store never talks to the model service.
  • **Similarity, not distance**: search reports ``score = 1 - cosine
    distance`` clamped to [0, 1], the scale the retrieval filter uses.

Usage:
    from newsbot.src.database.vector_store import NewsVectorStore
    store = NewsVectorStore()
    store.ensure_collection("news", dim=768)
    store.upsert("news", [{"id": "...", "vector": [...], "payload": {...}}])
    hits = store.search("news", query_vector, k=8)
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from pathlib import Path
from typing import TypedDict

import lancedb
import pyarrow as pa

from newsbot.config.settings import settings
from newsbot.src.utils.logger import get_logger

logger = get_logger(__name__)


# ── Type Aliases ──────────────────────────────────────────────────────
class VectorPoint(TypedDict):
    id: str
    vector: list[float]
    payload: dict[str, str]


SearchHit = dict[str, str | float]

_PAYLOAD_FIELDS = ("url", "title", "text")

# ── Constants ──────────────────────────────────────────────────────────
_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """
    Return a **singleton** ``lancedb.DBConnection`` for *db_path*.

    Thread-safe via ``_DB_LOCK``.
    """
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", db_path)
                Path(db_path).mkdir(parents=True, exist_ok=True)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


def news_schema(dim: int) -> pa.Schema:
    """Arrow schema for a news collection with *dim*-wide vectors."""
    return pa.schema([
        pa.field("id", pa.utf8()),
        pa.field("vector", pa.list_(pa.float32(), dim)),
        pa.field("url", pa.utf8()),
        pa.field("title", pa.utf8()),
        pa.field("text", pa.utf8()),
    ])


def _to_score(distance: float) -> float:
    return min(max(1.0 - float(distance), 0.0), 1.0)


class NewsVectorStore:
    """
    Collection-oriented abstraction over a LanceDB database.

    Parameters
    ----------
    db_path
        Override the database directory.  Defaults to ``settings.LANCEDB_PATH``.
    """

    __slots__ = ("_db_path", "db")

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        try:
            self.db: lancedb.DBConnection = _get_connection(self._db_path)
        except OSError as exc:
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise


    def has_collection(self, name: str) -> bool:
        return name in self.db.table_names()


    def ensure_collection(self, name: str, dim: int) -> None:
        """Create collection *name* with *dim*-wide vectors unless it already exists."""
        if self.has_collection(name):
            logger.info("Collection '%s' already exists (%d rows).", name, self.count(name))
            return
        self.db.create_table(name, schema=news_schema(dim))
        logger.info("Created collection '%s' (dim=%d, cosine).", name, dim)


    def upsert(self, name: str, points: Sequence[VectorPoint]) -> int:
        """
        Insert or replace *points* by ``id``.

        Returns
        -------
        int
            Number of points written.
        """
        if not points:
            return 0

        records = [
            {"id": p["id"], "vector": p["vector"], **{f: str(p["payload"].get(f, "")) for f in _PAYLOAD_FIELDS}}
            for p in points
        ]

        table = self.db.open_table(name)
        try:
            table.merge_insert("id").when_matched_update_all().when_not_matched_insert_all().execute(records)
        except OSError as exc:
            logger.error("Failed to write records to LanceDB: %s", exc)
            raise

        logger.info("Upserted %d point(s) into '%s'.", len(records), name)
        return len(records)


    def search(self, name: str, vector: Sequence[float], k: int = 5) -> list[SearchHit]:
        """
        Cosine similarity search.

        Returns
        -------
        list[SearchHit]
            ``{"score", "url", "title", "text"}`` dicts, highest score first.
        """
        table = self.db.open_table(name)
        rows = table.search(list(vector)).distance_type("cosine").limit(k).to_list()

        hits: list[SearchHit] = [
            {"score": _to_score(row["_distance"]), **{f: row.get(f, "") for f in _PAYLOAD_FIELDS}}
            for row in rows
        ]
        hits.sort(key=lambda h: h["score"], reverse=True)
        logger.debug("Search on '%s' returned %d hit(s).", name, len(hits))
        return hits


    def delete_collection(self, name: str) -> None:
        """Drop collection *name*; a missing collection is not an error."""
        if not self.has_collection(name):
            logger.info("Collection '%s' does not exist, nothing to drop.", name)
            return
        try:
            self.db.drop_table(name)
            logger.info("Dropped collection '%s'.", name)
        except OSError as exc:
            logger.error("Filesystem error dropping '%s': %s", name, exc)
            raise


    def count(self, name: str) -> int:
        """Return the number of rows in collection *name* (0 if missing)."""
        if not self.has_collection(name):
            return 0
        return self.db.open_table(name).count_rows()


    def __repr__(self) -> str:
        return f"NewsVectorStore(db='{self._db_path}')"
