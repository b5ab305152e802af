"""Pytest fixtures and fakes for newsbot tests."""

import copy
import os

# The settings singleton is built at import time and needs an API key
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")

from pathlib import Path
from types import SimpleNamespace

import pytest

from newsbot.config.settings import Settings
from newsbot.src.core.models import Document


class FakeEmbeddingService:
    """Deterministic stand-in for ``EmbeddingService``."""

    def __init__(self, dim: int = 4, failures: list[Exception] | None = None):
        self.dim = dim
        self.failures = list(failures or [])
        self.queries: list[str] = []
        self.batches: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        return [float(len(text) % 7 + 1)] + [0.5] * (self.dim - 1)

    async def embed(self, text: str) -> list[float]:
        self.queries.append(text)
        if self.failures:
            raise self.failures.pop(0)
        return self._vector(text)

    async def embed_many(self, texts):
        batch = list(texts)
        self.batches.append(batch)
        if self.failures:
            raise self.failures.pop(0)
        return [self._vector(t) for t in batch]


class FakeVectorStore:
    """Records calls; ``search`` returns the preset hits."""

    def __init__(self, hits: list[dict] | None = None):
        self.hits = list(hits or [])
        self.calls: list[tuple] = []
        self.points: list[dict] = []

    def ensure_collection(self, name: str, dim: int) -> None:
        self.calls.append(("ensure", name, dim))

    def delete_collection(self, name: str) -> None:
        self.calls.append(("delete", name))

    def upsert(self, name: str, points) -> int:
        self.calls.append(("upsert", name, len(points)))
        self.points.extend(points)
        return len(points)

    def search(self, name: str, vector, k: int = 5) -> list[dict]:
        self.calls.append(("search", name, k))
        return self.hits[:k]

    def count(self, name: str) -> int:
        return len(self.points)


class FakeGenerator:
    """Returns ``reply`` after raising any queued ``failures`` in order."""

    def __init__(self, reply: str = "Here is the news [1].", failures: list[Exception] | None = None):
        self.reply = reply
        self.failures = list(failures or [])
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.failures:
            raise self.failures.pop(0)
        return self.reply


class FakeScraper:
    """Maps URL → ``Document`` or exception."""

    def __init__(self, pages: dict):
        self.pages = pages
        self.fetched: list[str] = []

    async def fetch_document(self, url: str) -> Document:
        self.fetched.append(url)
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return page


class StatusError(Exception):
    """SDK-style error carrying an HTTP status in ``code``."""

    def __init__(self, message: str, code: int):
        super().__init__(message)
        self.code = code


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, with no pacing delays."""
    return Settings(
        _env_file=None,
        GOOGLE_API_KEY="test-google-key",
        MONGO_URI=None,
        DATA_DIR=tmp_path,
        LANCEDB_PATH=tmp_path / "lancedb",
        RETRY_BASE_DELAY=0.0,
        EMBED_BATCH_DELAY=0.0,
        URL_DELAY=0.0,
    )


@pytest.fixture
def article_text() -> str:
    """About 4000 characters of sentence-punctuated prose."""
    sentences = [
        f"Sentence number {i} reports on the {i % 5}th round of talks between the delegations."
        for i in range(50)
    ]
    return " ".join(sentences)


# ── Fake motor collection ─────────────────────────────────────────────


def _matches(doc: dict, query: dict) -> bool:
    for key, expected in query.items():
        value = doc.get(key)
        if isinstance(expected, dict):
            for op, operand in expected.items():
                if value is None:
                    return False
                if op == "$gt" and not value > operand:
                    return False
                if op == "$lte" and not value <= operand:
                    return False
        elif value != expected:
            return False
    return True


class FakeCollection:
    """Implements the handful of motor collection calls the store makes."""

    def __init__(self):
        self.docs: list[dict] = []
        self.indexes: list[tuple] = []
        self.error: Exception | None = None
        self.update_errors: list[Exception] = []

    def _check(self):
        if self.error is not None:
            raise self.error

    async def create_index(self, key, **kwargs):
        self._check()
        self.indexes.append((key, kwargs))
        return f"{key}_1"

    async def delete_one(self, query):
        self._check()
        for doc in self.docs:
            if _matches(doc, query):
                self.docs.remove(doc)
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def update_one(self, query, update, upsert=False):
        self._check()
        if self.update_errors:
            raise self.update_errors.pop(0)
        doc = next((d for d in self.docs if _matches(d, query)), None)
        if doc is None:
            if not upsert:
                return SimpleNamespace(matched_count=0)
            doc = dict(query)
            doc.update(update.get("$setOnInsert", {}))
            self.docs.append(doc)
        doc.update(update.get("$set", {}))
        for field, value in update.get("$push", {}).items():
            items = value["$each"] if isinstance(value, dict) and "$each" in value else [value]
            doc.setdefault(field, []).extend(copy.deepcopy(items))
        return SimpleNamespace(matched_count=1)

    async def find_one(self, query, projection=None):
        self._check()
        for doc in self.docs:
            if _matches(doc, query):
                if projection is None:
                    return copy.deepcopy(doc)
                return {key: copy.deepcopy(doc[key]) for key in projection if key in doc}
        return None


class FakeMotorClient:
    def __init__(self):
        self.collection = FakeCollection()
        self.closed = False
        self.opened: list[tuple[str, str]] = []

    def __getitem__(self, db_name):
        client = self

        class _Database:
            def __getitem__(self, collection_name):
                client.opened.append((db_name, collection_name))
                return client.collection

        return _Database()

    def close(self):
        self.closed = True


@pytest.fixture
def mongo_client() -> FakeMotorClient:
    return FakeMotorClient()
