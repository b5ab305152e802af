"""
Newsbot - Centralized Configuration
====================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``
  with a clear error message.
- ``MONGO_URI`` is an *optional* ``SecretStr``.  Its presence is the single
  switch that selects the durable MongoDB session store; when absent the
  in-process store is used instead.

Paths
-----
All filesystem paths are ``Path.resolve()``-d at class level so they
work identically on Windows, WSL, and Linux.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini embeddings + generation).
    MONGO_URI : SecretStr | None
        MongoDB connection string.  Optional; selects the durable
        session backend when set.
    SESSION_TTL_SECONDS : int
        Idle lifetime of a chat session, measured from its last write.
    CHUNK_SIZE / CHUNK_OVERLAP / MAX_CHUNKS : int
        Sentence-aligned chunking parameters for ingestion.
    MIN_SCORE / FALLBACK_COUNT : float / int
        Retrieval filter threshold and the no-hit fallback size.
    RETRY_MAX_ATTEMPTS / RETRY_BASE_DELAY : int / float
        Exponential backoff policy for upstream calls.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    PORT: int = 3000

    # ── API Keys (REQUIRED, no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── MongoDB (optional, durable session store) ─────────────────────
    MONGO_URI: SecretStr | None = None
    MONGO_DB_NAME: str = "newsbot"
    MONGO_COLLECTION: str = "sessions"
    SESSION_TTL_SECONDS: int = 60 * 60 * 24

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    LLM_MODEL: str = "gemini-1.5-flash"
    LLM_TEMPERATURE: float = 0.2

    # ── LanceDB ────────────────────────────────────────────────────────
    COLLECTION_NAME: str = "news"

    # ── Ingestion Parameters ───────────────────────────────────────────
    CHUNK_SIZE: int = 1500
    CHUNK_OVERLAP: int = 150
    MAX_CHUNKS: int = 30
    MIN_DOCUMENT_CHARS: int = 500
    EMBED_BATCH_SIZE: int = 4
    EMBED_BATCH_DELAY: float = 0.5
    URL_DELAY: float = 0.75
    SCRAPE_TIMEOUT: float = 30.0

    # ── Retrieval ──────────────────────────────────────────────────────
    SEARCH_LIMIT: int = 8
    MIN_SCORE: float = 0.6
    FALLBACK_COUNT: int = 3
    HISTORY_WINDOW: int = 6

    # ── Upstream Retry Policy ──────────────────────────────────────────
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY: float = 1.0

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("SESSION_TTL_SECONDS", "MAX_CHUNKS", "EMBED_BATCH_SIZE", "SEARCH_LIMIT", "RETRY_MAX_ATTEMPTS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be ≥ 1, got {v}")
        return v


    @field_validator("HISTORY_WINDOW")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"must be ≥ 0, got {v}")
        return v


    @field_validator("MIN_SCORE")
    @classmethod
    def _score_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"MIN_SCORE must be within [0, 1], got {v}")
        return v


    @model_validator(mode="after")
    def _overlap_below_size(self) -> "Settings":
        if self.CHUNK_OVERLAP >= self.CHUNK_SIZE:
            raise ValueError(f"CHUNK_OVERLAP ({self.CHUNK_OVERLAP}) must be smaller than CHUNK_SIZE ({self.CHUNK_SIZE})")
        return self

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from newsbot.config.settings import settings
settings = Settings()
