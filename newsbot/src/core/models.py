"""
Newsbot - Data Model
=====================
Pydantic models shared by ingestion, retrieval and the chat pipeline.

``Document`` and ``Chunk`` belong to the ingestion side, ``Candidate``,
``ContextDoc`` and ``Citation`` to retrieval, ``ConversationTurn`` to the
session store.  ``Chunk`` and ``ConversationTurn`` are frozen: once
created they are never mutated.
"""

from __future__ import annotations

import threading
import time
import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


# ── Monotonic millisecond clock ───────────────────────────────────────
# Timestamps handed out by ``now_ms`` strictly increase across the
# process, even when two turns are written within the same millisecond.

_CLOCK_LOCK = threading.Lock()
_last_ms = 0


def now_ms() -> int:
    """Return the current epoch time in ms, strictly greater than the previous call."""
    global _last_ms
    with _CLOCK_LOCK:
        current = time.time_ns() // 1_000_000
        _last_ms = max(current, _last_ms + 1)
        return _last_ms


# ══════════════════════════════════════════════════════════════════════
#  INGESTION
# ══════════════════════════════════════════════════════════════════════


class Document(BaseModel):
    """A scraped article.  Identified by ``url`` alone."""

    url: str
    title: str = ""
    text: str = ""


class Chunk(BaseModel):
    """A bounded slice of one ``Document``, ready for embedding."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source_url: str
    source_title: str
    text: str

    def payload(self) -> dict[str, str]:
        """Vector-store payload (and backup-log record) for this chunk."""
        return {"url": self.source_url, "title": self.source_title, "text": self.text}


# ══════════════════════════════════════════════════════════════════════
#  RETRIEVAL
# ══════════════════════════════════════════════════════════════════════


class ContextDoc(BaseModel):
    title: str = ""
    url: str = ""
    text: str = ""


class Candidate(ContextDoc):
    """A scored passage returned by similarity search."""

    score: float = Field(ge=0.0, le=1.0)

    def to_context(self) -> ContextDoc:
        return ContextDoc(title=self.title, url=self.url, text=self.text)


class Citation(BaseModel):
    title: str = ""
    url: str
    score: float


# ══════════════════════════════════════════════════════════════════════
#  SESSIONS
# ══════════════════════════════════════════════════════════════════════


class ConversationTurn(BaseModel):
    """One message in a session's history."""

    model_config = ConfigDict(frozen=True)

    message: str
    role: Role
    timestamp: int = Field(default_factory=now_ms)


class ChatResult(BaseModel):
    reply: str
    citations: list[Citation]
    session_id: str
