"""
Newsbot - RAG Engine
=====================
Orchestrates one chat turn over the news corpus.

Architecture (OOP)
------------------
``GeminiGenerator``
    Async wrapper around ``ChatGoogleGenerativeAI``.  Converts SDK
    failures into ``UpstreamTransient`` / ``UpstreamPermanent`` so the
    retry wrapper can classify them.

``RAGManager``
    Stateless pipeline orchestrator.  Flow (linear, every step a hard
    dependency; any failure aborts the turn with its error):
        1. Validate   → empty message is a ``ValidationError``
        2. History    → load the session log
        3. Embed      → query vector (retried on transient errors)
        4. Retrieve   → top-``SEARCH_LIMIT`` candidates
        5. Filter     → threshold with top-N fallback
        6. Prompt     → numbered context + recent history
        7. Generate   → Gemini (retried on transient errors)
        8. Cite       → one citation per article url
        9. Persist    → user turn, then assistant turn
        10. Return    → ``ChatResult``

    History is written only after generation succeeds, so a failed turn
    leaves no trace in the session.  An empty retrieval is *not* an
    error: the model is asked to answer with no context and say so.

Usage:
    from newsbot.src.core.rag_engine import RAGManager
    rag = RAGManager(vector_store, embeddings, session_store)
    result = await rag.generate_response("session_123", "Who won the final?")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from newsbot.config.prompt_templates import CONTEXT_BLOCK_TEMPLATE, NO_CONTEXT_PLACEHOLDER, NO_HISTORY_PLACEHOLDER, RAG_PROMPT_TEMPLATE, SYSTEM_PROMPT
from newsbot.config.settings import Settings, settings
from newsbot.src.core.embeddings import EmbeddingService
from newsbot.src.core.errors import ValidationError
from newsbot.src.core.models import Candidate, ChatResult, ContextDoc, ConversationTurn
from newsbot.src.core.resilience import to_upstream_error, with_retry
from newsbot.src.core.retrieval import dedupe_citations, filter_candidates
from newsbot.src.database.session_store import SessionStore
from newsbot.src.database.vector_store import NewsVectorStore
from newsbot.src.utils.logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  GENERATOR
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class Generator(Protocol):
    """Anything that turns a prompt into reply text."""

    async def generate(self, prompt: str) -> str: ...


class GeminiGenerator:
    """Gemini chat model behind the ``Generator`` protocol."""

    __slots__ = ("_llm",)

    def __init__(self, config: Settings = settings) -> None:
        from langchain_google_genai import ChatGoogleGenerativeAI

        # Retries are owned by ``with_retry``; the SDK gets a single attempt
        self._llm = ChatGoogleGenerativeAI(model=config.LLM_MODEL, temperature=config.LLM_TEMPERATURE, google_api_key=config.GOOGLE_API_KEY.get_secret_value(), max_retries=1)
        logger.info("LLM initialised: %s (temperature=%.1f)", config.LLM_MODEL, config.LLM_TEMPERATURE)


    async def generate(self, prompt: str) -> str:
        from langchain_core.messages import HumanMessage, SystemMessage

        try:
            response = await self._llm.ainvoke([SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)])
        except Exception as exc:
            raise to_upstream_error(exc, "generation") from exc

        content = response.content if hasattr(response, "content") else response
        if isinstance(content, list):
            return "".join(part if isinstance(part, str) else str(part.get("text", "")) for part in content)
        return str(content)


# ══════════════════════════════════════════════════════════════════════
#  RAG MANAGER
# ══════════════════════════════════════════════════════════════════════


class RAGManager:
    """
    Orchestrates the chat pipeline: history → retrieve → generate → persist.

    Parameters
    ----------
    vector_store
        An initialised ``NewsVectorStore``.
    embeddings
        ``EmbeddingService`` used for the query vector.
    session_store
        The ``SessionStore`` selected at startup.
    generator
        Optional custom ``Generator``.  Defaults to ``GeminiGenerator``.
    config
        Settings source for retrieval and retry parameters.
    """

    __slots__ = ("_store", "_embeddings", "_sessions", "_generator", "_config")

    def __init__(self, vector_store: NewsVectorStore, embeddings: EmbeddingService, session_store: SessionStore, generator: Generator | None = None, config: Settings = settings) -> None:
        self._store = vector_store
        self._embeddings = embeddings
        self._sessions = session_store
        self._generator = generator or GeminiGenerator(config)
        self._config = config


    async def generate_response(self, session_id: str, message: str) -> ChatResult:
        """Run one chat turn and return the reply with its citations."""
        if not message or not message.strip():
            raise ValidationError("message required")

        cfg = self._config
        t_start = time.perf_counter()

        # ── 1. Load history ──────────────────────────────────────────
        history = await self._sessions.history(session_id)
        logger.info("[RAG] Session '%s': %d prior turn(s).", session_id, len(history))

        # ── 2. Embed query ───────────────────────────────────────────
        query_vector = await with_retry(lambda: self._embeddings.embed(message), cfg.RETRY_MAX_ATTEMPTS, cfg.RETRY_BASE_DELAY)

        # ── 3. Retrieve ──────────────────────────────────────────────
        t_search = time.perf_counter()
        hits = await asyncio.to_thread(self._store.search, cfg.COLLECTION_NAME, query_vector, cfg.SEARCH_LIMIT)
        candidates = [Candidate.model_validate(hit) for hit in hits]

        # ── 4. Filter ────────────────────────────────────────────────
        selected = filter_candidates(candidates, cfg.MIN_SCORE, cfg.FALLBACK_COUNT)
        search_ms = (time.perf_counter() - t_search) * 1000
        logger.info("[RAG] Search: %d raw → %d selected in %.1fms", len(candidates), len(selected), search_ms)
        if not selected:
            logger.warning("[RAG] No context available, generating without sources.")

        # ── 5. Build prompt ──────────────────────────────────────────
        prompt = self.build_prompt(message, [c.to_context() for c in selected], history[-cfg.HISTORY_WINDOW:] if cfg.HISTORY_WINDOW else [])

        # ── 6. Generate ──────────────────────────────────────────────
        t_llm = time.perf_counter()
        reply = await with_retry(lambda: self._generator.generate(prompt), cfg.RETRY_MAX_ATTEMPTS, cfg.RETRY_BASE_DELAY)
        llm_ms = (time.perf_counter() - t_llm) * 1000
        logger.info("[RAG] LLM response: %.1fms (%d chars)", llm_ms, len(reply))

        # ── 7. Citations ─────────────────────────────────────────────
        citations = dedupe_citations(selected)

        # ── 8. Persist both turns ────────────────────────────────────
        await self._sessions.append_many(session_id, [ConversationTurn(message=message, role="user"), ConversationTurn(message=reply, role="assistant")])

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Pipeline total: %.1fms (search=%.1f, llm=%.1f)", total_ms, search_ms, llm_ms)
        return ChatResult(reply=reply, citations=citations, session_id=session_id)

    # ══════════════════════════════════════════════════════════════════
    #  PROMPT FORMATTING
    # ══════════════════════════════════════════════════════════════════

    @classmethod
    def build_prompt(cls, question: str, context_docs: Sequence[ContextDoc], history: Sequence[ConversationTurn]) -> str:
        return RAG_PROMPT_TEMPLATE.format(context=cls._format_context(context_docs), history=cls._format_history(history), question=question)


    @staticmethod
    def _format_context(docs: Sequence[ContextDoc]) -> str:
        """Numbered context blocks; the numbers are what the model cites."""
        if not docs:
            return NO_CONTEXT_PLACEHOLDER
        return "\n".join(CONTEXT_BLOCK_TEMPLATE.format(index=i, title=d.title, url=d.url, text=d.text) for i, d in enumerate(docs, 1))


    @staticmethod
    def _format_history(turns: Sequence[ConversationTurn]) -> str:
        if not turns:
            return NO_HISTORY_PLACEHOLDER
        return "\n".join(f"{t.role.upper()}: {t.message}" for t in turns)
