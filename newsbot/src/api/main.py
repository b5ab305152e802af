"""
Newsbot - Application Entry Point
==================================
FastAPI application factory.  Registers the routes from
``newsbot/src/api/routes.py`` and owns the lifecycle of the shared
resources:

    startup  → session store (backend chosen once from settings),
               vector store, embedding service, ``RAGManager``
    shutdown → ``SessionStore.close()`` (cancels pending expiry timers
               or closes the MongoDB client)

Pre-built components can be injected for tests or embedding in another
process; anything not injected is built from ``settings``.

Run:  python -m newsbot.src.api.main
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newsbot.config.settings import settings
from newsbot.src.api.routes import router
from newsbot.src.core.embeddings import EmbeddingService, build_embedder
from newsbot.src.core.rag_engine import RAGManager
from newsbot.src.database.session_store import SessionStore, create_session_store
from newsbot.src.database.vector_store import NewsVectorStore
from newsbot.src.utils.logger import get_logger, quiet_third_party

logger = get_logger(__name__)


def create_app(session_store: SessionStore | None = None, rag: RAGManager | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        session_store: Optional pre-built store.  Defaults to ``create_session_store()``.
        rag:           Optional pre-built ``RAGManager`` sharing that store.

    Returns:
        The configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        quiet_third_party()
        sessions = session_store or create_session_store(settings)
        manager = rag or RAGManager(vector_store=NewsVectorStore(), embeddings=EmbeddingService(build_embedder(settings)), session_store=sessions)
        app.state.sessions = sessions
        app.state.rag = manager
        logger.info("Newsbot API ready (collection=%s).", settings.COLLECTION_NAME)

        yield

        await sessions.close()
        logger.info("Newsbot API shut down.")

    app = FastAPI(title="Newsbot RAG API", description="Chat over a news corpus with cited sources.", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.include_router(router)
    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=settings.PORT)
