"""
Newsbot - API Routes
=====================
Thin controllers over the ``RAGManager`` and ``SessionStore`` held on
``app.state``:

    GET    /                          → liveness banner
    GET    /health                    → {"ok": true}
    POST   /api/chat                  → {reply, citations, sessionId}
    GET    /api/session/{id}/history  → {sessionId, messages}
    DELETE /api/session/{id}          → {"ok": true}

Failures are logged with their specific error class and answered with
a generic ``server_error``; only a missing message is reported back to
the caller (400).
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from newsbot.src.core.errors import ValidationError
from newsbot.src.core.rag_engine import RAGManager
from newsbot.src.database.session_store import SessionStore
from newsbot.src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    sessionId: str | None = None
    message: str | None = None


def _rag(request: Request) -> RAGManager:
    return request.app.state.rag


def _sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def _server_error(exc: Exception, where: str) -> JSONResponse:
    logger.error("[API] %s failed [%s]: %s", where, type(exc).__name__, exc)
    return JSONResponse(status_code=500, content={"error": "server_error"})


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "newsbot backend up!"


@router.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


@router.post("/api/chat")
async def chat(body: ChatRequest, request: Request) -> JSONResponse:
    if not body.message or not body.message.strip():
        return JSONResponse(status_code=400, content={"error": "message required"})

    session_id = body.sessionId or str(uuid.uuid4())
    try:
        result = await _rag(request).generate_response(session_id, body.message)
    except ValidationError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})
    except Exception as exc:
        return _server_error(exc, "chat")

    return JSONResponse(content={"reply": result.reply, "citations": [c.model_dump() for c in result.citations], "sessionId": result.session_id})


@router.get("/api/session/{session_id}/history")
async def session_history(session_id: str, request: Request) -> JSONResponse:
    try:
        turns = await _sessions(request).history(session_id)
    except Exception as exc:
        return _server_error(exc, "history")
    return JSONResponse(content={"sessionId": session_id, "messages": [t.model_dump() for t in turns]})


@router.delete("/api/session/{session_id}")
async def reset_session(session_id: str, request: Request) -> JSONResponse:
    try:
        await _sessions(request).reset(session_id)
    except Exception as exc:
        return _server_error(exc, "reset")
    return JSONResponse(content={"ok": True})
