"""
Mira - API Routes
==================
Thin controllers mounted under ``/agent``.  Each handler validates the
request, delegates to the ``AgentOrchestrator`` held on ``app.state``
and formats the response.  No business logic lives here.

Routes:
- POST   /agent/message                       → one conversational turn
- GET    /agent/health                        → component status
- GET    /agent/stats                         → corpus / session counts
- GET    /agent/tools                         → plugin catalogue
- GET    /agent/sessions/{session_id}/history → stored messages
- DELETE /agent/sessions/{session_id}         → forget a session
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, StrictStr

from mira.src.core.rag_engine import AgentOrchestrator
from mira.src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/agent", tags=["agent"])

# Field → client-facing validation message
FIELD_ERRORS: dict[str, str] = {
    "message": "Message is required and must be a string",
    "session_id": "Session ID is required and must be a string",
}


class MessageRequest(BaseModel):
    message: StrictStr = Field(min_length=1)
    session_id: StrictStr = Field(min_length=1)


class MessageResponse(BaseModel):
    reply: str
    session_id: str
    timestamp: str
    context_used: list[str]
    plugins_called: list[str]


def get_orchestrator(request: Request) -> AgentOrchestrator:
    return request.app.state.orchestrator


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("/message", response_model=MessageResponse)
async def post_message(body: MessageRequest, orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    logger.info("Incoming message for session '%s' (%d chars).", body.session_id, len(body.message))
    reply = await orchestrator.process_message(body.session_id, body.message)
    return reply.to_dict()


@router.get("/health")
async def health(orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return {"status": "healthy", "timestamp": _now(), "components": orchestrator.health()}


@router.get("/stats")
async def stats(orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return orchestrator.stats()


@router.get("/tools")
async def tools(orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    catalogue = orchestrator.tools()
    return {"tools": catalogue, "count": len(catalogue), "timestamp": _now()}


@router.get("/sessions/{session_id}/history")
async def session_history(session_id: str, orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return {"session_id": session_id, "messages": await orchestrator.history(session_id)}


@router.delete("/sessions/{session_id}")
async def clear_session(session_id: str, orchestrator: AgentOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return {"session_id": session_id, "cleared": await orchestrator.clear_session(session_id)}
