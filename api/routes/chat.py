"""Chat session, query and clarification endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from api.dependencies import get_app_state, get_orchestrator
from supportbot.formatting import format_checklist_as_markdown
from supportbot.models import Environment, EventKind, utc_now
from supportbot.orchestrator import QueryOrchestrator
from supportbot.state import AppState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["chat"])


# --- Request Models ---

class StartSessionRequest(BaseModel):
    user: str = Field(..., min_length=1, max_length=100)
    role: Literal["user", "admin"] = "user"
    environment: str = Field(default="dev", description="dev, staging (or stg) or prod")


class EnvironmentRequest(BaseModel):
    environment: str = Field(..., description="dev, staging (or stg) or prod")


class QueryRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class ClarificationRequest(BaseModel):
    key: str = Field(..., min_length=1, max_length=200)
    value: str = Field(..., min_length=1, max_length=500)


# --- Helpers ---

def _parse_environment(value: str) -> Environment:
    try:
        return Environment.parse(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown environment '{value}'",
        )


def session_snapshot(app_state: AppState, orchestrator: QueryOrchestrator) -> Dict[str, Any]:
    session = app_state.session
    return {
        "current_user": app_state.current_user,
        "user_role": app_state.user_role.value,
        "environment": app_state.environment.value,
        "session": session.to_dict() if session else None,
        "clarification": app_state.clarification.to_dict(),
        "current_sources": [source.to_dict() for source in app_state.conversation.current_sources],
        "is_loading": orchestrator.is_loading,
    }


# --- Endpoints ---

@router.get("/session")
async def get_session(
    app_state: AppState = Depends(get_app_state),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    return session_snapshot(app_state, orchestrator)


@router.post("/session", status_code=status.HTTP_201_CREATED)
async def start_session(
    request: StartSessionRequest,
    app_state: AppState = Depends(get_app_state),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """Start a fresh session, replacing the current one."""
    environment = _parse_environment(request.environment)
    app_state.init_session(request.user.strip(), request.role, environment)
    return session_snapshot(app_state, orchestrator)


@router.delete("/session/messages")
async def clear_messages(
    app_state: AppState = Depends(get_app_state),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """Clear the message history; the session identity is kept."""
    app_state.clear_history()
    return session_snapshot(app_state, orchestrator)


@router.put("/session/environment")
async def switch_environment(
    request: EnvironmentRequest,
    app_state: AppState = Depends(get_app_state),
):
    environment = app_state.switch_environment(_parse_environment(request.environment))
    return {"environment": environment.value}


@router.post("/query")
async def submit_query(
    request: QueryRequest,
    app_state: AppState = Depends(get_app_state),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """Send a user message and wait for the answer.

    A failed round trip is not an HTTP error: the conversation then ends
    with a system notice and ``answer`` is null.
    """
    if not request.text.strip():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Query text is empty")
    if orchestrator.is_loading:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A query is already in progress")

    app_state.ensure_session()
    logger.info("Query: '%s'", request.text[:60])
    answer = await orchestrator.handle_query(request.text)

    return {
        "answer": answer.to_dict() if answer else None,
        **session_snapshot(app_state, orchestrator),
    }


@router.post("/clarifications")
async def select_clarification(
    request: ClarificationRequest,
    app_state: AppState = Depends(get_app_state),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """Record one clarification; the original query re-runs once enough are chosen."""
    flow = app_state.clarification
    accepted = flow.awaiting and request.key in flow.options
    answer = await orchestrator.select_clarification(request.key, request.value)

    return {
        "accepted": accepted,
        "answer": answer.to_dict() if answer else None,
        **session_snapshot(app_state, orchestrator),
    }


@router.get("/session/export", response_class=PlainTextResponse)
async def export_history(app_state: AppState = Depends(get_app_state)):
    """Download the conversation as plain text."""
    filename = f"chat-history-{utc_now().strftime('%Y-%m-%d')}.txt"
    return PlainTextResponse(
        app_state.conversation.export_text(),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/answers/{answer_id}/checklist", response_class=PlainTextResponse)
async def get_checklist(answer_id: str, app_state: AppState = Depends(get_app_state)):
    """Answer steps as a markdown checklist, ready to copy."""
    message = app_state.conversation.find_answer_message(answer_id)
    if message is None or message.answer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Answer '{answer_id}' not found")

    app_state.event_log.record(
        EventKind.ANSWER_GENERATED,
        {"answer_id": answer_id, "action": "copy_checklist"},
    )
    return PlainTextResponse(format_checklist_as_markdown(message.answer.steps))


def message_list(app_state: AppState) -> List[Dict[str, Any]]:
    return [message.to_dict() for message in app_state.conversation.messages]


@router.get("/session/messages")
async def list_messages(
    limit: Optional[int] = None,
    app_state: AppState = Depends(get_app_state),
):
    messages = message_list(app_state)
    if limit is not None and limit > 0:
        messages = messages[-limit:]
    return {"messages": messages, "count": len(messages)}
