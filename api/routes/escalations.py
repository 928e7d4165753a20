"""Escalation endpoints: prefilled drafts, submission and the offline queue."""

from __future__ import annotations

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from api.dependencies import get_app_state, get_escalations, get_services
from supportbot.constants import MAX_DESCRIPTION_LENGTH, MAX_SUMMARY_LENGTH
from supportbot.escalation import EscalationSubmitter, build_escalation_form
from supportbot.exceptions import EscalationFault
from supportbot.models import EscalationDraftInput
from supportbot.services import SupportServices
from supportbot.state import AppState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/escalations", tags=["escalations"])


class EscalationRequest(BaseModel):
    project: str = Field(..., min_length=1, max_length=50)
    issue_type: str = Field(..., min_length=1, max_length=50)
    priority: Literal["Low", "Medium", "High"] = "Medium"
    summary: str = Field(..., min_length=1, max_length=MAX_SUMMARY_LENGTH)
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    components: List[str] = Field(default_factory=list)
    answer_id: Optional[str] = None


@router.get("/draft/{answer_id}")
async def get_draft_form(answer_id: str, app_state: AppState = Depends(get_app_state)):
    """Escalation form prefilled from the answer and the query that produced it."""
    if app_state.conversation.find_answer_message(answer_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Answer '{answer_id}' not found")
    form = build_escalation_form(app_state.conversation, answer_id)
    return {"answer_id": answer_id, **form.to_dict()}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_escalation(
    request: EscalationRequest,
    escalations: EscalationSubmitter = Depends(get_escalations),
):
    """Create a ticket draft.

    When the tracker is unavailable the form is queued and 503 is returned
    with ``queued: true``; nothing is lost.
    """
    try:
        form = EscalationDraftInput(
            project=request.project,
            issue_type=request.issue_type,
            priority=request.priority,
            summary=request.summary,
            description=request.description,
            components=tuple(request.components),
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    try:
        draft = await escalations.submit(form, answer_id=request.answer_id)
    except EscalationFault as exc:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "queued": True,
                "queue_length": exc.queue_length,
                "detail": str(exc),
            },
        )

    return {"queued": False, "draft": draft.to_dict()}


@router.get("/queue")
async def get_queue(services: SupportServices = Depends(get_services)):
    queue = services.state.escalation_queue
    return {
        **queue.to_dict(),
        "length": len(queue),
        "tracker_available": await services.tickets.is_available(),
    }


@router.post("/queue/drain")
async def drain_queue(escalations: EscalationSubmitter = Depends(get_escalations)):
    """Retry queued escalations, oldest first, until one fails."""
    result = await escalations.drain()
    return result.to_dict()


@router.delete("/queue")
async def clear_queue(app_state: AppState = Depends(get_app_state)):
    cleared = len(app_state.escalation_queue)
    app_state.escalation_queue.clear()
    logger.info("Escalation queue cleared: %d item(s) dropped", cleared)
    return {"cleared": cleared}
