"""Feedback submission and summary endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from api.dependencies import get_feedback_system
from supportbot.constants import MAX_FEEDBACK_COMMENT_LENGTH
from supportbot.feedback import FeedbackSystem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/feedback", tags=["feedback"])


class FeedbackRequest(BaseModel):
    """A helpful / not-helpful rating of one answer."""
    answer_id: str = Field(..., min_length=1)
    helpful: bool
    comment: Optional[str] = Field(default=None, max_length=MAX_FEEDBACK_COMMENT_LENGTH)


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    request: FeedbackRequest,
    feedback_system: FeedbackSystem = Depends(get_feedback_system),
):
    try:
        feedback = feedback_system.submit(request.answer_id, request.helpful, request.comment)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    return {"status": "received", "feedback": feedback.to_dict()}


@router.get("/summary")
async def feedback_summary(
    limit: int = 10,
    feedback_system: FeedbackSystem = Depends(get_feedback_system),
):
    """Satisfaction and confidence calibration over the recorded feedback."""
    return {
        "analysis": feedback_system.analyze(),
        "problem_answers": feedback_system.get_problem_answers(limit=limit),
    }
