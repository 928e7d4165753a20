"""System status API endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_app_state, get_services
from supportbot.models import EventKind
from supportbot.services import SupportServices
from supportbot.state import AppState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/system", tags=["system"])


@router.get("/events")
async def list_events(
    kind: Optional[str] = None,
    limit: int = 50,
    app_state: AppState = Depends(get_app_state),
):
    """Most recent analytics events, newest last."""
    if kind is not None:
        try:
            events = app_state.event_log.filter(EventKind(kind))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Unknown event kind '{kind}'")
    else:
        events = app_state.event_log.events

    if limit > 0:
        events = events[-limit:]
    return {"events": [event.to_dict() for event in events], "count": len(events)}


@router.get("/index-status")
async def get_index_status(services: SupportServices = Depends(get_services)):
    index_status = await services.index_status.get_status()
    return index_status.to_dict()


@router.post("/reindex/{space_key}", status_code=status.HTTP_202_ACCEPTED)
async def reindex_space(space_key: str, services: SupportServices = Depends(get_services)):
    try:
        await services.index_status.reindex(space_key)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown space '{space_key}'")

    logger.info("Reindex requested for space %s", space_key)
    return {"status": "started", "space": space_key}
