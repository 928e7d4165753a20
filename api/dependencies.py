"""FastAPI dependency injection for the shared services bundle."""

from __future__ import annotations

from fastapi import Depends, Request

from supportbot.escalation import EscalationSubmitter
from supportbot.feedback import FeedbackSystem
from supportbot.orchestrator import QueryOrchestrator
from supportbot.services import SupportServices
from supportbot.state import AppState


async def get_services(request: Request) -> SupportServices:
    """Services built once by the lifespan and stored on ``app.state``."""
    return request.app.state.services


async def get_app_state(services: SupportServices = Depends(get_services)) -> AppState:
    return services.state


async def get_orchestrator(services: SupportServices = Depends(get_services)) -> QueryOrchestrator:
    return services.orchestrator


async def get_escalations(services: SupportServices = Depends(get_services)) -> EscalationSubmitter:
    return services.escalations


async def get_feedback_system(services: SupportServices = Depends(get_services)) -> FeedbackSystem:
    return services.feedback
