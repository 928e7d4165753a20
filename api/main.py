"""FastAPI application entry point with lifespan management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from supportbot.logger import setup_logger
from supportbot.services import SupportServices, build_services

# Route modules log under "api.*"; give them the package handler and level
setup_logger("api")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle.

    Startup:
        Build the services bundle (config, store, collaborators) unless one
        was injected, hydrate persisted state and keep it on ``app.state``.

    Shutdown:
        Close the store (PostgreSQL pool when configured).
    """
    logger.info("Starting support assistant API...")

    services: Optional[SupportServices] = getattr(app.state, "services", None)
    if services is None:
        services = build_services()
        app.state.services = services

    session = services.state.session
    logger.info(
        "Startup complete: user=%s session=%s queued_escalations=%d",
        services.state.current_user,
        session.session_id if session else None,
        len(services.state.escalation_queue),
    )

    yield

    services.close()
    logger.info("Shutting down support assistant API.")


def create_app(services: Optional[SupportServices] = None) -> FastAPI:
    app = FastAPI(
        title="Support Assistant API",
        version="0.1.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Tighten in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from api.routes.chat import router as chat_router
    from api.routes.escalations import router as escalations_router
    from api.routes.feedback import router as feedback_router
    from api.routes.system import router as system_router

    app.include_router(chat_router)
    app.include_router(escalations_router)
    app.include_router(feedback_router)
    app.include_router(system_router)

    @app.get("/api/v1/health")
    async def health(request: Request):
        """Liveness plus a summary of the shared state."""
        state = request.app.state.services.state
        return {
            "status": "ok",
            "session_active": state.session is not None,
            "environment": state.environment.value,
            "queued_escalations": len(state.escalation_queue),
            "events": len(state.event_log),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000)
