"""Exception types raised by the support assistant core."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import EscalationDraftInput


class SupportBotError(Exception):
    """Base class for every error raised by the core."""


class SessionNotInitializedError(SupportBotError):
    """Raised when a message is appended before any session exists.

    This is a caller bug: the application must call ``init`` first.
    """


class GenerationFault(SupportBotError):
    """Answer generation or source retrieval failed for one round trip."""

    def __init__(self, query: str, cause: Optional[BaseException] = None):
        super().__init__(f"Round trip failed for query '{query[:60]}': {cause}")
        self.query = query
        self.cause = cause


class EscalationFault(SupportBotError):
    """Ticket submission failed; the form has been queued for a later retry."""

    def __init__(self, form: "EscalationDraftInput", queue_length: int, message: str = ""):
        super().__init__(message or "Ticket tracker unavailable, escalation queued")
        self.form = form
        self.queue_length = queue_length


class TicketServiceUnavailable(SupportBotError):
    """Raised by ticket tracker adapters when the tracker cannot be reached."""


__all__ = [
    "SupportBotError",
    "SessionNotInitializedError",
    "GenerationFault",
    "EscalationFault",
    "TicketServiceUnavailable",
]
