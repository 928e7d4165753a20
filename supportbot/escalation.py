"""Escalation of answers into ticket drafts, with an offline retry queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from .constants import (
    DEFAULT_ESCALATION_COMPONENTS,
    DEFAULT_ESCALATION_ISSUE_TYPE,
    DEFAULT_ESCALATION_PRIORITY,
    DEFAULT_ESCALATION_PROJECT,
    DEFAULT_ESCALATION_SUMMARY,
    MAX_DESCRIPTION_LENGTH,
    MAX_SUMMARY_LENGTH,
)
from .exceptions import EscalationFault
from .formatting import build_escalation_description, truncate
from .logger import LOGGER
from .models import (
    BotMessage,
    EscalationDraft,
    EscalationDraftInput,
    EventKind,
    UserMessage,
    parse_timestamp,
    utc_now,
)

if TYPE_CHECKING:
    from .adapters.ticketing import TicketSubmitter
    from .event_log import EventLog
    from .session import ConversationSession


# =============================================================================
# Queue
# =============================================================================

class EscalationQueue:
    """Forms whose submission failed, oldest first.

    A form is only ever added here after a failed attempt; nothing in this
    class retries on its own. See :meth:`EscalationSubmitter.drain`.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None) -> None:
        self._on_change = on_change
        self._items: List[EscalationDraftInput] = []
        self._last_attempt: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[EscalationDraftInput]:
        return list(self._items)

    @property
    def last_attempt(self) -> Optional[datetime]:
        return self._last_attempt

    def enqueue(self, form: EscalationDraftInput) -> int:
        self._items = self._items + [form]
        self._last_attempt = utc_now()
        self._changed()
        return len(self._items)

    def mark_attempt(self) -> None:
        self._last_attempt = utc_now()
        self._changed()

    def discard(self, form: EscalationDraftInput) -> bool:
        """Remove the oldest entry equal to ``form``."""
        for index, item in enumerate(self._items):
            if item == form:
                self._items = self._items[:index] + self._items[index + 1:]
                self._changed()
                return True
        return False

    def clear(self) -> None:
        self._items = []
        self._last_attempt = None
        self._changed()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self._items],
            "last_attempt": self._last_attempt.isoformat() if self._last_attempt else None,
        }

    def restore(self, data: Optional[Dict[str, Any]]) -> None:
        data = data or {}
        items: List[EscalationDraftInput] = []
        for raw in data.get("items", []):
            try:
                items.append(EscalationDraftInput.from_dict(raw))
            except (KeyError, ValueError) as exc:
                LOGGER.warning("Dropping malformed queued escalation: %s", exc)
        self._items = items
        last_attempt = data.get("last_attempt")
        self._last_attempt = parse_timestamp(last_attempt) if last_attempt else None

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()


# =============================================================================
# Submitter
# =============================================================================

@dataclass
class DrainResult:
    delivered: List[EscalationDraft] = field(default_factory=list)
    remaining: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delivered": [draft.to_dict() for draft in self.delivered],
            "remaining": self.remaining,
            "error": self.error,
        }


class EscalationSubmitter:
    """Deliver forms to the ticket tracker, queueing the ones that fail."""

    def __init__(self, tickets: "TicketSubmitter", queue: EscalationQueue, events: "EventLog") -> None:
        self.tickets = tickets
        self.queue = queue
        self.events = events
        self._draining = False

    @property
    def is_draining(self) -> bool:
        return self._draining

    async def submit(self, form: EscalationDraftInput, answer_id: Optional[str] = None) -> EscalationDraft:
        """Create a ticket draft.

        On success the queue is untouched. On failure the unmodified form is
        appended to the queue and :class:`EscalationFault` is raised.
        """
        try:
            draft = await self.tickets.create_draft(form)
        except Exception as exc:
            queue_length = self.queue.enqueue(form)
            LOGGER.warning(
                "Escalation for project=%s failed (%s); queued, %d pending",
                form.project, exc, queue_length,
            )
            raise EscalationFault(form, queue_length, f"Ticket tracker unavailable: {exc}") from exc

        self.events.record(
            EventKind.ESCALATION_CREATED,
            {
                "draft_id": draft.draft_id,
                "answer_id": answer_id,
                "project": draft.project,
                "priority": draft.priority.value,
            },
        )
        LOGGER.info("Escalation draft created: %s (%s)", draft.draft_id, draft.link)
        return draft

    async def drain(self) -> DrainResult:
        """Retry queued forms oldest first, stopping at the first failure.

        Meant to be called by an external trigger (scheduler, admin endpoint);
        the core never drains on its own. A call made while another drain is
        running delivers nothing and reports the current queue length.
        """
        if self._draining:
            LOGGER.info("Queue drain skipped: another drain is in progress")
            return DrainResult(remaining=len(self.queue), error="Queue drain already in progress")

        pending = self.queue.items
        if not pending:
            return DrainResult()

        # Flag is set before the first await
        self._draining = True
        try:
            self.queue.mark_attempt()
            result = DrainResult()
            for form in pending:
                try:
                    draft = await self.tickets.create_draft(form)
                except Exception as exc:
                    result.error = str(exc)
                    LOGGER.warning("Queue drain stopped: %s", exc)
                    break
                self.queue.discard(form)
                result.delivered.append(draft)
                self.events.record(
                    EventKind.ESCALATION_CREATED,
                    {
                        "draft_id": draft.draft_id,
                        "answer_id": None,
                        "project": draft.project,
                        "priority": draft.priority.value,
                        "from_queue": True,
                    },
                )
        finally:
            self._draining = False

        result.remaining = len(self.queue)
        LOGGER.info("Queue drain: %d delivered, %d remaining", len(result.delivered), result.remaining)
        return result


# =============================================================================
# Form prefill
# =============================================================================

def build_escalation_form(conversation: "ConversationSession", answer_id: Optional[str] = None) -> EscalationDraftInput:
    """Prefill an escalation form from the conversation.

    Uses the user query that led to ``answer_id`` (or the latest query), the
    answer's steps and the URLs of its accessible sources.
    """
    messages = conversation.messages
    query = ""
    answer_message: Optional[BotMessage] = None

    if answer_id:
        for index, message in enumerate(messages):
            if isinstance(message, BotMessage) and message.answer and message.answer.answer_id == answer_id:
                answer_message = message
                for previous in reversed(messages[:index]):
                    if isinstance(previous, UserMessage):
                        query = previous.content
                        break
                break

    if not query:
        last_user = conversation.last_user_message()
        query = last_user.content if last_user else ""

    answer_text = None
    source_urls: List[str] = []
    if answer_message is not None and answer_message.answer is not None:
        answer_text = "\n".join(answer_message.answer.steps)
        source_urls = [source.url for source in answer_message.answer.accessible_sources]

    return EscalationDraftInput(
        project=DEFAULT_ESCALATION_PROJECT,
        issue_type=DEFAULT_ESCALATION_ISSUE_TYPE,
        priority=DEFAULT_ESCALATION_PRIORITY,
        components=DEFAULT_ESCALATION_COMPONENTS,
        summary=truncate(query or DEFAULT_ESCALATION_SUMMARY, MAX_SUMMARY_LENGTH),
        description=truncate(
            build_escalation_description(query, answer_text, source_urls),
            MAX_DESCRIPTION_LENGTH,
        ),
    )


__all__ = ["EscalationQueue", "EscalationSubmitter", "DrainResult", "build_escalation_form"]
