"""Explicit application state owned by the top-level application.

One ``AppState`` per running assistant. It owns the conversation, the
escalation queue and the event log, and mirrors every mutation into the
configured :class:`~supportbot.store.PersistentStore`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union

from .clarification import ClarificationFlow
from .constants import DEFAULT_USER
from .escalation import EscalationQueue
from .event_log import EventLog
from .logger import LOGGER
from .models import Environment, Session, UserRole
from .session import ConversationSession
from .store import InMemoryStore, PersistentStore


class AppState:
    """Session, clarification, escalation queue and analytics for one process."""

    def __init__(self, store: Optional[PersistentStore] = None) -> None:
        self.store: PersistentStore = store if store is not None else InMemoryStore()
        self.current_user: str = DEFAULT_USER
        self.user_role: UserRole = UserRole.USER
        self.environment: Environment = Environment.DEV

        # Mirroring is suspended while hydrating so a partial load is never written back
        self._hydrating = False

        self.conversation = ConversationSession(ClarificationFlow(), on_change=self.persist)
        self.escalation_queue = EscalationQueue(on_change=self.persist)
        self.event_log = EventLog(identity=self.identity, on_change=self.persist)

    # -----------------------------------------------------------------
    # Convenience accessors
    # -----------------------------------------------------------------

    @property
    def clarification(self) -> ClarificationFlow:
        return self.conversation.clarification

    @property
    def session(self) -> Optional[Session]:
        return self.conversation.session

    def identity(self) -> Tuple[Optional[str], str]:
        session = self.conversation.session
        return (session.session_id if session else None, self.current_user)

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    def init_session(
        self,
        user: str,
        role: Union[UserRole, str],
        environment: Union[Environment, str],
    ) -> Session:
        """Start a fresh session and make its user/role/environment current."""
        self.current_user = user
        self.user_role = UserRole(role)
        self.environment = Environment.parse(environment)
        return self.conversation.init(user, self.user_role, self.environment)

    def ensure_session(self) -> Session:
        """Return the active session, creating one for the current identity if needed."""
        session = self.conversation.session
        if session is None:
            session = self.init_session(self.current_user, self.user_role, self.environment)
        return session

    def clear_history(self) -> None:
        self.conversation.clear()

    def switch_environment(self, environment: Union[Environment, str]) -> Environment:
        self.environment = Environment.parse(environment)
        LOGGER.info("Switched environment to %s", self.environment.value)
        self.persist()
        return self.environment

    # -----------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        session = self.conversation.session
        return {
            "current_user": self.current_user,
            "user_role": self.user_role.value,
            "environment": self.environment.value,
            "session": session.to_dict() if session else None,
            "escalation_queue": self.escalation_queue.to_dict(),
            "events": self.event_log.persisted_view(),
        }

    def persist(self) -> None:
        if self._hydrating:
            return
        self.store.save(self.snapshot())

    def hydrate(self) -> bool:
        """Load persisted state if present. Returns True when something was loaded."""
        blob = self.store.load()
        if not blob:
            LOGGER.info("No persisted state found, starting with defaults")
            return False

        self._hydrating = True
        try:
            self.current_user = blob.get("current_user") or DEFAULT_USER
            try:
                self.user_role = UserRole(blob.get("user_role") or UserRole.USER.value)
            except ValueError as exc:
                LOGGER.warning("Ignoring persisted role, using '%s': %s", UserRole.USER.value, exc)
                self.user_role = UserRole.USER
            try:
                self.environment = Environment.parse(blob.get("environment") or Environment.DEV.value)
            except ValueError as exc:
                LOGGER.warning("Ignoring persisted environment, using '%s': %s", Environment.DEV.value, exc)
                self.environment = Environment.DEV

            session_data = blob.get("session")
            session = None
            if session_data:
                try:
                    session = Session.from_dict(session_data)
                except (KeyError, ValueError) as exc:
                    LOGGER.warning("Discarding malformed persisted session: %s", exc)
            self.conversation.restore(session)

            self.escalation_queue.restore(blob.get("escalation_queue"))
            self.event_log.restore(blob.get("events") or [])
        finally:
            self._hydrating = False

        LOGGER.info(
            "Hydrated state: user=%s session=%s messages=%d queued_escalations=%d events=%d",
            self.current_user,
            session.session_id if session else None,
            len(session.messages) if session else 0,
            len(self.escalation_queue),
            len(self.event_log),
        )
        return True


__all__ = ["AppState"]
