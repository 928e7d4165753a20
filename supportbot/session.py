"""Conversation session: identity, ordered messages and the sources slot."""

from __future__ import annotations

import uuid
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .clarification import ClarificationFlow
from .constants import MAX_SESSION_MESSAGES
from .exceptions import SessionNotInitializedError
from .formatting import format_history
from .logger import LOGGER
from .models import (
    Answer,
    BotMessage,
    Environment,
    Message,
    MessageType,
    Session,
    Source,
    UserMessage,
    UserRole,
    build_message,
    utc_now,
)

GenerationToken = Tuple[str, int]


class ConversationSession:
    """Owns the active :class:`Session`, its messages and its clarification flow.

    This is the single mutation surface for conversation data. ``on_change``
    is called synchronously after every mutation so the owner can mirror the
    new state into persistent storage before control returns to the caller.
    """

    def __init__(
        self,
        clarification: Optional[ClarificationFlow] = None,
        on_change: Optional[Callable[[], None]] = None,
        max_messages: int = MAX_SESSION_MESSAGES,
    ) -> None:
        self.clarification = clarification or ClarificationFlow()
        self.max_messages = max_messages
        self._on_change = on_change
        self._session: Optional[Session] = None
        self._current_sources: Tuple[Source, ...] = ()
        # Bumped by init/clear so late results of abandoned queries can be detected
        self._generation = 0

    # -----------------------------------------------------------------
    # Read side
    # -----------------------------------------------------------------

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def has_session(self) -> bool:
        return self._session is not None

    @property
    def messages(self) -> List[Message]:
        return list(self._session.messages) if self._session else []

    @property
    def current_sources(self) -> List[Source]:
        return list(self._current_sources)

    def last_user_message(self) -> Optional[UserMessage]:
        for message in reversed(self.messages):
            if isinstance(message, UserMessage):
                return message
        return None

    def find_answer_message(self, answer_id: str) -> Optional[BotMessage]:
        for message in self.messages:
            if isinstance(message, BotMessage) and message.answer and message.answer.answer_id == answer_id:
                return message
        return None

    def generation_token(self) -> Optional[GenerationToken]:
        if self._session is None:
            return None
        return (self._session.session_id, self._generation)

    def is_current(self, token: Optional[GenerationToken]) -> bool:
        return token is not None and token == self.generation_token()

    def export_text(self) -> str:
        return format_history(self.messages)

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------

    def init(
        self,
        user: str,
        role: Union[UserRole, str],
        environment: Union[Environment, str],
    ) -> Session:
        """Start a fresh session, replacing any existing one."""
        self._session = Session(
            session_id=str(uuid.uuid4()),
            user=user,
            role=UserRole(role),
            environment=Environment.parse(environment),
            created_at=utc_now(),
        )
        self._generation += 1
        self._current_sources = ()
        self.clarification.reset()
        LOGGER.info(
            "Created session %s for user=%s role=%s env=%s",
            self._session.session_id,
            user,
            self._session.role.value,
            self._session.environment.value,
        )
        self._changed()
        return self._session

    def restore(self, session: Optional[Session]) -> None:
        """Adopt a previously persisted session without re-persisting it."""
        if session is not None and len(session.messages) > self.max_messages:
            session.messages = session.messages[-self.max_messages:]
        self._session = session
        self._generation += 1
        self._current_sources = ()
        self.clarification.reset()

    def append(
        self,
        message_type: Union[MessageType, str],
        content: str,
        answer: Optional[Answer] = None,
    ) -> Message:
        """Append a message, assigning its id and timestamp.

        Raises:
            SessionNotInitializedError: if ``init`` was never called.
        """
        if self._session is None:
            raise SessionNotInitializedError("append() called before a session was initialised")

        timestamp = utc_now()
        existing = self._session.messages
        if existing and existing[-1].timestamp > timestamp:
            # Wall clock stepped backwards; keep ordering non-decreasing
            timestamp = existing[-1].timestamp

        message = build_message(
            MessageType(message_type),
            message_id=str(uuid.uuid4()),
            content=content,
            timestamp=timestamp,
            answer=answer,
        )
        self._session.messages = (existing + [message])[-self.max_messages:]
        LOGGER.debug("Appended %s message to session %s", message.type.value, self._session.session_id)
        self._changed()
        return message

    def clear(self) -> None:
        """Drop all messages and clarification state; identity survives."""
        self._generation += 1
        self._current_sources = ()
        self.clarification.reset()
        if self._session is not None:
            self._session.messages = []
            LOGGER.info("Cleared history of session %s", self._session.session_id)
        self._changed()

    def set_current_sources(self, sources: Sequence[Source]) -> None:
        self._current_sources = tuple(sources)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()


__all__ = ["ConversationSession", "GenerationToken"]
