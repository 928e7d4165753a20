"""Bounded in-memory analytics log."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from .constants import MAX_EVENTS_IN_MEMORY, MAX_EVENTS_PERSISTED, UNKNOWN_SESSION_ID
from .logger import LOGGER
from .models import EventKind, LogEvent, utc_now

IdentityProvider = Callable[[], Tuple[Optional[str], str]]


class EventLog:
    """Append-only FIFO ring of :class:`LogEvent`.

    Keeps the newest ``capacity`` events in memory; ``persisted_view`` is the
    newest ``persist_limit`` of those. Eviction is by count, never by age.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        on_change: Optional[Callable[[], None]] = None,
        capacity: int = MAX_EVENTS_IN_MEMORY,
        persist_limit: int = MAX_EVENTS_PERSISTED,
    ) -> None:
        self._identity = identity
        self._on_change = on_change
        self.capacity = capacity
        self.persist_limit = persist_limit
        self._events: List[LogEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    @property
    def events(self) -> List[LogEvent]:
        return list(self._events)

    def record(self, kind: Union[EventKind, str], payload: Optional[Dict[str, Any]] = None) -> LogEvent:
        session_id, user = self._identity()
        event = LogEvent(
            kind=EventKind(kind),
            payload=dict(payload or {}),
            timestamp=utc_now(),
            session_id=session_id or UNKNOWN_SESSION_ID,
            user=user,
        )
        self._events = (self._events + [event])[-self.capacity:]
        LOGGER.debug("Event %s session=%s user=%s data=%s", event.kind.value, event.session_id, user, event.payload)
        if self._on_change is not None:
            self._on_change()
        return event

    def filter(self, kind: Union[EventKind, str]) -> List[LogEvent]:
        wanted = EventKind(kind)
        return [event for event in self._events if event.kind is wanted]

    def persisted_view(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self._events[-self.persist_limit:]]

    def restore(self, raw_events: Iterable[Dict[str, Any]]) -> None:
        restored: List[LogEvent] = []
        for item in raw_events:
            try:
                restored.append(LogEvent.from_dict(item))
            except (KeyError, ValueError) as exc:
                LOGGER.warning("Skipping malformed persisted event: %s", exc)
        self._events = restored[-self.capacity:]


__all__ = ["EventLog", "IdentityProvider"]
