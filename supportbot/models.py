"""Domain records: sessions, messages, answers, sources, escalations and events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple, Union

from .constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_FEEDBACK_COMMENT_LENGTH,
    MAX_SUMMARY_LENGTH,
    TICKET_DRAFT_LINK_TEMPLATE,
)


# =============================================================================
# Enums
# =============================================================================

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"

    @classmethod
    def parse(cls, value: Union[str, "Environment"]) -> "Environment":
        """Accept enum members, canonical values and the legacy ``stg`` alias."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "stg":
            return cls.STAGING
        return cls(normalized)


class AnswerKind(str, Enum):
    CHECKLIST = "checklist"
    STEPS = "steps"
    BRIEF = "brief"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class MessageType(str, Enum):
    USER = "user"
    BOT = "bot"
    SYSTEM = "system"


class EventKind(str, Enum):
    ANSWER_GENERATED = "answer_generated"
    FEEDBACK_SUBMITTED = "feedback_submitted"
    ESCALATION_CREATED = "escalation_created"
    CLARIFICATION_SELECTED = "clarification_selected"


# =============================================================================
# Time helpers
# =============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 timestamp, tolerating a trailing ``Z``."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    seen: List[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


# =============================================================================
# Answers and sources
# =============================================================================

@dataclass(frozen=True)
class Source:
    """A knowledge-base page cited by an answer.

    ``accessible`` is decided by the retriever's access control, never by the core.
    """
    title: str
    space: str
    url: str
    snippet: str
    updated_at: datetime
    accessible: bool
    anchor: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "space": self.space,
            "url": self.url,
            "anchor": self.anchor,
            "snippet": self.snippet,
            "updated_at": self.updated_at.isoformat(),
            "accessible": self.accessible,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Source":
        return cls(
            title=data["title"],
            space=data["space"],
            url=data["url"],
            anchor=data.get("anchor"),
            snippet=data.get("snippet", ""),
            updated_at=parse_timestamp(data.get("updated_at") or data["updatedAt"]),
            accessible=bool(data.get("accessible", False)),
        )


@dataclass(frozen=True)
class Answer:
    """A generated answer. Produced once per round trip and never changed."""
    answer_id: str
    kind: AnswerKind
    steps: Tuple[str, ...]
    sources: Tuple[Source, ...] = ()
    confidence: float = 0.0
    latency_ms: int = 0
    clarification_needed: bool = False
    clarification_options: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if self.latency_ms < 0:
            raise ValueError(f"latency_ms must be >= 0, got {self.latency_ms}")
        object.__setattr__(self, "kind", AnswerKind(self.kind))
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "sources", tuple(self.sources))
        object.__setattr__(self, "clarification_options", _dedupe(self.clarification_options))

    @property
    def accessible_sources(self) -> List[Source]:
        return [source for source in self.sources if source.accessible]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer_id": self.answer_id,
            "type": self.kind.value,
            "steps": list(self.steps),
            "sources": [source.to_dict() for source in self.sources],
            "confidence": self.confidence,
            "latency_ms": self.latency_ms,
            "clarification_needed": self.clarification_needed,
            "clarification_options": list(self.clarification_options),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Answer":
        return cls(
            answer_id=data["answer_id"],
            kind=AnswerKind(data.get("type") or data.get("kind") or AnswerKind.CHECKLIST.value),
            steps=tuple(data.get("steps", [])),
            sources=tuple(Source.from_dict(item) for item in data.get("sources", [])),
            confidence=float(data.get("confidence", 0.0)),
            latency_ms=int(data.get("latency_ms", 0)),
            clarification_needed=bool(data.get("clarification_needed", False)),
            clarification_options=tuple(data.get("clarification_options") or ()),
        )


@dataclass(frozen=True)
class SearchFilters:
    role: Optional[UserRole] = None
    spaces: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ClarificationContext:
    """What the answer generator receives for a clarification follow-up."""
    original_query: str
    selected_options: Dict[str, str]
    remaining_questions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_query": self.original_query,
            "selected_options": dict(self.selected_options),
            "remaining_questions": self.remaining_questions,
        }


# =============================================================================
# Messages
# =============================================================================

@dataclass(frozen=True)
class _MessageBase:
    id: str
    content: str
    timestamp: datetime

    type: ClassVar[MessageType]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class UserMessage(_MessageBase):
    type: ClassVar[MessageType] = MessageType.USER


@dataclass(frozen=True)
class BotMessage(_MessageBase):
    answer: Optional[Answer] = None

    type: ClassVar[MessageType] = MessageType.BOT

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["answer"] = self.answer.to_dict() if self.answer else None
        return data


@dataclass(frozen=True)
class SystemMessage(_MessageBase):
    type: ClassVar[MessageType] = MessageType.SYSTEM


Message = Union[UserMessage, BotMessage, SystemMessage]

_MESSAGE_CLASSES = {
    MessageType.USER: UserMessage,
    MessageType.BOT: BotMessage,
    MessageType.SYSTEM: SystemMessage,
}


def build_message(
    message_type: MessageType,
    message_id: str,
    content: str,
    timestamp: datetime,
    answer: Optional[Answer] = None,
) -> Message:
    """Create the variant matching ``message_type``.

    Only bot messages may carry an answer.
    """
    message_type = MessageType(message_type)
    if message_type is MessageType.BOT:
        return BotMessage(id=message_id, content=content, timestamp=timestamp, answer=answer)
    if answer is not None:
        raise ValueError(f"{message_type.value} messages cannot carry an answer")
    return _MESSAGE_CLASSES[message_type](id=message_id, content=content, timestamp=timestamp)


def message_from_dict(data: Dict[str, Any]) -> Message:
    answer_data = data.get("answer")
    return build_message(
        MessageType(data["type"]),
        message_id=data["id"],
        content=data.get("content", ""),
        timestamp=parse_timestamp(data["timestamp"]),
        answer=Answer.from_dict(answer_data) if answer_data else None,
    )


# =============================================================================
# Session
# =============================================================================

@dataclass
class Session:
    """One user's conversation window."""
    session_id: str
    user: str
    role: UserRole
    environment: Environment
    created_at: datetime
    messages: List[Message] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user": self.user,
            "role": self.role.value,
            "environment": self.environment.value,
            "created_at": self.created_at.isoformat(),
            "messages": [message.to_dict() for message in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            session_id=data["session_id"],
            user=data["user"],
            role=UserRole(data.get("role", UserRole.USER.value)),
            environment=Environment.parse(data.get("environment", Environment.DEV.value)),
            created_at=parse_timestamp(data["created_at"]),
            messages=[message_from_dict(item) for item in data.get("messages", [])],
        )


# =============================================================================
# Escalation
# =============================================================================

@dataclass(frozen=True)
class EscalationDraftInput:
    """Form data for a ticket draft. Queued items have exactly this shape."""
    project: str
    issue_type: str
    priority: Priority
    summary: str
    description: str
    components: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "priority", Priority(self.priority))
        object.__setattr__(self, "components", tuple(self.components))
        if not self.project.strip():
            raise ValueError("project is required")
        if not self.issue_type.strip():
            raise ValueError("issue_type is required")
        if not self.summary.strip():
            raise ValueError("summary is required")
        if len(self.summary) > MAX_SUMMARY_LENGTH:
            raise ValueError(f"summary exceeds {MAX_SUMMARY_LENGTH} characters")
        if len(self.description) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f"description exceeds {MAX_DESCRIPTION_LENGTH} characters")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project": self.project,
            "issue_type": self.issue_type,
            "priority": self.priority.value,
            "components": list(self.components),
            "summary": self.summary,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EscalationDraftInput":
        return cls(
            project=data["project"],
            issue_type=data.get("issue_type") or data["issueType"],
            priority=Priority(data["priority"]),
            components=tuple(data.get("components") or ()),
            summary=data["summary"],
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class EscalationDraft:
    """A ticket draft created by the tracker."""
    draft_id: str
    project: str
    issue_type: str
    priority: Priority
    components: Tuple[str, ...]
    summary: str
    description: str
    link: str

    @classmethod
    def from_input(cls, form: EscalationDraftInput, draft_id: str, link: Optional[str] = None) -> "EscalationDraft":
        return cls(
            draft_id=draft_id,
            project=form.project,
            issue_type=form.issue_type,
            priority=form.priority,
            components=form.components,
            summary=form.summary,
            description=form.description,
            link=link or TICKET_DRAFT_LINK_TEMPLATE.format(draft_id=draft_id),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "draft_id": self.draft_id,
            "project": self.project,
            "issue_type": self.issue_type,
            "priority": self.priority.value,
            "components": list(self.components),
            "summary": self.summary,
            "description": self.description,
            "link": self.link,
        }


# =============================================================================
# Analytics
# =============================================================================

@dataclass(frozen=True)
class LogEvent:
    kind: EventKind
    payload: Dict[str, Any]
    timestamp: datetime
    session_id: str
    user: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "data": self.payload,
            "timestamp": self.timestamp.isoformat(),
            "session_id": self.session_id,
            "user": self.user,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEvent":
        return cls(
            kind=EventKind(data["type"]),
            payload=data.get("data") or {},
            timestamp=parse_timestamp(data["timestamp"]),
            session_id=data.get("session_id", ""),
            user=data.get("user", ""),
        )


@dataclass(frozen=True)
class Feedback:
    """A helpful / not-helpful rating of one answer."""
    answer_id: str
    helpful: bool
    session_id: str
    user: str
    ts: datetime
    comment: Optional[str] = None

    def __post_init__(self) -> None:
        if self.comment is not None and len(self.comment) > MAX_FEEDBACK_COMMENT_LENGTH:
            raise ValueError(f"comment exceeds {MAX_FEEDBACK_COMMENT_LENGTH} characters")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer_id": self.answer_id,
            "helpful": self.helpful,
            "comment": self.comment,
            "session_id": self.session_id,
            "user": self.user,
            "ts": self.ts.isoformat(),
        }


__all__ = [
    "UserRole",
    "Environment",
    "AnswerKind",
    "Priority",
    "MessageType",
    "EventKind",
    "utc_now",
    "parse_timestamp",
    "Source",
    "Answer",
    "SearchFilters",
    "ClarificationContext",
    "UserMessage",
    "BotMessage",
    "SystemMessage",
    "Message",
    "build_message",
    "message_from_dict",
    "Session",
    "EscalationDraftInput",
    "EscalationDraft",
    "LogEvent",
    "Feedback",
]
