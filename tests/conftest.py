"""Shared stubs and fixtures."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple, Union

import pytest

from supportbot.exceptions import TicketServiceUnavailable
from supportbot.models import (
    Answer,
    AnswerKind,
    ClarificationContext,
    EscalationDraft,
    EscalationDraftInput,
    SearchFilters,
    Source,
)
from supportbot.orchestrator import QueryOrchestrator
from supportbot.state import AppState
from supportbot.store import InMemoryStore


def make_source(title: str = "VPN client setup", space: str = "ITKB", accessible: bool = True) -> Source:
    return Source(
        title=title,
        space=space,
        url=f"https://confluence.local/display/{space}/{title.lower().replace(' ', '-')}",
        snippet=f"{title} snippet",
        updated_at=datetime(2025, 8, 1, 14, 20, tzinfo=timezone.utc),
        accessible=accessible,
    )


def make_answer(
    clarification_options: Sequence[str] = (),
    confidence: float = 0.8,
    steps: Sequence[str] = ("Check the cable", "Restart the client", "Call the helpdesk"),
    sources: Sequence[Source] = (),
) -> Answer:
    return Answer(
        answer_id=str(uuid.uuid4()),
        kind=AnswerKind.STEPS,
        steps=tuple(steps),
        sources=tuple(sources),
        confidence=confidence,
        latency_ms=12,
        clarification_needed=bool(clarification_options),
        clarification_options=tuple(clarification_options),
    )


AnswerFactory = Union[Answer, Exception, Callable[[str, Optional[ClarificationContext]], Answer]]


class ScriptedAnswerGenerator:
    """Returns scripted answers in order, repeating the last one; records every call."""

    def __init__(self, *script: AnswerFactory) -> None:
        self.script: List[AnswerFactory] = list(script) or [make_answer()]
        self.calls: List[Tuple[str, Optional[ClarificationContext]]] = []
        self.gate: Optional[asyncio.Event] = None

    async def ask(self, query: str, context: Optional[ClarificationContext] = None) -> Answer:
        self.calls.append((query, context))
        if self.gate is not None:
            await self.gate.wait()
        item = self.script[min(len(self.calls) - 1, len(self.script) - 1)]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(query, context)
        return item


class StaticRetriever:
    def __init__(self, sources: Sequence[Source] = (), error: Optional[Exception] = None) -> None:
        self.sources = list(sources)
        self.error = error
        self.calls: List[Tuple[str, Optional[SearchFilters]]] = []

    async def search(self, query: str, filters: Optional[SearchFilters] = None) -> List[Source]:
        self.calls.append((query, filters))
        if self.error is not None:
            raise self.error
        return list(self.sources)


class StubTicketSubmitter:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.received: List[EscalationDraftInput] = []

    async def is_available(self) -> bool:
        return self.available

    async def create_draft(self, form: EscalationDraftInput) -> EscalationDraft:
        if not self.available:
            raise TicketServiceUnavailable("tracker down")
        self.received.append(form)
        return EscalationDraft.from_input(form, draft_id=f"draft-{len(self.received)}")


def make_form(summary: str = "VPN does not connect") -> EscalationDraftInput:
    return EscalationDraftInput(
        project="ITSUP",
        issue_type="Incident",
        priority="Medium",
        summary=summary,
        description="Details",
        components=("Support",),
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def state(store: InMemoryStore) -> AppState:
    return AppState(store)


@pytest.fixture
def alice(state: AppState) -> AppState:
    state.init_session("Alice", "user", "dev")
    return state


def build_orchestrator(state: AppState, *script: AnswerFactory, sources: Sequence[Source] = ()):
    generator = ScriptedAnswerGenerator(*script)
    retriever = StaticRetriever(sources)
    return QueryOrchestrator(state, generator, retriever), generator, retriever
