"""Ticket tracker collaborators."""

from __future__ import annotations

import asyncio
import random
import uuid
from typing import Protocol

from ..exceptions import TicketServiceUnavailable
from ..logger import LOGGER
from ..models import EscalationDraft, EscalationDraftInput


class TicketSubmitter(Protocol):
    async def create_draft(self, form: EscalationDraftInput) -> EscalationDraft:
        ...

    async def is_available(self) -> bool:
        ...


class MockTicketSubmitter:
    """In-process tracker that hands out ``jira://draft/<uuid>`` links.

    ``available=False`` makes every call fail; ``failure_rate`` fails a random
    share of calls while available.
    """

    def __init__(
        self,
        available: bool = True,
        failure_rate: float = 0.0,
        simulate_latency: bool = True,
        latency_ms: int = 500,
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")
        self.available = available
        self.failure_rate = failure_rate
        self.simulate_latency = simulate_latency
        self.latency_ms = latency_ms
        self.created = 0

    def set_available(self, available: bool) -> None:
        self.available = available
        LOGGER.info("Mock ticket tracker marked %s", "available" if available else "unavailable")

    async def is_available(self) -> bool:
        return self.available

    async def create_draft(self, form: EscalationDraftInput) -> EscalationDraft:
        if self.simulate_latency and self.latency_ms:
            await asyncio.sleep(self.latency_ms / 1000)

        if not self.available or (self.failure_rate and random.random() < self.failure_rate):
            raise TicketServiceUnavailable("Ticket tracker is temporarily unavailable")

        self.created += 1
        return EscalationDraft.from_input(form, draft_id=str(uuid.uuid4()))


__all__ = ["TicketSubmitter", "MockTicketSubmitter"]
