"""Wiring of the assistant's components.

``build_services`` picks the store and collaborators from configuration,
hydrates the state and returns everything the HTTP layer needs in one bundle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .adapters.index_status import IndexStatusService, MockIndexStatusService
from .adapters.knowledge_base import MockKnowledgeBaseRetriever, SourceRetriever
from .adapters.llm import AnswerGenerator, GeminiAnswerGenerator, MockAnswerGenerator
from .adapters.ticketing import MockTicketSubmitter, TicketSubmitter
from .config import AppConfig
from .escalation import EscalationSubmitter
from .feedback import FeedbackSystem
from .logger import LOGGER
from .orchestrator import QueryOrchestrator
from .state import AppState
from .store import InMemoryStore, JsonFileStore, PersistentStore, PostgresStore


@dataclass
class SupportServices:
    state: AppState
    orchestrator: QueryOrchestrator
    escalations: EscalationSubmitter
    feedback: FeedbackSystem
    index_status: IndexStatusService
    tickets: TicketSubmitter

    @classmethod
    def assemble(
        cls,
        state: AppState,
        answer_generator: AnswerGenerator,
        source_retriever: SourceRetriever,
        tickets: TicketSubmitter,
        index_status: Optional[IndexStatusService] = None,
    ) -> "SupportServices":
        return cls(
            state=state,
            orchestrator=QueryOrchestrator(state, answer_generator, source_retriever),
            escalations=EscalationSubmitter(tickets, state.escalation_queue, state.event_log),
            feedback=FeedbackSystem(state),
            index_status=index_status or MockIndexStatusService(reindex_seconds=0),
            tickets=tickets,
        )

    def close(self) -> None:
        closer: Any = getattr(self.state.store, "close", None)
        if callable(closer):
            closer()


def build_store(config: AppConfig) -> PersistentStore:
    if config.store_backend == "postgres":
        return PostgresStore(config.database_url)
    if config.store_backend == "memory":
        return InMemoryStore()
    return JsonFileStore(config.paths.state_file)


def build_answer_generator(config: AppConfig) -> AnswerGenerator:
    if config.llm_backend == "gemini":
        return GeminiAnswerGenerator(config.client, model=config.gemini_model)
    return MockAnswerGenerator(simulate_latency=config.simulate_latency)


def build_services(config: Optional[AppConfig] = None) -> SupportServices:
    config = config or AppConfig.get()
    state = AppState(build_store(config))
    state.hydrate()

    services = SupportServices.assemble(
        state,
        answer_generator=build_answer_generator(config),
        source_retriever=MockKnowledgeBaseRetriever(simulate_latency=config.simulate_latency),
        tickets=MockTicketSubmitter(
            failure_rate=config.ticket_failure_rate,
            simulate_latency=config.simulate_latency,
        ),
        index_status=MockIndexStatusService(reindex_seconds=config.reindex_seconds),
    )
    LOGGER.info(
        "Services ready: store=%s answers=%s queued_escalations=%d",
        config.store_backend, config.llm_backend, len(state.escalation_queue),
    )
    return services


__all__ = ["SupportServices", "build_services", "build_store", "build_answer_generator"]
