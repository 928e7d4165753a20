"""Query round trips: user message in, answer and sources out.

One round trip joins the answer generator and the source retriever, then
either opens a clarification episode or closes the current one with a
solution. At most one round trip is in flight per state.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

from .constants import CLARIFICATION_PROMPT, ERROR_NOTICE, SOLUTION_PROMPT
from .exceptions import GenerationFault
from .logger import LOGGER
from .models import Answer, EventKind, MessageType, SearchFilters

if TYPE_CHECKING:
    from .adapters.knowledge_base import SourceRetriever
    from .adapters.llm import AnswerGenerator
    from .state import AppState


class QueryOrchestrator:
    """Drive answer generation for the session held by ``state``."""

    def __init__(
        self,
        state: "AppState",
        answer_generator: "AnswerGenerator",
        source_retriever: "SourceRetriever",
    ) -> None:
        self.state = state
        self.answer_generator = answer_generator
        self.source_retriever = source_retriever
        self._loading = False

    @property
    def is_loading(self) -> bool:
        return self._loading

    async def handle_query(self, text: str) -> Optional[Answer]:
        """Append the user's message and resolve it.

        Returns the answer, or None when the input is blank, another query is
        in flight, the round trip failed or its result went stale.
        """
        query = text.strip()
        if not query or self._loading:
            if query:
                LOGGER.info("Query rejected: another query is in flight")
            return None

        # Flag is set before the first await
        self._loading = True
        try:
            self.state.conversation.append(MessageType.USER, query)
            return await self._resolve(query)
        finally:
            self._loading = False

    async def select_clarification(self, key: str, value: str) -> Optional[Answer]:
        """Record one clarification choice; re-run the last query once enough are made.

        The choice is recorded even while a query is in flight; only the
        automatic re-run is skipped then.
        """
        flow = self.state.clarification
        if not flow.select(key, value):
            return None

        self.state.event_log.record(
            EventKind.CLARIFICATION_SELECTED,
            {"key": key, "value": value, "selected": len(flow.selected)},
        )
        if not flow.ready:
            return None
        if self._loading:
            LOGGER.info("Clarification complete but a query is in flight; not re-running")
            return None

        last_user = self.state.conversation.last_user_message()
        if last_user is None:
            LOGGER.warning("Clarification complete but no user query to re-run")
            return None

        self._loading = True
        try:
            return await self._resolve(last_user.content)
        finally:
            self._loading = False

    async def _resolve(self, query: str) -> Optional[Answer]:
        conversation = self.state.conversation
        flow = self.state.clarification
        token = conversation.generation_token()
        context = flow.build_context(query)

        try:
            answer, sources = await asyncio.gather(
                self.answer_generator.ask(query, context),
                self.source_retriever.search(query, SearchFilters(role=self.state.user_role)),
            )
        except Exception as exc:
            fault = GenerationFault(query, exc)
            if not conversation.is_current(token):
                LOGGER.warning("Discarding failure of a stale query: %s", fault)
                return None
            LOGGER.warning("%s", fault)
            conversation.append(MessageType.SYSTEM, ERROR_NOTICE)
            return None

        if not conversation.is_current(token):
            LOGGER.warning("Discarding stale answer %s: session changed while it was generated", answer.answer_id)
            return None

        conversation.set_current_sources(sources)

        if answer.clarification_needed and answer.clarification_options and context is None:
            flow.start(answer.clarification_options)
            conversation.append(MessageType.BOT, CLARIFICATION_PROMPT, answer=answer)
        else:
            flow.finish()
            conversation.append(MessageType.BOT, SOLUTION_PROMPT, answer=answer)

        self.state.event_log.record(
            EventKind.ANSWER_GENERATED,
            {
                "query": query,
                "answer_id": answer.answer_id,
                "confidence": answer.confidence,
                "latency_ms": answer.latency_ms,
                "sources_count": len(sources),
                "accessible_sources": sum(1 for source in sources if source.accessible),
            },
        )
        LOGGER.info(
            "Answered query: answer=%s confidence=%.2f sources=%d clarification=%s",
            answer.answer_id, answer.confidence, len(sources), flow.awaiting,
        )
        return answer


__all__ = ["QueryOrchestrator"]
