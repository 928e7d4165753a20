"""Collaborators the core consumes: answer generation, retrieval, ticketing, index status."""

from __future__ import annotations

from .index_status import IndexStatus, IndexStatusService, MockIndexStatusService, SpaceStatus
from .knowledge_base import MockKnowledgeBaseRetriever, SourceRetriever
from .llm import AnswerGenerator, GeminiAnswerGenerator, MockAnswerGenerator
from .ticketing import MockTicketSubmitter, TicketSubmitter

__all__ = [
    "AnswerGenerator",
    "GeminiAnswerGenerator",
    "MockAnswerGenerator",
    "SourceRetriever",
    "MockKnowledgeBaseRetriever",
    "TicketSubmitter",
    "MockTicketSubmitter",
    "IndexStatus",
    "IndexStatusService",
    "MockIndexStatusService",
    "SpaceStatus",
]
