"""Plain-text renderings: checklists, escalation descriptions and history export."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, List, Optional, Sequence

from .constants import CHECKLIST_TITLE

if TYPE_CHECKING:
    from .models import Message

HISTORY_SEPARATOR = "\n\n---\n\n"


def truncate(text: str, limit: int, ellipsis: str = "...") -> str:
    """Cut ``text`` to at most ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    if limit <= len(ellipsis):
        return text[:limit]
    return text[: limit - len(ellipsis)].rstrip() + ellipsis


def extract_keywords(query: str, limit: int = 10) -> List[str]:
    """Lower-cased words longer than two characters, punctuation stripped."""
    cleaned = re.sub(r"[^\w\s]", "", query.lower())
    return [word for word in cleaned.split() if len(word) > 2][:limit]


def format_checklist_as_markdown(steps: Sequence[str], title: str = CHECKLIST_TITLE) -> str:
    lines = [f"{index}. {step}" for index, step in enumerate(steps, 1)]
    return f"# {title}\n\n" + "\n".join(lines)


def build_escalation_description(
    original_query: str,
    answer_text: Optional[str] = None,
    source_urls: Optional[Sequence[str]] = None,
) -> str:
    """Ticket description from the user's query, the bot's answer and its sources."""
    description = f"**Original user request:**\n{original_query}\n\n"

    if answer_text:
        description += f"**Bot answer:**\n{answer_text}\n\n"

    if source_urls:
        description += "**Sources used:**\n"
        for url in source_urls:
            description += f"- {url}\n"
        description += "\n"

    description += "**Additional information:**\n"
    description += "Please provide a solution or further assistance with this issue."
    return description


def format_history(messages: Sequence["Message"]) -> str:
    """Render a conversation for download; inaccessible sources are omitted."""
    from .models import BotMessage, UserMessage

    blocks: List[str] = []
    for message in messages:
        stamp = message.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        if isinstance(message, UserMessage):
            blocks.append(f"[{stamp}] User: {message.content}")
        elif isinstance(message, BotMessage) and message.answer:
            steps = "\n".join(f"{i}. {step}" for i, step in enumerate(message.answer.steps, 1))
            sources = "\n".join(
                f"- {source.title}: {source.url}" for source in message.answer.accessible_sources
            )
            blocks.append(f"[{stamp}] Bot:\n{steps}\n\nSources:\n{sources}")
        elif isinstance(message, BotMessage):
            blocks.append(f"[{stamp}] Bot: {message.content}")
        else:
            blocks.append(f"[{stamp}] System: {message.content}")
    return HISTORY_SEPARATOR.join(blocks)


__all__ = [
    "HISTORY_SEPARATOR",
    "truncate",
    "extract_keywords",
    "format_checklist_as_markdown",
    "build_escalation_description",
    "format_history",
]
