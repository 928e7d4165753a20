"""Clarification sub-dialogue state machine.

Two states: ``Idle`` and ``AwaitingClarification``. An episode opens when an
answer asks for clarification, collects one free-text value per offered
option, and closes when the follow-up query resolves or history is cleared.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from .constants import CLARIFICATION_THRESHOLD
from .logger import LOGGER
from .models import ClarificationContext


class ClarificationStatus(str, Enum):
    IDLE = "idle"
    AWAITING = "awaiting_clarification"


class ClarificationFlow:
    """Tracks whether the session is mid-clarification and what has been chosen.

    ``selected`` keys are always a subset of ``options``; both are empty
    outside an episode. Every transition replaces the whole value rather than
    editing it in place, so readers never see a half-updated state.
    """

    def __init__(self, threshold: int = CLARIFICATION_THRESHOLD) -> None:
        self.threshold = threshold
        self._options: Tuple[str, ...] = ()
        self._selected: Dict[str, str] = {}
        self._awaiting = False

    # -----------------------------------------------------------------
    # Read side
    # -----------------------------------------------------------------

    @property
    def awaiting(self) -> bool:
        return self._awaiting

    @property
    def status(self) -> ClarificationStatus:
        return ClarificationStatus.AWAITING if self._awaiting else ClarificationStatus.IDLE

    @property
    def options(self) -> Tuple[str, ...]:
        return self._options

    @property
    def selected(self) -> Dict[str, str]:
        return dict(self._selected)

    @property
    def remaining_options(self) -> Tuple[str, ...]:
        return tuple(option for option in self._options if option not in self._selected)

    @property
    def ready(self) -> bool:
        """True once enough distinct selections were made to re-run the query."""
        return self._awaiting and len(self._selected) >= self.threshold

    def build_context(self, original_query: str) -> Optional[ClarificationContext]:
        if not self._awaiting:
            return None
        return ClarificationContext(
            original_query=original_query,
            selected_options=dict(self._selected),
            remaining_questions=max(0, self.threshold - len(self._selected)),
        )

    # -----------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------

    def start(self, options: Iterable[str]) -> None:
        offered = []
        for option in options:
            if option not in offered:
                offered.append(option)
        self._options = tuple(offered)
        self._selected = {}
        self._awaiting = True
        LOGGER.debug("Clarification started with options: %s", ", ".join(self._options))

    def select(self, key: str, value: str) -> bool:
        """Record ``key -> value``; last write wins.

        Returns False (and changes nothing) when idle or when ``key`` was not offered.
        """
        if not self._awaiting:
            LOGGER.debug("Ignoring clarification '%s': flow is idle", key)
            return False
        if key not in self._options:
            LOGGER.warning("Ignoring clarification '%s': not among offered options %s", key, self._options)
            return False
        self._selected = {**self._selected, key: value}
        LOGGER.debug("Clarification selected: %s=%s (%d/%d)", key, value, len(self._selected), self.threshold)
        return True

    def finish(self) -> None:
        if self._awaiting:
            LOGGER.debug("Clarification finished with %d selections", len(self._selected))
        self._options = ()
        self._selected = {}
        self._awaiting = False

    reset = finish

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status.value,
            "awaiting": self._awaiting,
            "options": list(self._options),
            "selected": dict(self._selected),
            "remaining_options": list(self.remaining_options),
        }


__all__ = ["ClarificationFlow", "ClarificationStatus"]
