"""
Core of the support assistant chat client.

The conversation session state machine, the clarification sub-dialogue and
the offline-resilient escalation queue live here. HTTP exposure lives in the
sibling ``api`` package.
"""

from __future__ import annotations

__all__ = [
    "adapters",
    "clarification",
    "config",
    "constants",
    "escalation",
    "event_log",
    "exceptions",
    "feedback",
    "formatting",
    "logger",
    "models",
    "orchestrator",
    "services",
    "session",
    "state",
    "store",
]  # pragma: no cover
