"""Limits, fixed user-facing texts and the answer schema shared by the core."""

from __future__ import annotations

# ==============================================================================
# SESSION / EVENT BOUNDS
# ==============================================================================

MAX_SESSION_MESSAGES = 20
MAX_EVENTS_IN_MEMORY = 100
MAX_EVENTS_PERSISTED = 50

# Distinct selections that complete a clarification episode
CLARIFICATION_THRESHOLD = 2

DEFAULT_USER = "User"
UNKNOWN_SESSION_ID = "unknown"

# ==============================================================================
# FIXED MESSAGE TEXTS
# ==============================================================================

CLARIFICATION_PROMPT = "To give you a more precise answer, please pick the clarifications that apply."
SOLUTION_PROMPT = "Here is a step-by-step solution for your problem:"
ERROR_NOTICE = (
    "Something went wrong while preparing the answer. "
    "Try rephrasing the question or contact an administrator."
)

CHECKLIST_TITLE = "Troubleshooting instructions"

# ==============================================================================
# ESCALATION
# ==============================================================================

MAX_SUMMARY_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_FEEDBACK_COMMENT_LENGTH = 200

DEFAULT_ESCALATION_PROJECT = "ITSUP"
DEFAULT_ESCALATION_ISSUE_TYPE = "Incident"
DEFAULT_ESCALATION_PRIORITY = "Medium"
DEFAULT_ESCALATION_COMPONENTS = ("Support",)
DEFAULT_ESCALATION_SUMMARY = "Help needed with a technical issue"

TICKET_DRAFT_LINK_TEMPLATE = "jira://draft/{draft_id}"

# ==============================================================================
# ANSWER GENERATION
# ==============================================================================

MIN_ANSWER_STEPS = 3
MAX_ANSWER_STEPS = 5

ANSWER_SCHEMA = {
    "type": "object",
    "properties": {
        "type": {"type": "string", "enum": ["checklist", "steps", "brief"]},
        "steps": {"type": "array", "items": {"type": "string"}},
        "confidence": {"type": "number"},
        "clarification_needed": {"type": "boolean"},
        "clarification_options": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["type", "steps", "confidence"],
}

ANSWER_SYSTEM_PROMPT = (
    "You are an IT support assistant. Answer the user's problem with a short, practical procedure. "
    "Return ONLY a JSON object matching the provided schema, no markdown fences and no commentary. "
    "Use 'checklist' when the steps are independent checks, 'steps' when they must be followed in order "
    "and 'brief' for a one-paragraph style answer split into sentences. "
    "Always give between 3 and 5 steps. Each step is one imperative sentence. "
    "Set 'confidence' between 0 and 1. "
    "If the answer depends on facts the user has not given (operating system, network segment, "
    "client version and similar), set 'clarification_needed' to true and list the missing facts as "
    "short labels in 'clarification_options'. "
    "When clarification context is supplied, never ask for clarification again: give the final answer."
)

__all__ = [
    "MAX_SESSION_MESSAGES",
    "MAX_EVENTS_IN_MEMORY",
    "MAX_EVENTS_PERSISTED",
    "CLARIFICATION_THRESHOLD",
    "DEFAULT_USER",
    "UNKNOWN_SESSION_ID",
    "CLARIFICATION_PROMPT",
    "SOLUTION_PROMPT",
    "ERROR_NOTICE",
    "CHECKLIST_TITLE",
    "MAX_SUMMARY_LENGTH",
    "MAX_DESCRIPTION_LENGTH",
    "MAX_FEEDBACK_COMMENT_LENGTH",
    "DEFAULT_ESCALATION_PROJECT",
    "DEFAULT_ESCALATION_ISSUE_TYPE",
    "DEFAULT_ESCALATION_PRIORITY",
    "DEFAULT_ESCALATION_COMPONENTS",
    "DEFAULT_ESCALATION_SUMMARY",
    "TICKET_DRAFT_LINK_TEMPLATE",
    "MIN_ANSWER_STEPS",
    "MAX_ANSWER_STEPS",
    "ANSWER_SCHEMA",
    "ANSWER_SYSTEM_PROMPT",
]
