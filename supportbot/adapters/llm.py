"""Answer generation collaborators.

``MockAnswerGenerator`` serves canned answers for offline development and
demos; ``GeminiAnswerGenerator`` asks Gemini for a schema-constrained JSON
answer.
"""

from __future__ import annotations

import asyncio
import json
import random
import re
import time
import uuid
from typing import Any, Dict, List, Optional, Protocol, Tuple

from google.genai import types

from ..constants import ANSWER_SCHEMA, ANSWER_SYSTEM_PROMPT, MAX_ANSWER_STEPS, MIN_ANSWER_STEPS
from ..formatting import extract_keywords
from ..logger import LOGGER
from ..models import Answer, AnswerKind, ClarificationContext, Source, parse_timestamp


class AnswerGenerator(Protocol):
    async def ask(self, query: str, context: Optional[ClarificationContext] = None) -> Answer:
        ...


# =============================================================================
# Mock generator
# =============================================================================

def _source(title: str, space: str, url: str, snippet: str, updated_at: str, accessible: bool = True) -> Source:
    return Source(
        title=title,
        space=space,
        url=url,
        snippet=snippet,
        updated_at=parse_timestamp(updated_at),
        accessible=accessible,
    )


_CANNED_ANSWERS: Dict[str, Dict[str, Any]] = {
    "ad_domain_issue": {
        "kind": AnswerKind.CHECKLIST,
        "steps": (
            "Check the network connection and that a domain controller is reachable",
            "Run `nltest /dclist:domain.local` to list the domain controllers",
            "Flush the DNS cache with `ipconfig /flushdns`",
            "Restart the Netlogon service: `net stop netlogon && net start netlogon`",
            "If needed, sign out and sign back in to the domain",
        ),
        "sources": (
            _source(
                "Troubleshooting Active Directory domain logon",
                "ITKB",
                "https://confluence.local/pages/ad-troubleshooting",
                "After an AD outage check connectivity to the domain controller and the state of its services.",
                "2025-07-15T10:30:00Z",
            ),
        ),
        "confidence": 0.85,
    },
    "vpn_connection_issue": {
        "kind": AnswerKind.STEPS,
        "steps": (
            "Check the internet connection on the client device",
            "Verify the VPN client settings",
            "Check the user's credentials",
            "Restart the VPN service",
            "Review the VPN server logs",
        ),
        "sources": (
            _source(
                "VPN client setup",
                "ITKB",
                "https://confluence.local/pages/vpn-client-setup",
                "To connect from home use server vpn.company.com with the IKEv2 protocol.",
                "2025-08-01T14:20:00Z",
            ),
            _source(
                "Diagnosing VPN connections",
                "ITKB",
                "https://confluence.local/pages/vpn-diagnostics",
                "For VPN problems check service status and connection logs.",
                "2025-07-28T09:15:00Z",
            ),
        ),
        "confidence": 0.62,
        "clarification_needed": True,
        "clarification_options": ("OS", "Segment", "VPN client version"),
    },
    "zabbix_agent": {
        "kind": AnswerKind.CHECKLIST,
        "steps": (
            "Check the status of the Zabbix Agent service",
            "Validate /etc/zabbix/zabbix_agentd.conf",
            "Check network reachability between the agent and the server",
            "Restart the agent service",
        ),
        "sources": (
            _source(
                "Configuring Zabbix agents",
                "MON",
                "https://confluence.local/pages/zabbix-agents",
                "Set Server and ServerActive in the agent configuration.",
                "2025-06-20T16:45:00Z",
                accessible=False,
            ),
        ),
        "confidence": 0.78,
    },
}

_WINDOWS_11_VPN_ANSWER: Dict[str, Any] = {
    "kind": AnswerKind.STEPS,
    "steps": (
        "Open Settings > Network & Internet > VPN",
        "Check the connection settings for Windows 11",
        "Make sure the IKEv2 certificate is installed",
        "Restart the Routing and Remote Access service",
        "Check that Windows Firewall is not blocking VPN traffic",
    ),
    "sources": (
        _source(
            "VPN on Windows 11",
            "ITKB",
            "https://confluence.local/pages/vpn-windows11",
            "On Windows 11 the VPN is configured from the new Settings app.",
            "2025-08-01T14:20:00Z",
        ),
    ),
    "confidence": 0.92,
}

_TOPIC_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("ad_domain_issue", ("ad", "domain", "домен", "active", "directory", "logon")),
    ("vpn_connection_issue", ("vpn",)),
    ("zabbix_agent", ("zabbix",)),
)


def classify_topic(query: str) -> str:
    """Map a query onto a canned answer key; unknown topics fall back to AD."""
    words = set(re.findall(r"\w+", query.lower()))
    for topic, keywords in _TOPIC_KEYWORDS:
        if any(keyword in words for keyword in keywords):
            return topic
    return "ad_domain_issue"


def _is_windows_11(context: Optional[ClarificationContext]) -> bool:
    if context is None:
        return False
    for key, value in context.selected_options.items():
        if key.strip().lower() in ("os", "ос") and "windows 11" in value.lower():
            return True
    return False


class MockAnswerGenerator:
    """Canned answers keyed by topic, with a simulated 800-1200 ms latency."""

    def __init__(self, simulate_latency: bool = True, latency_range_ms: Tuple[int, int] = (800, 1200)) -> None:
        self.simulate_latency = simulate_latency
        self.latency_range_ms = latency_range_ms

    async def ask(self, query: str, context: Optional[ClarificationContext] = None) -> Answer:
        latency = random.randint(*self.latency_range_ms) if self.simulate_latency else 0
        if latency:
            await asyncio.sleep(latency / 1000)

        topic = classify_topic(query)
        if topic == "vpn_connection_issue" and _is_windows_11(context):
            template = _WINDOWS_11_VPN_ANSWER
        else:
            template = _CANNED_ANSWERS[topic]

        LOGGER.debug("MockAnswerGenerator: topic=%s context=%s", topic, bool(context))
        return Answer(
            answer_id=str(uuid.uuid4()),
            kind=template["kind"],
            steps=template["steps"],
            sources=template["sources"],
            confidence=template["confidence"],
            latency_ms=latency,
            clarification_needed=template.get("clarification_needed", False),
            clarification_options=template.get("clarification_options", ()),
        )


# =============================================================================
# Gemini generator
# =============================================================================

def parse_json_response(raw: str) -> Dict[str, Any]:
    """Parse a JSON object out of a model response.

    Prefers a fenced ```json block, then trims to the outermost braces.
    """
    if not raw or not raw.strip():
        raise ValueError("Empty JSON response from Gemini")

    fence_match = re.search(r"```(?:json)?\s*\n*(.*?)\s*```", raw, re.DOTALL)
    json_str = (fence_match.group(1) if fence_match else raw).strip()

    start = json_str.find("{")
    end = json_str.rfind("}")
    if start != -1 and end > start:
        json_str = json_str[start: end + 1]

    data = json.loads(json_str)
    if not isinstance(data, dict):
        raise ValueError("Gemini response is not a JSON object")
    return data


def answer_from_payload(data: Dict[str, Any], latency_ms: int) -> Answer:
    """Normalise a model payload into an :class:`Answer` (3-5 non-empty steps)."""
    steps: List[str] = [str(step).strip() for step in data.get("steps") or [] if str(step).strip()]
    if len(steps) < MIN_ANSWER_STEPS:
        raise ValueError(f"Answer has {len(steps)} steps, expected at least {MIN_ANSWER_STEPS}")
    steps = steps[:MAX_ANSWER_STEPS]

    try:
        kind = AnswerKind(str(data.get("type", "")).lower())
    except ValueError:
        kind = AnswerKind.CHECKLIST

    confidence = min(1.0, max(0.0, float(data.get("confidence", 0.5))))
    options = [str(option).strip() for option in data.get("clarification_options") or [] if str(option).strip()]

    return Answer(
        answer_id=str(uuid.uuid4()),
        kind=kind,
        steps=tuple(steps),
        confidence=confidence,
        latency_ms=latency_ms,
        clarification_needed=bool(data.get("clarification_needed")) and bool(options),
        clarification_options=tuple(options),
    )


class GeminiAnswerGenerator:
    """Schema-constrained answers from Gemini.

    The google-genai client is blocking, so each call runs in a worker thread
    to keep the event loop free while it waits.
    """

    def __init__(self, client: Any, model: str = "gemini-flash-latest", temperature: float = 0.2) -> None:
        self.client = client
        self.model = model
        self.temperature = temperature

    def build_prompt(self, query: str, context: Optional[ClarificationContext] = None) -> str:
        prompt = f"{ANSWER_SYSTEM_PROMPT}\n\nSchema: {json.dumps(ANSWER_SCHEMA)}\n\nUser problem: {query}"
        if context is not None:
            prompt += (
                "\n\nClarification context (final answer required):\n"
                f"{json.dumps(context.to_dict(), ensure_ascii=False, indent=2)}"
            )
        keywords = extract_keywords(query)
        if keywords:
            prompt += f"\n\nKeywords: {', '.join(keywords)}"
        return prompt

    async def ask(self, query: str, context: Optional[ClarificationContext] = None) -> Answer:
        started = time.perf_counter()
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=self.build_prompt(query, context),
            config=types.GenerateContentConfig(
                temperature=self.temperature,
                response_mime_type="application/json",
                response_schema=ANSWER_SCHEMA,
            ),
        )
        latency_ms = int((time.perf_counter() - started) * 1000)
        answer = answer_from_payload(parse_json_response(response.text or ""), latency_ms)
        LOGGER.info(
            "Gemini answer: model=%s steps=%d confidence=%.2f clarification=%s latency=%dms",
            self.model, len(answer.steps), answer.confidence, answer.clarification_needed, latency_ms,
        )
        return answer


__all__ = [
    "AnswerGenerator",
    "MockAnswerGenerator",
    "GeminiAnswerGenerator",
    "classify_topic",
    "parse_json_response",
    "answer_from_payload",
]
