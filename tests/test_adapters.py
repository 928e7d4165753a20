import asyncio
from types import SimpleNamespace

import pytest

from supportbot.adapters.index_status import MockIndexStatusService, time_ago
from supportbot.adapters.knowledge_base import MockKnowledgeBaseRetriever
from supportbot.adapters.llm import (
    GeminiAnswerGenerator,
    MockAnswerGenerator,
    answer_from_payload,
    classify_topic,
    parse_json_response,
)
from supportbot.adapters.ticketing import MockTicketSubmitter
from supportbot.exceptions import TicketServiceUnavailable
from supportbot.models import AnswerKind, ClarificationContext, SearchFilters, UserRole

from conftest import make_form


def test_topics_are_classified_by_keyword():
    assert classify_topic("VPN не работает") == "vpn_connection_issue"
    assert classify_topic("zabbix agent is offline") == "zabbix_agent"
    assert classify_topic("cannot log on to the domain") == "ad_domain_issue"
    assert classify_topic("printer jam") == "ad_domain_issue"


def test_mock_vpn_answer_asks_for_clarification():
    answer = asyncio.run(MockAnswerGenerator(simulate_latency=False).ask("VPN is down"))

    assert answer.clarification_needed
    assert "OS" in answer.clarification_options
    assert 3 <= len(answer.steps) <= 5


def test_mock_refines_vpn_answer_for_windows_11():
    context = ClarificationContext("VPN is down", {"OS": "Windows 11", "Segment": "Office"}, 0)

    answer = asyncio.run(MockAnswerGenerator(simulate_latency=False).ask("VPN is down", context))

    assert not answer.clarification_needed
    assert answer.confidence == 0.92
    assert "Windows 11" in answer.steps[1]


def test_retriever_applies_role_acl():
    retriever = MockKnowledgeBaseRetriever(simulate_latency=False)

    as_user = asyncio.run(retriever.search("zabbix agents", SearchFilters(role=UserRole.USER)))
    as_admin = asyncio.run(retriever.search("zabbix agents", SearchFilters(role=UserRole.ADMIN)))

    assert [s.space for s in as_user] == ["MON"]
    assert not as_user[0].accessible
    assert as_admin[0].accessible


def test_retriever_filters_spaces_and_limits_results():
    retriever = MockKnowledgeBaseRetriever(simulate_latency=False)

    results = asyncio.run(retriever.search("the vpn and domain and monitoring", SearchFilters(spaces=("ITKB",))))

    assert results
    assert len(results) <= 5
    assert {source.space for source in results} == {"ITKB"}


def test_ticket_submitter_availability_switch():
    tickets = MockTicketSubmitter(simulate_latency=False)

    draft = asyncio.run(tickets.create_draft(make_form()))
    assert draft.link.startswith("jira://draft/")

    tickets.set_available(False)
    assert asyncio.run(tickets.is_available()) is False
    with pytest.raises(TicketServiceUnavailable):
        asyncio.run(tickets.create_draft(make_form()))


def test_parse_json_response_strips_fences():
    raw = 'Sure:\n```json\n{"type": "steps", "steps": ["a", "b", "c"], "confidence": 0.7}\n```'

    assert parse_json_response(raw)["type"] == "steps"
    with pytest.raises(ValueError):
        parse_json_response("   ")


def test_answer_payload_is_normalised():
    answer = answer_from_payload(
        {"type": "bogus", "steps": ["1", " ", "2", "3", "4", "5", "6"], "confidence": 1.7,
         "clarification_needed": True, "clarification_options": []},
        latency_ms=5,
    )

    assert answer.kind is AnswerKind.CHECKLIST
    assert answer.steps == ("1", "2", "3", "4", "5")
    assert answer.confidence == 1.0
    assert not answer.clarification_needed

    with pytest.raises(ValueError):
        answer_from_payload({"steps": ["only one"]}, latency_ms=0)


def test_gemini_generator_uses_schema_constrained_call():
    captured = {}

    def generate_content(**kwargs):
        captured.update(kwargs)
        return SimpleNamespace(text='{"type": "brief", "steps": ["a", "b", "c"], "confidence": 0.6}')

    client = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
    generator = GeminiAnswerGenerator(client, model="gemini-test")
    context = ClarificationContext("VPN is down", {"OS": "Linux"}, 1)

    answer = asyncio.run(generator.ask("VPN is down", context))

    assert answer.kind is AnswerKind.BRIEF
    assert captured["model"] == "gemini-test"
    assert captured["config"].response_mime_type == "application/json"
    assert "Clarification context" in captured["contents"]


def test_reindex_completes_immediately_without_delay():
    service = MockIndexStatusService(reindex_seconds=0)
    before = {s.key: s.docs for s in asyncio.run(service.get_status()).spaces}

    asyncio.run(service.reindex("MON"))
    after = {s.key: s for s in asyncio.run(service.get_status()).spaces}

    assert after["MON"].docs >= before["MON"]
    assert not after["MON"].reindexing
    with pytest.raises(KeyError):
        asyncio.run(service.reindex("NOPE"))


def test_reindex_in_progress_is_reported():
    service = MockIndexStatusService(reindex_seconds=60)

    async def scenario():
        await service.reindex("ITKB")
        return await service.get_status()

    status = asyncio.run(scenario())

    itkb = next(s for s in status.spaces if s.key == "ITKB")
    assert itkb.reindexing
    assert time_ago(itkb.last_updated_at) == "just now"
