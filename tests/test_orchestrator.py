import asyncio

from supportbot.constants import CLARIFICATION_PROMPT, ERROR_NOTICE, SOLUTION_PROMPT
from supportbot.models import BotMessage, EventKind, SystemMessage, UserMessage, UserRole

from conftest import build_orchestrator, make_answer, make_source


def test_blank_query_is_ignored(alice):
    orchestrator, generator, _ = build_orchestrator(alice)

    assert asyncio.run(orchestrator.handle_query("   ")) is None
    assert alice.conversation.messages == []
    assert generator.calls == []


def test_clarifying_answer_opens_an_episode(alice):
    orchestrator, generator, retriever = build_orchestrator(
        alice, make_answer(clarification_options=["OS", "Segment"]), sources=[make_source()]
    )

    answer = asyncio.run(orchestrator.handle_query("VPN не работает"))

    messages = alice.conversation.messages
    assert len(messages) == 2
    assert isinstance(messages[0], UserMessage) and messages[0].content == "VPN не работает"
    assert isinstance(messages[1], BotMessage) and messages[1].content == CLARIFICATION_PROMPT
    assert messages[1].answer is answer
    assert alice.clarification.awaiting
    assert set(alice.clarification.options) == {"OS", "Segment"}
    assert generator.calls == [("VPN не работает", None)]
    assert retriever.calls[0][1].role is UserRole.USER
    assert not orchestrator.is_loading


def test_completing_clarification_reruns_the_query_with_context(alice):
    orchestrator, generator, _ = build_orchestrator(
        alice,
        make_answer(clarification_options=["OS", "Segment"]),
        # Asking again must not reopen the episode
        make_answer(clarification_options=["OS", "Segment"]),
    )
    asyncio.run(orchestrator.handle_query("VPN не работает"))

    assert asyncio.run(orchestrator.select_clarification("OS", "Windows 11")) is None
    assert len(generator.calls) == 1

    answer = asyncio.run(orchestrator.select_clarification("Segment", "Office"))

    assert answer is not None
    query, context = generator.calls[-1]
    assert query == "VPN не работает"
    assert context.selected_options == {"OS": "Windows 11", "Segment": "Office"}
    assert context.remaining_questions == 0

    assert not alice.clarification.awaiting
    assert alice.clarification.selected == {}
    messages = alice.conversation.messages
    assert len(messages) == 3
    assert messages[-1].content == SOLUTION_PROMPT

    selections = alice.event_log.filter(EventKind.CLARIFICATION_SELECTED)
    assert [event.payload["key"] for event in selections] == ["OS", "Segment"]


def test_query_while_awaiting_carries_context_and_ends_the_episode(alice):
    orchestrator, generator, _ = build_orchestrator(
        alice,
        make_answer(clarification_options=["OS", "Segment"]),
        make_answer(clarification_options=["OS", "Segment"]),
    )
    asyncio.run(orchestrator.handle_query("VPN is down"))
    asyncio.run(orchestrator.handle_query("It is Windows 11"))

    assert generator.calls[1][1] is not None
    assert not alice.clarification.awaiting
    assert alice.conversation.messages[-1].content == SOLUTION_PROMPT


def test_clear_after_clarification_keeps_identity(alice):
    orchestrator, _, _ = build_orchestrator(
        alice, make_answer(clarification_options=["OS", "Segment"]), make_answer()
    )
    session_id = alice.session.session_id
    asyncio.run(orchestrator.handle_query("VPN не работает"))
    asyncio.run(orchestrator.select_clarification("OS", "Windows 11"))
    asyncio.run(orchestrator.select_clarification("Segment", "Office"))

    alice.clear_history()

    assert alice.conversation.messages == []
    assert not alice.clarification.awaiting
    assert alice.session.session_id == session_id
    assert alice.session.user == "Alice"


def test_generation_failure_appends_error_notice(alice):
    orchestrator, _, _ = build_orchestrator(alice, RuntimeError("model unavailable"))

    assert asyncio.run(orchestrator.handle_query("VPN is down")) is None

    messages = alice.conversation.messages
    assert len(messages) == 2
    assert isinstance(messages[1], SystemMessage)
    assert messages[1].content == ERROR_NOTICE
    assert alice.event_log.filter(EventKind.ANSWER_GENERATED) == []
    assert not orchestrator.is_loading


def test_retrieval_failure_leaves_clarification_untouched(alice):
    orchestrator, _, retriever = build_orchestrator(alice, make_answer(clarification_options=["OS", "Segment"]))
    asyncio.run(orchestrator.handle_query("VPN is down"))
    retriever.error = ConnectionError("search down")

    asyncio.run(orchestrator.handle_query("still broken"))

    assert alice.conversation.messages[-1].content == ERROR_NOTICE
    assert alice.clarification.awaiting
    assert alice.clarification.options == ("OS", "Segment")


def test_second_query_is_rejected_while_one_is_in_flight(alice):
    orchestrator, generator, _ = build_orchestrator(alice, make_answer())

    async def scenario():
        generator.gate = asyncio.Event()
        first = asyncio.create_task(orchestrator.handle_query("first"))
        await asyncio.sleep(0)
        assert orchestrator.is_loading
        second = await orchestrator.handle_query("second")
        generator.gate.set()
        return second, await first

    second, first = asyncio.run(scenario())

    assert second is None
    assert first is not None
    assert [m.content for m in alice.conversation.messages if isinstance(m, UserMessage)] == ["first"]


def test_result_arriving_after_clear_is_discarded(alice):
    orchestrator, generator, _ = build_orchestrator(alice, make_answer(), sources=[make_source()])

    async def scenario():
        generator.gate = asyncio.Event()
        task = asyncio.create_task(orchestrator.handle_query("first"))
        await asyncio.sleep(0)
        alice.clear_history()
        generator.gate.set()
        return await task

    assert asyncio.run(scenario()) is None
    assert alice.conversation.messages == []
    assert alice.conversation.current_sources == []


def test_answer_event_counts_accessible_sources(alice):
    sources = [make_source(), make_source("Zabbix agents", space="MON", accessible=False)]
    orchestrator, _, _ = build_orchestrator(alice, make_answer(confidence=0.9), sources=sources)

    answer = asyncio.run(orchestrator.handle_query("zabbix agent offline"))

    [event] = alice.event_log.filter(EventKind.ANSWER_GENERATED)
    assert event.payload == {
        "query": "zabbix agent offline",
        "answer_id": answer.answer_id,
        "confidence": 0.9,
        "latency_ms": 12,
        "sources_count": 2,
        "accessible_sources": 1,
    }
    assert event.session_id == alice.session.session_id
    assert event.user == "Alice"
    assert alice.conversation.current_sources == sources


def test_selection_during_a_query_is_recorded_without_rerun(alice):
    orchestrator, generator, _ = build_orchestrator(
        alice, make_answer(clarification_options=["OS", "Segment"]), make_answer()
    )
    asyncio.run(orchestrator.handle_query("VPN is down"))
    alice.clarification.select("OS", "Windows 11")

    async def scenario():
        generator.gate = asyncio.Event()
        task = asyncio.create_task(orchestrator.handle_query("It still fails"))
        await asyncio.sleep(0)
        rerun = await orchestrator.select_clarification("Segment", "Office")
        selected = alice.clarification.selected
        generator.gate.set()
        await task
        return rerun, selected

    rerun, selected = asyncio.run(scenario())

    assert rerun is None
    assert selected == {"OS": "Windows 11", "Segment": "Office"}
    assert len(generator.calls) == 2
    [event] = alice.event_log.filter(EventKind.CLARIFICATION_SELECTED)
    assert event.payload["key"] == "Segment"
