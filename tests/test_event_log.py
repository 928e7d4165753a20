from supportbot.event_log import EventLog
from supportbot.models import EventKind


def test_keeps_the_newest_hundred_events():
    log = EventLog(identity=lambda: ("s-1", "Alice"))

    for index in range(101):
        log.record(EventKind.ANSWER_GENERATED, {"n": index})

    assert len(log) == 100
    assert log.events[0].payload == {"n": 1}
    assert log.events[-1].payload == {"n": 100}


def test_persisted_view_is_the_newest_fifty():
    log = EventLog(identity=lambda: ("s-1", "Alice"))
    for index in range(70):
        log.record(EventKind.FEEDBACK_SUBMITTED, {"n": index})

    view = log.persisted_view()

    assert len(view) == 50
    assert view[0]["data"] == {"n": 20}
    assert view[0]["type"] == "feedback_submitted"


def test_missing_session_is_stamped_unknown():
    log = EventLog(identity=lambda: (None, "User"))

    event = log.record("escalation_created", {})

    assert event.session_id == "unknown"
    assert event.user == "User"


def test_filter_and_restore():
    log = EventLog(identity=lambda: ("s-1", "Alice"))
    log.record(EventKind.ANSWER_GENERATED, {"answer_id": "a"})
    log.record(EventKind.FEEDBACK_SUBMITTED, {"answer_id": "a"})

    restored = EventLog(identity=lambda: (None, "User"))
    restored.restore(log.persisted_view() + [{"type": "bogus"}])

    assert [event.kind for event in restored.events] == [EventKind.ANSWER_GENERATED, EventKind.FEEDBACK_SUBMITTED]
    assert len(restored.filter(EventKind.FEEDBACK_SUBMITTED)) == 1
