import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from supportbot.adapters.index_status import MockIndexStatusService
from supportbot.services import SupportServices
from supportbot.state import AppState
from supportbot.store import InMemoryStore

from conftest import ScriptedAnswerGenerator, StaticRetriever, StubTicketSubmitter, make_answer, make_source


@pytest.fixture
def tickets():
    return StubTicketSubmitter()


@pytest.fixture
def generator():
    return ScriptedAnswerGenerator(
        make_answer(clarification_options=["OS", "Segment"], sources=[make_source()]),
        make_answer(confidence=0.9, sources=[make_source()]),
    )


@pytest.fixture
def client(generator, tickets):
    services = SupportServices.assemble(
        AppState(InMemoryStore()),
        answer_generator=generator,
        source_retriever=StaticRetriever([make_source()]),
        tickets=tickets,
        index_status=MockIndexStatusService(reindex_seconds=0),
    )
    with TestClient(create_app(services)) as test_client:
        yield test_client


def start_session(client, **overrides):
    payload = {"user": "Alice", "role": "user", "environment": "dev", **overrides}
    response = client.post("/api/v1/session", json=payload)
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["session_active"] is False


def test_start_session_accepts_stg_alias(client):
    body = start_session(client, environment="stg")

    assert body["environment"] == "staging"
    assert body["session"]["user"] == "Alice"
    assert body["session"]["messages"] == []


def test_unknown_environment_is_rejected(client):
    response = client.post("/api/v1/session", json={"user": "Alice", "environment": "qa"})

    assert response.status_code == 422


def test_query_and_clarification_flow(client, generator):
    start_session(client)

    first = client.post("/api/v1/query", json={"text": "VPN не работает"}).json()
    assert first["clarification"]["awaiting"] is True
    assert len(first["session"]["messages"]) == 2

    partial = client.post("/api/v1/clarifications", json={"key": "OS", "value": "Windows 11"}).json()
    assert partial["accepted"] is True
    assert partial["answer"] is None

    done = client.post("/api/v1/clarifications", json={"key": "Segment", "value": "Office"}).json()
    assert done["answer"]["confidence"] == 0.9
    assert done["clarification"]["awaiting"] is False
    assert len(done["session"]["messages"]) == 3
    assert generator.calls[-1][1].selected_options == {"OS": "Windows 11", "Segment": "Office"}


def test_unknown_clarification_is_not_accepted(client):
    start_session(client)
    client.post("/api/v1/query", json={"text": "VPN не работает"})

    body = client.post("/api/v1/clarifications", json={"key": "Browser", "value": "Edge"}).json()

    assert body["accepted"] is False


def test_query_creates_a_session_when_missing(client):
    body = client.post("/api/v1/query", json={"text": "VPN is down"}).json()

    assert body["session"]["user"] == "User"
    assert body["answer"] is not None


def test_blank_query_is_rejected(client):
    assert client.post("/api/v1/query", json={"text": "   "}).status_code == 422


def test_clear_export_and_checklist(client):
    start_session(client)
    body = client.post("/api/v1/query", json={"text": "VPN не работает"}).json()
    answer_id = body["answer"]["answer_id"]

    checklist = client.get(f"/api/v1/answers/{answer_id}/checklist")
    assert checklist.status_code == 200
    assert checklist.text.startswith("# Troubleshooting instructions")

    export = client.get("/api/v1/session/export")
    assert "User: VPN не работает" in export.text
    assert "attachment" in export.headers["content-disposition"]

    cleared = client.delete("/api/v1/session/messages").json()
    assert cleared["session"]["messages"] == []
    assert cleared["clarification"]["awaiting"] is False
    assert client.get(f"/api/v1/answers/{answer_id}/checklist").status_code == 404


def test_escalation_success_and_prefill(client):
    start_session(client)
    answer_id = client.post("/api/v1/query", json={"text": "VPN не работает"}).json()["answer"]["answer_id"]

    form = client.get(f"/api/v1/escalations/draft/{answer_id}").json()
    assert form["project"] == "ITSUP"
    assert form["summary"] == "VPN не работает"

    form.pop("answer_id")
    response = client.post("/api/v1/escalations", json={**form, "answer_id": answer_id})

    assert response.status_code == 201
    assert response.json()["draft"]["link"].startswith("jira://draft/")


def test_escalation_is_queued_when_tracker_is_down(client, tickets):
    start_session(client)
    tickets.available = False
    payload = {"project": "ITSUP", "issue_type": "Incident", "priority": "High", "summary": "VPN down"}

    response = client.post("/api/v1/escalations", json=payload)

    assert response.status_code == 503
    assert response.json()["queued"] is True
    assert response.json()["queue_length"] == 1

    queue = client.get("/api/v1/escalations/queue").json()
    assert queue["length"] == 1
    assert queue["tracker_available"] is False
    assert queue["last_attempt"] is not None

    tickets.available = True
    drained = client.post("/api/v1/escalations/queue/drain").json()
    assert len(drained["delivered"]) == 1
    assert drained["remaining"] == 0


def test_clear_queue(client, tickets):
    tickets.available = False
    client.post("/api/v1/escalations", json={"project": "ITSUP", "issue_type": "Incident", "summary": "x"})

    assert client.delete("/api/v1/escalations/queue").json() == {"cleared": 1}
    assert client.get("/api/v1/escalations/queue").json()["length"] == 0


def test_feedback_and_summary(client):
    start_session(client)
    answer_id = client.post("/api/v1/query", json={"text": "VPN is down"}).json()["answer"]["answer_id"]

    response = client.post("/api/v1/feedback", json={"answer_id": answer_id, "helpful": True})
    assert response.status_code == 201

    too_long = client.post("/api/v1/feedback", json={"answer_id": answer_id, "helpful": False, "comment": "x" * 201})
    assert too_long.status_code == 422

    summary = client.get("/api/v1/feedback/summary").json()
    assert summary["analysis"]["total_feedback"] == 1
    assert summary["analysis"]["satisfaction_rate"] == 100.0


def test_events_and_index_status(client):
    start_session(client)
    client.post("/api/v1/query", json={"text": "VPN is down"})

    events = client.get("/api/v1/system/events", params={"kind": "answer_generated"}).json()
    assert events["count"] == 1
    assert client.get("/api/v1/system/events", params={"kind": "nope"}).status_code == 422

    status = client.get("/api/v1/system/index-status").json()
    assert {space["key"] for space in status["spaces"]} == {"ITKB", "MON"}
    assert all(space["updated_ago"].endswith("ago") for space in status["spaces"])

    assert client.post("/api/v1/system/reindex/MON").status_code == 202
    assert client.post("/api/v1/system/reindex/NOPE").status_code == 404


def test_switch_environment(client):
    start_session(client)

    assert client.put("/api/v1/session/environment", json={"environment": "prod"}).json() == {"environment": "prod"}
    assert client.get("/api/v1/session").json()["environment"] == "prod"
