import pytest
from fastapi.testclient import TestClient

from agent_configs import AgentType
from conftest import ScriptedLLM
from main import create_app
from schemas import COMMENT_RESPONSE_SCHEMA_VERSION


@pytest.fixture
def make_client(store):
    clients = []

    def _make(llm=None):
        client = TestClient(create_app(store=store, llm=llm or ScriptedLLM()))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


def test_health(make_client):
    client = make_client()

    assert client.get("/health").json() == {"status": "healthy"}


def test_comment_round_trip_uses_camel_case(make_client):
    client = make_client()

    r = client.post(
        "/api/comments",
        json={"sessionId": "live-1", "username": "山田", "comment": "こんにちは"},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["segments"] == [{"text": "こんにちは！", "emotion": "happy"}]
    assert body["response"] == "こんにちは！"
    assert body["emotion"] == "happy"
    assert body["usernameReading"] == "ヤマダ"
    assert body["isFirstTime"] is True
    assert body["shouldRespond"] is True
    assert body["schemaVersion"] == COMMENT_RESPONSE_SCHEMA_VERSION


def test_rejected_comment_returns_empty_segments(make_client, store):
    store.get_or_create_session("live-1")
    store.add_viewer("live-1", "山田", "ヤマダ")
    client = make_client(ScriptedLLM({AgentType.COMMENT_FILTER: '{"shouldRespond": false}'}))

    body = client.post(
        "/api/comments",
        json={"sessionId": "live-1", "username": "山田", "comment": "草"},
    ).json()

    assert body["shouldRespond"] is False
    assert body["segments"] == []
    assert client.get("/api/sessions/live-1/conversations").json() == []


def test_generation_outage_maps_to_bad_gateway(make_client):
    client = make_client(ScriptedLLM({AgentType.READING_GENERATOR: "__LLM_ERR__exception|refused"}))

    r = client.post(
        "/api/comments",
        json={"sessionId": "live-1", "username": "山田", "comment": "こんにちは"},
    )

    assert r.status_code == 502
    assert r.json()["detail"]["stage"] == "resolving_viewer"


def test_comment_requires_session_and_username(make_client):
    client = make_client()

    r = client.post("/api/comments", json={"sessionId": "", "username": "山田", "comment": "hi"})

    assert r.status_code == 422


def test_session_lifecycle(make_client):
    client = make_client()

    created = client.post("/api/sessions", json={"streamTitle": "朝活配信"})
    assert created.status_code == 201
    session = created.json()
    assert session["streamTitle"] == "朝活配信"
    assert session["endedAt"] is None

    fetched = client.get(f"/api/sessions/{session['id']}").json()
    assert fetched["id"] == session["id"]

    ended = client.post(f"/api/sessions/{session['id']}/end").json()
    assert ended["endedAt"] is not None


def test_start_session_with_existing_id_conflicts(make_client):
    client = make_client()
    client.post("/api/sessions", json={"streamTitle": "A", "sessionId": "fixed"})

    r = client.post("/api/sessions", json={"streamTitle": "B", "sessionId": "fixed"})

    assert r.status_code == 409


def test_unknown_session_is_404(make_client):
    client = make_client()

    assert client.get("/api/sessions/nope").status_code == 404
    assert client.post("/api/sessions/nope/end").status_code == 404
    assert client.get("/api/sessions/nope/viewers").status_code == 404


def test_viewers_and_conversations_listing(make_client):
    client = make_client()
    for comment in ("一回目", "二回目"):
        client.post(
            "/api/comments",
            json={"sessionId": "live-2", "username": "山田", "comment": comment},
        )

    viewers = client.get("/api/sessions/live-2/viewers").json()
    assert [v["usernameReading"] for v in viewers] == ["ヤマダ"]

    history = client.get("/api/sessions/live-2/conversations", params={"limit": 1}).json()
    assert [h["comment"] for h in history] == ["二回目"]

    clamped_low = client.get("/api/sessions/live-2/conversations", params={"limit": 0})
    assert clamped_low.status_code == 200
    assert [h["comment"] for h in clamped_low.json()] == ["二回目"]

    clamped_high = client.get("/api/sessions/live-2/conversations", params={"limit": 500}).json()
    assert [h["comment"] for h in clamped_high] == ["二回目", "一回目"]


def test_telemetry_summary_endpoint(make_client):
    client = make_client()
    client.post(
        "/api/comments",
        json={"sessionId": "live-3", "username": "山田", "comment": "こんにちは"},
    )

    summary = client.get("/api/telemetry/summary").json()

    assert summary["counts"]["turn_completed"] == 1


def test_telemetry_summary_survives_unreadable_log(make_client, telemetry_log):
    telemetry_log.mkdir()
    client = make_client()

    r = client.get("/api/telemetry/summary")

    assert r.status_code == 200
    body = r.json()
    assert body["counts"] == {}
    assert body["read_error"]
