"""HTTP and WebSocket tests against the full application."""

import pytest
from fastapi.testclient import TestClient

from recall_agent.application.api.api_server import create_app
from recall_agent.application.websocket.connection_manager import user_room
from recall_agent.domain.models.errors import ProviderError
from recall_agent.infrastructure.config.settings import Settings

from conftest import TEST_SECRET, FakeEmbeddingProvider, FakeGenerationProvider


@pytest.fixture
def providers():
    return FakeEmbeddingProvider(), FakeGenerationProvider(reply="Hi there!")


@pytest.fixture
def client(tmp_path, providers):
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        jwt_secret=TEST_SECRET,
        log_format="console",
    )
    embedder, generator = providers
    app = create_app(settings, embedding_provider=embedder, generation_provider=generator)
    with TestClient(app) as test_client:
        yield test_client


def register(client, email="alice@example.com", password="hunter2"):
    response = client.post("/signup", json={"email": email, "password": password})
    assert response.status_code == 200
    user_id = response.json()["userId"]
    token = client.post("/login", json={"email": email, "password": password}).json()["token"]
    return user_id, token


# ============================================================================
# Auth
# ============================================================================


def test_signup_and_login(client):
    user_id, token = register(client)
    assert isinstance(user_id, int)
    assert token


def test_duplicate_signup_is_rejected(client):
    register(client)
    response = client.post("/signup", json={"email": "alice@example.com", "password": "x"})
    assert response.status_code == 400


def test_login_with_wrong_password(client):
    register(client)
    response = client.post("/login", json={"email": "alice@example.com", "password": "nope"})
    assert response.status_code == 401


# ============================================================================
# REST turn + listings
# ============================================================================


def test_chat_save_note_flow(client, providers):
    _, generator = providers
    _, token = register(client)
    generator.reply = "ACTION_SAVE_NOTE: call mom"

    response = client.post("/chat", json={"token": token, "message": "remember to call mom"})
    assert response.status_code == 200
    body = response.json()
    assert "call mom" in body["response"]
    conversation_id = body["conversationId"]

    history = client.get(f"/history/{conversation_id}", headers={"Authorization": f"Bearer {token}"})
    assert history.status_code == 200
    assert [(m["role"], m["content"]) for m in history.json()] == [
        ("user", "remember to call mom"),
        ("assistant", body["response"]),
    ]

    notes = client.post("/my-notes", json={"token": token}).json()
    assert [(n["content"], n["has_embedding"]) for n in notes] == [("call mom", True)]


def test_chat_continues_given_conversation(client):
    _, token = register(client)
    first = client.post("/chat", json={"token": token, "message": "one"}).json()
    second = client.post(
        "/chat", json={"token": token, "message": "two", "conversationId": first["conversationId"]}
    ).json()

    assert second["conversationId"] == first["conversationId"]


def test_chat_with_bad_token_does_nothing(client, providers):
    embedder, generator = providers

    response = client.post("/chat", json={"token": "bogus", "message": "remember to call mom"})

    assert response.status_code == 401
    assert embedder.calls == []
    assert generator.prompts == []


def test_chat_provider_failure_maps_to_bad_gateway(client, providers):
    _, generator = providers
    _, token = register(client)
    generator.error = ProviderError("generation", "quota exceeded")

    response = client.post("/chat", json={"token": token, "message": "hi"})

    assert response.status_code == 502
    assert response.json()["error_code"] == "provider_error"


def test_history_requires_bearer_token(client):
    assert client.get("/history/1").status_code == 401


def test_my_notes_requires_token(client):
    assert client.post("/my-notes", json={}).status_code == 401


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["active_connections"] == 0


# ============================================================================
# WebSocket channel
# ============================================================================


def test_websocket_join_and_turn(client, providers):
    _, generator = providers
    user_id, token = register(client)
    generator.reply = "Nice to meet you."

    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["status"] == "connected"

        ws.send_json({"type": "join", "token": token})
        joined = ws.receive_json()
        assert joined["status"] == "joined"
        assert joined["room"] == user_room(user_id)

        ws.send_json({"type": "user_message", "text": "hello", "token": token, "userId": user_id})
        reply = ws.receive_json()

    assert reply["type"] == "assistant_message"
    assert reply["text"] == "Nice to meet you."
    assert isinstance(reply["conversation_id"], int)


def test_websocket_output_reaches_every_connection_of_the_user(client):
    _, token = register(client)

    with client.websocket_connect("/ws") as sender, client.websocket_connect("/ws") as watcher:
        sender.receive_json()
        watcher.receive_json()
        watcher.send_json({"type": "join", "token": token})
        watcher.receive_json()

        sender.send_json({"type": "user_message", "text": "ping", "token": token})

        assert sender.receive_json()["text"] == "Hi there!"
        assert watcher.receive_json()["text"] == "Hi there!"


def test_websocket_rejects_bad_credentials_without_work(client, providers):
    embedder, generator = providers

    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "user_message", "text": "remember to call mom", "token": "bogus"})
        error = ws.receive_json()

    assert error["type"] == "error"
    assert error["error_code"] == "unauthorized"
    assert embedder.calls == []
    assert generator.prompts == []


def test_websocket_rejects_mismatched_user_id(client, providers):
    _, generator = providers
    user_id, token = register(client)

    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "user_message", "text": "hi", "token": token, "userId": user_id + 1})
        error = ws.receive_json()

    assert error["error_code"] == "unauthorized"
    assert generator.prompts == []


def test_websocket_unknown_event(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"type": "dance"})
        error = ws.receive_json()

    assert error["error_code"] == "invalid_event"


def test_websocket_survives_non_json_frame(client):
    _, token = register(client)

    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text("not json")
        error = ws.receive_json()

        ws.send_json({"type": "join", "token": token})
        joined = ws.receive_json()

    assert error["type"] == "error"
    assert error["error_code"] == "invalid_event"
    assert joined["status"] == "joined"


def test_health_reports_turns_by_outcome(client, providers):
    _, generator = providers
    _, token = register(client)
    before = client.get("/health").json()["metrics"]

    client.post("/chat", json={"token": token, "message": "hi"})
    generator.error = ProviderError("generation", "quota exceeded")
    client.post("/chat", json={"token": token, "message": "hi again"})

    after = client.get("/health").json()["metrics"]
    assert after["turns.succeeded"] == before.get("turns.succeeded", 0) + 1
    assert after["turns.failed"] == before.get("turns.failed", 0) + 1
