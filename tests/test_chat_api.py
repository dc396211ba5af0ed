import asyncio

import pytest
from sqlalchemy import text

from backend.services.assistant_client import AssistantUnavailable
from backend.services.fallback import SLEEP_RESPONSE
from backend.services.orchestrator import FALLBACK_ADVISORY, turn_guard
from conftest import auth_headers


@pytest.fixture(autouse=True)
def users(create_profile):
    create_profile("alice")
    create_profile("bob")


def create_session(client, user_id="alice"):
    response = client.post("/chat/sessions", headers=auth_headers(user_id))
    assert response.status_code == 201, response.text
    return response.json()


def test_requests_without_token_are_rejected(client):
    assert client.get("/chat/sessions").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/chat/sessions", headers=bad).status_code == 401


def test_token_without_profile_is_unauthorized(client):
    headers = auth_headers("ghost")

    assert client.post("/chat/sessions", headers=headers).status_code == 401
    assert client.get("/chat/sessions", headers=headers).status_code == 401
    assert client.post("/chat/sessions/1/messages", json={"message": "hi"}, headers=headers).status_code == 401


def test_create_and_list_sessions(client):
    first = create_session(client)
    second = create_session(client)
    create_session(client, "bob")

    response = client.get("/chat/sessions", headers=auth_headers("alice"))

    assert response.status_code == 200
    ids = [s["id"] for s in response.json()["sessions"]]
    assert sorted(ids) == sorted([first["id"], second["id"]])
    assert first["title"] == "New Chat"


def test_send_message_returns_both_messages(client, assistant):
    chat_session = create_session(client)

    response = client.post(
        f"/chat/sessions/{chat_session['id']}/messages",
        json={"message": "I had a long day"},
        headers=auth_headers("alice"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "answered"
    assert body["user_message"]["message"] == "I had a long day"
    assert body["user_message"]["is_bot"] is False
    assert body["assistant_message"]["message"] == assistant.reply_text
    assert body["assistant_message"]["is_bot"] is True
    assert body["used_fallback"] is False
    assert body["advisory"] is None

    transcript = client.get(
        f"/chat/sessions/{chat_session['id']}/messages", headers=auth_headers("alice"),
    ).json()["messages"]
    assert [m["message"] for m in transcript] == ["I had a long day", assistant.reply_text]


def test_history_is_sent_to_assistant(client, assistant):
    chat_session = create_session(client)
    url = f"/chat/sessions/{chat_session['id']}/messages"

    client.post(url, json={"message": "first"}, headers=auth_headers("alice"))
    client.post(url, json={"message": "second"}, headers=auth_headers("alice"))

    assert assistant.calls[1][1] == [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": assistant.reply_text},
    ]


def test_remote_failure_answers_with_fallback(client, assistant):
    assistant.error = AssistantUnavailable("down")
    chat_session = create_session(client)

    body = client.post(
        f"/chat/sessions/{chat_session['id']}/messages",
        json={"message": "I can't sleep"},
        headers=auth_headers("alice"),
    ).json()

    assert body["status"] == "answered"
    assert body["used_fallback"] is True
    assert body["advisory"] == FALLBACK_ADVISORY
    assert body["assistant_message"]["message"] == SLEEP_RESPONSE


def test_blank_message_is_ignored(client, assistant):
    chat_session = create_session(client)
    url = f"/chat/sessions/{chat_session['id']}/messages"

    response = client.post(url, json={"message": "   "}, headers=auth_headers("alice"))

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert response.json()["reason"] == "empty_message"
    assert assistant.calls == []
    assert client.get(url, headers=auth_headers("alice")).json()["messages"] == []


def test_other_users_session_is_not_found(client):
    chat_session = create_session(client, "alice")
    url = f"/chat/sessions/{chat_session['id']}/messages"

    assert client.get(url, headers=auth_headers("bob")).status_code == 404
    response = client.post(url, json={"message": "hi"}, headers=auth_headers("bob"))
    assert response.status_code == 404


def test_turn_in_flight_returns_conflict(client, assistant):
    chat_session = create_session(client)
    turn_guard.acquire(chat_session["id"])
    try:
        response = client.post(
            f"/chat/sessions/{chat_session['id']}/messages",
            json={"message": "hello"},
            headers=auth_headers("alice"),
        )
    finally:
        turn_guard.release(chat_session["id"])

    assert response.status_code == 409
    assert assistant.calls == []


def test_delete_session(client):
    chat_session = create_session(client)
    url = f"/chat/sessions/{chat_session['id']}"
    client.post(f"{url}/messages", json={"message": "hello"}, headers=auth_headers("alice"))

    assert client.delete(url, headers=auth_headers("bob")).status_code == 404
    assert client.delete(url, headers=auth_headers("alice")).status_code == 204
    assert client.get(f"{url}/messages", headers=auth_headers("alice")).status_code == 404
    assert client.delete(url, headers=auth_headers("alice")).status_code == 404


def test_store_failure_returns_service_unavailable(client, session_factory):
    chat_session = create_session(client)

    async def drop_messages_table():
        async with session_factory() as db:
            await db.execute(text("DROP TABLE chat_messages"))
            await db.commit()

    asyncio.run(drop_messages_table())

    response = client.get(f"/chat/sessions/{chat_session['id']}/messages", headers=auth_headers("alice"))
    assert response.status_code == 503


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "service": "backend"}
