from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from chat_board.services.message_store import MessageStore

# TestClient reports its peer as "testclient"; sha256 prefix 846488f1
TESTCLIENT_USER_ID = "2221181169"


def test_startup_creates_backing_file(client: TestClient, chat_path: Path):
    assert json.loads(chat_path.read_text(encoding="utf-8")) == {"messages": []}


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_empty_board(client: TestClient):
    response = client.get("/api/chat")
    assert response.status_code == 200
    assert response.json() == {"messages": []}


def test_post_json_then_list(client: TestClient):
    response = client.post("/api/chat", json={"message": "  hello  "})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["entry"]["id"] == 1
    assert body["entry"]["message"] == "hello"
    assert body["entry"]["user"] == TESTCLIENT_USER_ID

    client.post("/api/chat", json={"message": "world"})
    listed = client.get("/api/chat").json()["messages"]
    assert [(item["id"], item["message"]) for item in listed] == [(1, "hello"), (2, "world")]


def test_post_form_body(client: TestClient):
    response = client.post("/api/chat", data={"message": "from a form"})
    assert response.status_code == 200
    assert response.json()["entry"]["message"] == "from a form"


def test_forwarded_for_header_sets_user(client: TestClient):
    response = client.post(
        "/api/chat",
        json={"message": "proxied"},
        headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    # sha256("203.0.113.7") starts with fec52565
    assert response.json()["entry"]["user"] == "4274333029"


@pytest.mark.parametrize("payload", [{"message": ""}, {"message": "   "}, {}, {"text": "wrong field"}])
def test_post_empty_message_is_rejected(client: TestClient, payload: dict):
    response = client.post("/api/chat", json=payload)

    assert response.status_code == 400
    assert response.json() == {"error": "Empty message"}
    assert client.get("/api/chat").json() == {"messages": []}


def test_post_non_string_message_is_rejected(client: TestClient):
    response = client.post("/api/chat", json={"message": 5})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid message"}


def test_post_malformed_json_is_rejected(client: TestClient):
    response = client.post(
        "/api/chat",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


def test_post_storage_failure_returns_500(
    client: TestClient, store: MessageStore, monkeypatch: pytest.MonkeyPatch
):
    def _fail(document):
        raise OSError("read-only file system")

    monkeypatch.setattr(store, "_write_document", _fail)
    response = client.post("/api/chat", json={"message": "lost"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to save message"}


def test_list_tolerates_corrupt_file(client: TestClient, chat_path: Path):
    chat_path.write_text("{torn write", encoding="utf-8")
    response = client.get("/api/chat")
    assert response.status_code == 200
    assert response.json() == {"messages": []}


def test_chat_page_shows_caller_id(client: TestClient):
    response = client.get("/chat")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert f"User {TESTCLIENT_USER_ID}" in response.text
    assert "$user_id" not in response.text


def test_root_redirects_to_chat(client: TestClient):
    response = client.get("/", follow_redirects=False)
    assert response.status_code in (302, 307)
    assert response.headers["location"] == "/chat"


def test_cors_headers_present(client: TestClient):
    response = client.get("/api/chat", headers={"Origin": "https://example.org"})
    assert response.headers["access-control-allow-origin"] == "*"


def test_storage_failure_is_logged_with_cause(
    client: TestClient,
    store: MessageStore,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
):
    def _fail(document):
        raise OSError("read-only file system")

    monkeypatch.setattr(store, "_write_document", _fail)
    with caplog.at_level(logging.ERROR, logger="chat_board.main"):
        client.post("/api/chat", json={"message": "lost"})

    records = [record for record in caplog.records if record.name == "chat_board.main"]
    assert records and records[0].exc_info is not None
    assert isinstance(records[0].exc_info[1].__cause__, OSError)
