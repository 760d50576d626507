from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from chat_board.configuration import AppConfig, StorageConfig
from chat_board.main import create_app
from chat_board.services.message_store import MessageStore


@pytest.fixture()
def chat_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "chat.json"


@pytest.fixture()
def store(chat_path: Path) -> MessageStore:
    return MessageStore(chat_path, lock_timeout=0.2, lock_poll_interval=0.01)


@pytest.fixture()
def client(chat_path: Path, store: MessageStore) -> Iterator[TestClient]:
    config = AppConfig(storage=StorageConfig(data_path=chat_path, lock_timeout=0.2))
    app = create_app(config, store=store)
    with TestClient(app) as test_client:
        yield test_client
