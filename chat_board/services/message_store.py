from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from chat_board.models import ChatMessage

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"


class ChatStoreError(Exception):
    """Base error for the message store."""


class MessageValidationError(ChatStoreError, ValueError):
    """Message text is missing or blank after trimming."""


class StorageReadError(ChatStoreError):
    """Backing file is missing, unreadable or not a message document."""


class StorageWriteError(ChatStoreError):
    """Append could not be made durable (lock, read-back or write failure)."""


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_directory(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _empty_document() -> Dict[str, List[Any]]:
    return {"messages": []}


def parse_document(raw: str) -> Dict[str, List[Any]]:
    """Parse the backing file text into ``{"messages": [...]}``.

    Raises StorageReadError for anything that is not a JSON object holding a
    list under ``messages``. Blank text counts as an empty document.
    """
    if not raw.strip():
        return _empty_document()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageReadError(f"backing file is not valid JSON: {exc}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("messages"), list):
        raise StorageReadError("backing file has no 'messages' list")
    return data


def _valid_messages(entries: List[Any], source: Path) -> List[ChatMessage]:
    messages: List[ChatMessage] = []
    for index, entry in enumerate(entries):
        try:
            messages.append(ChatMessage.model_validate(entry))
        except ValidationError:
            logger.warning("skipping malformed chat entry at index %d in %s", index, source)
    return messages


def _next_message_id(messages: List[ChatMessage]) -> int:
    return max((item.id for item in messages), default=0) + 1


class MessageStore:
    """Append-only message log kept in a single JSON file."""

    def __init__(
        self,
        path: Path,
        *,
        lock_timeout: float = 10.0,
        lock_poll_interval: float = 0.05,
    ):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + LOCK_SUFFIX)
        self.lock_timeout = lock_timeout
        self.lock_poll_interval = lock_poll_interval

    def ensure_exists(self) -> None:
        _ensure_directory(self.path.parent)
        if self.path.exists():
            return
        with self._exclusive_lock():
            if not self.path.exists():
                self._write_document(_empty_document())
                logger.info("created empty chat store at %s", self.path)

    def _read_document(self) -> Dict[str, List[Any]]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return _empty_document()
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageReadError(f"cannot read {self.path}: {exc}") from exc
        return parse_document(raw)

    def _write_document(self, document: Dict[str, List[Any]]) -> None:
        _ensure_directory(self.path.parent)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                json.dump(document, fp, ensure_ascii=False, indent=2)
                fp.flush()
                os.fsync(fp.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    @contextmanager
    def _exclusive_lock(self) -> Iterator[None]:
        try:
            _ensure_directory(self.lock_path.parent)
            handle = self.lock_path.open("a+")
        except OSError as exc:
            raise StorageWriteError(f"cannot open lock file {self.lock_path}: {exc}") from exc

        deadline = time.monotonic() + self.lock_timeout
        try:
            while True:
                try:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise StorageWriteError(
                            f"timed out after {self.lock_timeout:.1f}s waiting for {self.lock_path}"
                        ) from None
                    time.sleep(self.lock_poll_interval)
                except OSError as exc:
                    raise StorageWriteError(f"cannot lock {self.lock_path}: {exc}") from exc
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()

    def list_messages(self) -> List[ChatMessage]:
        """Return every stored message ordered by id; unreadable stores read as empty."""
        try:
            document = self._read_document()
        except StorageReadError as exc:
            logger.warning("treating chat store as empty: %s", exc)
            return []

        messages = _valid_messages(document["messages"], self.path)
        messages.sort(key=lambda item: item.id)
        return messages

    def append(self, raw_text: Optional[str], user_id: str) -> ChatMessage:
        if not isinstance(raw_text, str):
            raise MessageValidationError("Invalid message")
        text = raw_text.strip()
        if not text:
            raise MessageValidationError("Empty message")

        with self._exclusive_lock():
            try:
                document = self._read_document()
            except StorageReadError as exc:
                # never overwrite a document we could not understand
                raise StorageWriteError(f"refusing to rewrite unreadable store: {exc}") from exc

            entries = document["messages"]
            message = ChatMessage(
                id=_next_message_id(_valid_messages(entries, self.path)),
                user=user_id,
                message=text,
                timestamp=_utc_now_iso(),
            )
            entries.append(message.model_dump())
            try:
                self._write_document(document)
            except OSError as exc:
                raise StorageWriteError(f"cannot write {self.path}: {exc}") from exc

        logger.info("appended message #%d from user %s", message.id, message.user)
        return message


__all__ = [
    "ChatStoreError",
    "MessageStore",
    "MessageValidationError",
    "StorageReadError",
    "StorageWriteError",
    "parse_document",
]
