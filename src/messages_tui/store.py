"""Session persistence and the in-memory conversation cache."""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from .config import CONFIG_DIR
from .models import Conversation, Message

logger = logging.getLogger(__name__)

_DEFAULT_SESSION_PATH = CONFIG_DIR / "session.json"


class StoreError(Exception):
    """Session file exists but cannot be read, parsed or written."""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SessionStore:
    """Pairing session blob persisted as JSON with owner-only permissions.

    The blob is opaque apart from ``created_at`` and ``last_used``, which the
    store maintains itself.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else _DEFAULT_SESSION_PATH

    def load_session(self) -> dict | None:
        """Return the stored blob, ``None`` when there is none.

        Raises StoreError when the file is unreadable or corrupt.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreError(f"failed to read session file {self.path}: {exc}") from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"corrupt session file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"corrupt session file {self.path}: not an object")
        return data

    def save_session(self, blob: dict) -> dict:
        """Atomically overwrite the session file and return what was written."""
        record = dict(blob)
        record.setdefault("created_at", _utc_now())
        record["last_used"] = _utc_now()
        payload = json.dumps(record, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".session-", dir=self.path.parent)
        except OSError as exc:
            raise StoreError(f"failed to save session: {exc}") from exc
        try:
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StoreError(f"failed to save session: {exc}") from exc
        logger.info("Session saved to %s", self.path)
        return record

    def clear_session(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StoreError(f"failed to clear session: {exc}") from exc
        logger.info("Session cleared at %s", self.path)


class ConversationCache:
    """Conversations and per-conversation messages.

    Mutated only from the UI loop. The lock exists so background code can
    take consistent snapshots.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}

    def set_conversations(self, conversations: list[Conversation]) -> None:
        with self._lock:
            self._conversations = {conv.id: conv for conv in conversations}

    def conversations(self) -> list[Conversation]:
        """Snapshot sorted newest first."""
        with self._lock:
            items = list(self._conversations.values())
        return sorted(items, key=lambda conv: conv.latest_timestamp, reverse=True)

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            return self._conversations.get(conversation_id)

    def set_messages(self, conversation_id: str, messages: list[Message]) -> None:
        with self._lock:
            self._messages[conversation_id] = list(messages)

    def messages(self, conversation_id: str) -> list[Message]:
        with self._lock:
            return list(self._messages.get(conversation_id, ()))

    def add_message(self, message: Message) -> None:
        """Append (or replace by id) and bump the conversation's latest fields."""
        with self._lock:
            existing = self._messages.setdefault(message.conversation_id, [])
            for index, current in enumerate(existing):
                if current.id == message.id:
                    existing[index] = message
                    break
            else:
                existing.append(message)

            conv = self._conversations.get(message.conversation_id)
            if conv is not None:
                self._conversations[conv.id] = replace(
                    conv,
                    latest_message=message.content,
                    latest_timestamp=message.timestamp,
                    latest_message_id=message.id,
                    unread=conv.unread or not message.is_from_me,
                )

    def mark_read(self, conversation_id: str) -> None:
        with self._lock:
            conv = self._conversations.get(conversation_id)
            if conv is not None and conv.unread:
                self._conversations[conversation_id] = replace(conv, unread=False)
