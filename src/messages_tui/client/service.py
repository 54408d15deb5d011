from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from ..models import Conversation, Message
from .events import PushEvent

DEFAULT_CONVERSATION_LIMIT = 25
DEFAULT_MESSAGE_LIMIT = 50


class ChatServiceError(Exception):
    """Base error for chat service communication."""
    pass


class AuthError(ChatServiceError):
    """Session rejected or missing credentials."""
    pass


class ServiceUnavailableError(ChatServiceError):
    """Service could not be reached."""
    pass


class ChatService(ABC):
    """Chat protocol collaborator.

    Request methods block and are meant to run in a worker thread. The two
    feeds are async iterators consumed on the UI loop; they end when the
    underlying connection closes.
    """

    @abstractmethod
    def restore(self, session: dict) -> bool:
        """Resume a saved session. False when the session is no longer valid."""

    @abstractmethod
    def start_pairing(self) -> None:
        """Begin QR pairing; progress arrives on :meth:`pairing_events`."""

    @abstractmethod
    def export_session(self) -> dict:
        """Current session blob, suitable for :class:`SessionStore`."""

    @abstractmethod
    def connect(self) -> None:
        ...

    @abstractmethod
    def list_conversations(self, limit: int = DEFAULT_CONVERSATION_LIMIT) -> list[Conversation]:
        ...

    @abstractmethod
    def fetch_messages(
        self, conversation_id: str, limit: int = DEFAULT_MESSAGE_LIMIT
    ) -> list[Message]:
        ...

    @abstractmethod
    def send_message(self, conversation_id: str, text: str) -> None:
        ...

    @abstractmethod
    def mark_read(self, conversation_id: str, message_id: str) -> None:
        ...

    @abstractmethod
    def send_reaction(self, conversation_id: str, message_id: str, emoji: str) -> None:
        ...

    @abstractmethod
    def events(self) -> AsyncIterator[PushEvent]:
        ...

    @abstractmethod
    def pairing_events(self) -> AsyncIterator[PushEvent]:
        ...

    def close(self) -> None:
        return None
