"""Events pushed by the chat service outside any request/response pair."""
from __future__ import annotations

from dataclasses import dataclass

from ..models import Message


@dataclass(frozen=True)
class Connected:
    pass


@dataclass(frozen=True)
class Disconnected:
    reason: str = ""


@dataclass(frozen=True)
class NewMessage:
    message: Message


@dataclass(frozen=True)
class ConversationsChanged:
    pass


@dataclass(frozen=True)
class FatalError:
    error: str


@dataclass(frozen=True)
class TemporaryError:
    error: str


@dataclass(frozen=True)
class QrReady:
    url: str


@dataclass(frozen=True)
class Paired:
    # Session blob to persist; opaque to the UI.
    session: dict


@dataclass(frozen=True)
class ClientReady:
    pass


PushEvent = (
    Connected
    | Disconnected
    | NewMessage
    | ConversationsChanged
    | FatalError
    | TemporaryError
    | QrReady
    | Paired
    | ClientReady
)
