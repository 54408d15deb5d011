"""Immutable inbound events consumed by :class:`SessionController`.

Every producer (keyboard, resize, background workers, push feeds) builds
one of these and posts it; nothing else crosses into session state.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..client.events import PushEvent
from ..models import Conversation, Message


class CommandKind(Enum):
    LIST = "list"
    FETCH = "fetch"
    SEND = "send"
    MARK_READ = "mark_read"
    REACT = "react"
    EDITOR = "editor"
    RESTORE = "restore"
    CONNECT = "connect"
    SAVE_SESSION = "save_session"


@dataclass(frozen=True)
class PendingCommand:
    kind: CommandKind
    key: str | None = None


@dataclass(frozen=True)
class KeyPress:
    key: str
    character: str | None = None

    @property
    def name(self) -> str:
        """The printable character when there is one, else the key name.

        ``$`` arrives from the terminal as ``dollar_sign``; state machines
        want the character.
        """
        char = self.character
        if char is not None and len(char) == 1 and char.isprintable():
            if "+" not in self.key or self.key.startswith("shift+"):
                return char
        return self.key

    @property
    def printable(self) -> str | None:
        name = self.name
        return name if len(name) == 1 else None


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class ConversationsLoaded:
    command: PendingCommand
    conversations: tuple[Conversation, ...]


@dataclass(frozen=True)
class MessagesLoaded:
    command: PendingCommand
    conversation_id: str
    messages: tuple[Message, ...]


@dataclass(frozen=True)
class MessageSent:
    command: PendingCommand
    conversation_id: str
    text: str


@dataclass(frozen=True)
class MarkedRead:
    command: PendingCommand
    conversation_id: str


@dataclass(frozen=True)
class ReactionSent:
    command: PendingCommand
    conversation_id: str
    message_id: str
    emoji: str


@dataclass(frozen=True)
class EditorFinished:
    command: PendingCommand
    text: str


@dataclass(frozen=True)
class EditorCancelled:
    command: PendingCommand


@dataclass(frozen=True)
class SessionRestored:
    command: PendingCommand


@dataclass(frozen=True)
class PairingStarted:
    command: PendingCommand


@dataclass(frozen=True)
class ClientConnected:
    command: PendingCommand


@dataclass(frozen=True)
class SessionSaved:
    command: PendingCommand


@dataclass(frozen=True)
class OperationFailed:
    command: PendingCommand
    error: str
    # Text to hand back to the editor when a send fails.
    text: str | None = None


@dataclass(frozen=True)
class PushReceived:
    event: PushEvent


CommandResult = (
    ConversationsLoaded
    | MessagesLoaded
    | MessageSent
    | MarkedRead
    | ReactionSent
    | EditorFinished
    | EditorCancelled
    | SessionRestored
    | PairingStarted
    | ClientConnected
    | SessionSaved
    | OperationFailed
)

InboundEvent = KeyPress | Resize | CommandResult | PushReceived
