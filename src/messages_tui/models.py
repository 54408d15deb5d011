from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class MessageStatus(Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


STATUS_MARKS: dict[MessageStatus, str] = {
    MessageStatus.SENT: "",
    MessageStatus.DELIVERED: "✓",
    MessageStatus.READ: "✓✓",
    MessageStatus.FAILED: "✗",
}


@dataclass(frozen=True)
class Conversation:
    id: str
    name: str
    latest_message: str = ""
    latest_timestamp: int = 0  # epoch ms, 0 when unknown
    latest_message_id: str | None = None
    unread: bool = False
    is_group: bool = False
    participants: tuple[str, ...] = ()


@dataclass(frozen=True)
class Message:
    id: str
    conversation_id: str
    content: str
    timestamp: int  # epoch ms
    sender_id: str = ""
    sender_name: str = ""
    is_from_me: bool = False
    status: MessageStatus = MessageStatus.SENT
    reactions: tuple[str, ...] = field(default_factory=tuple)

    @property
    def status_mark(self) -> str:
        if not self.is_from_me:
            return ""
        return STATUS_MARKS.get(self.status, "")


def now_ms() -> int:
    return int(time.time() * 1000)


def format_relative_time(timestamp_ms: int, now: int) -> str:
    """Compact age label for the conversation list: now/5m/3h/2d, else 'Jan 2'."""
    if timestamp_ms <= 0:
        return ""
    delta_seconds = max(0, now - timestamp_ms) / 1000
    if delta_seconds < 60:
        return "now"
    if delta_seconds < 3600:
        return f"{int(delta_seconds // 60)}m"
    if delta_seconds < 86400:
        return f"{int(delta_seconds // 3600)}h"
    if delta_seconds < 7 * 86400:
        return f"{int(delta_seconds // 86400)}d"
    stamp = time.localtime(timestamp_ms / 1000)
    return f"{time.strftime('%b', stamp)} {stamp.tm_mday}"


def format_clock(timestamp_ms: int) -> str:
    """HH:MM display format used in the message pane."""
    return time.strftime("%H:%M", time.localtime(timestamp_ms / 1000))
