"""Keyboard state for the conversation list and the message pane."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..models import Conversation, Message
from .fuzzy import fuzzy_filter

REACTION_KEY = "+"
DEFAULT_REACTION = "👍"


class ListAction(Enum):
    MOVED = "moved"
    SELECTED = "selected"


@dataclass(frozen=True)
class ReactRequest:
    message: Message
    emoji: str = DEFAULT_REACTION


def delete_word_backward(text: str) -> str:
    end = len(text)
    while end > 0 and text[end - 1] == " ":
        end -= 1
    start = end
    while start > 0 and text[start - 1] != " ":
        start -= 1
    return text[:start]


class ConversationListState:
    """Selection, scrolling and ``/`` search over the conversation list."""

    def __init__(self) -> None:
        self.conversations: list[Conversation] = []
        self.selected = 0
        self.offset = 0
        self.height = 20
        self.search_mode = False
        self.query = ""
        self._pending_g = False

    @property
    def capturing_text(self) -> bool:
        return self.search_mode

    def visible_count(self) -> int:
        # two rows per conversation
        return max(1, (self.height - 3) // 2)

    def filtered(self) -> list[Conversation]:
        return fuzzy_filter(self.query, self.conversations, key=lambda conv: conv.name)

    def selected_conversation(self) -> Conversation | None:
        items = self.filtered()
        if 0 <= self.selected < len(items):
            return items[self.selected]
        return None

    def set_conversations(self, conversations: list[Conversation]) -> None:
        current = self.selected_conversation()
        self.conversations = list(conversations)
        items = self.filtered()
        if current is not None:
            for index, conv in enumerate(items):
                if conv.id == current.id:
                    self.selected = index
                    break
        self.selected = max(0, min(self.selected, len(items) - 1))
        self._scroll_into_view()

    def handle_key(self, key: str) -> ListAction | None:
        if self.search_mode:
            return self._handle_search(key)

        if key == "g":
            if self._pending_g:
                self._pending_g = False
                return self._move_to(0)
            self._pending_g = True
            return None
        self._pending_g = False

        count = len(self.filtered())
        if key in ("up", "k"):
            return self._move_to(self.selected - 1)
        if key in ("down", "j"):
            return self._move_to(self.selected + 1)
        if key == "G":
            return self._move_to(count - 1)
        if key == "/":
            self.search_mode = True
            self.query = ""
            return None
        if key == "enter" and self.selected_conversation() is not None:
            return ListAction.SELECTED
        return None

    def _handle_search(self, key: str) -> ListAction | None:
        if key == "escape":
            self.search_mode = False
            self.query = ""
        elif key == "enter":
            # keep the highlighted match selected
            self.search_mode = False
            return None
        elif key == "backspace":
            if not self.query:
                return None
            self.query = self.query[:-1]
        elif key == "ctrl+u":
            self.query = ""
        elif key == "ctrl+w":
            self.query = delete_word_backward(self.query)
        elif len(key) == 1 and key.isprintable():
            self.query += key
        else:
            return None
        self.selected = 0
        self.offset = 0
        return ListAction.MOVED if self.selected_conversation() is not None else None

    def _move_to(self, index: int) -> ListAction | None:
        count = len(self.filtered())
        if count == 0:
            return None
        index = max(0, min(index, count - 1))
        if index == self.selected:
            return None
        self.selected = index
        self._scroll_into_view()
        return ListAction.MOVED

    def _scroll_into_view(self) -> None:
        visible = self.visible_count()
        if self.selected < self.offset:
            self.offset = self.selected
        elif self.selected >= self.offset + visible:
            self.offset = self.selected - visible + 1
        self.offset = max(0, self.offset)


class MessageListState:
    """Scroll position and selection inside the open conversation."""

    def __init__(self) -> None:
        self.conversation_id: str | None = None
        self.messages: list[Message] = []
        self.selected = 0
        self.offset = 0
        self.height = 20
        self._pending_g = False

    def visible_count(self) -> int:
        # rough: sender, body and footer per message
        return max(1, (self.height - 3) // 3)

    def selected_message(self) -> Message | None:
        if 0 <= self.selected < len(self.messages):
            return self.messages[self.selected]
        return None

    def set_messages(self, conversation_id: str, messages: list[Message]) -> None:
        self.conversation_id = conversation_id
        self.messages = list(messages)
        self._scroll_to_bottom()

    def add_message(self, message: Message) -> bool:
        if message.conversation_id != self.conversation_id:
            return False
        for index, current in enumerate(self.messages):
            if current.id == message.id:
                self.messages[index] = message
                return True
        self.messages.append(message)
        self._scroll_to_bottom()
        return True

    def handle_key(self, key: str) -> ReactRequest | None:
        if key == "g":
            if self._pending_g:
                self._pending_g = False
                self.selected = 0
                self.offset = 0
            else:
                self._pending_g = True
            return None
        self._pending_g = False

        count = len(self.messages)
        page = self.visible_count()
        if key in ("up", "k"):
            if self.selected > 0:
                self.selected -= 1
                self.offset = min(self.offset, self.selected)
        elif key in ("down", "j"):
            if self.selected < count - 1:
                self.selected += 1
                if self.selected >= self.offset + page:
                    self.offset = self.selected - page + 1
        elif key in ("pageup", "ctrl+u"):
            self.selected = max(0, self.selected - page)
            self.offset = max(0, self.offset - page)
        elif key in ("pagedown", "ctrl+d"):
            self.selected = max(0, min(count - 1, self.selected + page))
            self.offset = min(max(0, count - page), self.offset + page)
        elif key == "home":
            self.selected = 0
            self.offset = 0
        elif key in ("end", "G"):
            self._scroll_to_bottom()
        elif key == REACTION_KEY:
            message = self.selected_message()
            if message is not None:
                return ReactRequest(message)
        return None

    def _scroll_to_bottom(self) -> None:
        count = len(self.messages)
        self.selected = max(0, count - 1)
        self.offset = max(0, count - self.visible_count())
