"""Modal (vim-style) single-line message editor.

Pure state machine: :meth:`ModalEditor.handle_key` takes a key name and
returns an intent for the caller to act on (send, open external editor) or
``None``. No I/O happens here.

Key names are the printable character for printable keys (``"$"``, ``"A"``,
``" "``) and Textual key names otherwise (``"escape"``, ``"enter"``,
``"ctrl+w"``).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

CHAR_LIMIT = 5000
PREVIEW_CHARS = 30


class Mode(Enum):
    INSERT = "insert"
    NORMAL = "normal"


class PendingAction(Enum):
    NONE = "none"
    FIND_FORWARD = "find_forward"
    FIND_BACKWARD = "find_backward"
    CHANGE = "change"
    DELETE = "delete"


@dataclass(frozen=True)
class SubmitRequest:
    text: str


@dataclass(frozen=True)
class OpenEditorRequest:
    initial: str


EditorIntent = SubmitRequest | OpenEditorRequest


def draft_preview(text: str) -> str:
    """Single-line stand-in shown while a multi-line draft is staged."""
    lines = text.split("\n")
    first = lines[0]
    if len(first) > PREVIEW_CHARS:
        first = first[:PREVIEW_CHARS] + "..."
    return f"{first} [+{len(lines) - 1} lines]"


class ModalEditor:
    def __init__(self, char_limit: int = CHAR_LIMIT) -> None:
        self.char_limit = char_limit
        self.text = ""
        self.cursor = 0
        self.mode = Mode.INSERT
        self.pending = PendingAction.NONE
        self.last_find: str | None = None
        self.last_find_dir = 1
        self.draft = ""
        self.sending = False

    # -- external API ------------------------------------------------------

    def reset_mode(self) -> None:
        """Called whenever the input panel gains focus."""
        self.mode = Mode.INSERT
        self.pending = PendingAction.NONE

    def set_value(self, value: str) -> None:
        """Load text from the external editor.

        Multi-line text is staged as the draft and the buffer shows a preview.
        Editing the preview afterwards drops the draft.
        """
        if "\n" in value:
            self._set_text(draft_preview(value))
            self.draft = value
        else:
            self._set_text(value)
        self.cursor = len(self.text)

    def clear(self) -> None:
        self.text = ""
        self.cursor = 0
        self.draft = ""

    def send_finished(self) -> None:
        self.sending = False

    def send_failed(self, text: str | None = None) -> None:
        """Clear the sending flag and give ``text`` back if nothing new was typed."""
        self.sending = False
        if text and not self.text and not self.draft:
            self.set_value(text)

    def content(self) -> str:
        """What Enter would send right now."""
        content = self.draft.strip()
        if not content:
            content = self.text.strip()
        return content

    def handle_key(self, key: str) -> EditorIntent | None:
        if self.mode is Mode.NORMAL:
            if self.pending is not PendingAction.NONE:
                self._handle_pending(key)
                return None
            return self._handle_normal(key)
        return self._handle_insert(key)

    # -- modes -------------------------------------------------------------

    def _submit(self) -> SubmitRequest | None:
        if self.sending:
            return None
        content = self.content()
        if not content:
            return None
        self.clear()
        self.sending = True
        return SubmitRequest(content)

    def _handle_insert(self, key: str) -> EditorIntent | None:
        if key == "escape":
            self.mode = Mode.NORMAL
            return None
        if key == "enter":
            return self._submit()

        if key == "backspace":
            if self.cursor > 0:
                self._set_text(self.text[: self.cursor - 1] + self.text[self.cursor :])
                self.cursor -= 1
        elif key == "delete":
            self._delete_char_at_cursor()
        elif key == "left":
            self.cursor = max(0, self.cursor - 1)
        elif key == "right":
            self.cursor = min(len(self.text), self.cursor + 1)
        elif key in ("home", "ctrl+a"):
            self.cursor = 0
        elif key in ("end", "ctrl+e"):
            self.cursor = len(self.text)
        elif key == "ctrl+u":
            self._delete_to_beginning_of_line()
        elif key == "ctrl+k":
            self._delete_to_end_of_line()
        elif key == "ctrl+w":
            self._delete_word_backward()
        elif len(key) == 1 and key.isprintable():
            if len(self.text) < self.char_limit:
                self._set_text(self.text[: self.cursor] + key + self.text[self.cursor :])
                self.cursor += 1
        return None

    def _handle_normal(self, key: str) -> EditorIntent | None:
        text_len = len(self.text)

        if key == "i":
            self.mode = Mode.INSERT
        elif key == "a":
            self.mode = Mode.INSERT
            self.cursor = min(text_len, self.cursor + 1)
        elif key == "A":
            self.mode = Mode.INSERT
            self.cursor = text_len
        elif key == "I":
            self.mode = Mode.INSERT
            self.cursor = 0
        elif key == "v":
            return OpenEditorRequest(self.draft or self.text)
        elif key == "d":
            self.pending = PendingAction.DELETE
        elif key == "D":
            self._delete_to_end_of_line()
        elif key == "c":
            self.pending = PendingAction.CHANGE
        elif key == "C":
            self._delete_to_end_of_line()
            self.mode = Mode.INSERT
        elif key == "f":
            self.pending = PendingAction.FIND_FORWARD
        elif key == "F":
            self.pending = PendingAction.FIND_BACKWARD
        elif key == ";":
            if self.last_find is not None:
                self._find(self.last_find, self.last_find_dir)
        elif key == ",":
            if self.last_find is not None:
                self._find(self.last_find, -self.last_find_dir)
        elif key == "0":
            self.cursor = 0
        elif key == "$":
            self.cursor = text_len
        elif key == "h":
            self.cursor = max(0, self.cursor - 1)
        elif key == "l":
            self.cursor = min(text_len, self.cursor + 1)
        elif key == "w":
            self._move_to_next_word()
        elif key == "b":
            self._move_to_prev_word()
        elif key == "e":
            self._move_to_end_of_word()
        elif key == "x":
            self._delete_char_at_cursor()
        elif key == "enter":
            return self._submit()
        elif key == "escape":
            self.pending = PendingAction.NONE
        return None

    def _handle_pending(self, key: str) -> None:
        action = self.pending
        self.pending = PendingAction.NONE
        if key == "escape":
            return

        if action in (PendingAction.FIND_FORWARD, PendingAction.FIND_BACKWARD):
            if len(key) != 1:
                return
            direction = 1 if action is PendingAction.FIND_FORWARD else -1
            self.last_find = key
            self.last_find_dir = direction
            self._find(key, direction)
            return

        change = action is PendingAction.CHANGE
        same_key = "c" if change else "d"
        if key in ("w", "e"):
            self._delete_to_end_of_word()
        elif key == "$":
            self._delete_to_end_of_line()
        elif key == "0":
            self._delete_to_beginning_of_line()
        elif key == same_key:
            self.clear()
        else:
            return
        if change:
            self.mode = Mode.INSERT

    # -- motions and edits ---------------------------------------------------

    def _set_text(self, value: str) -> None:
        # any edit of the buffer replaces a staged draft
        self.draft = ""
        self.text = value[: self.char_limit]
        self.cursor = min(self.cursor, len(self.text))

    def _find(self, char: str, direction: int) -> None:
        if direction > 0:
            index = self.text.find(char, self.cursor + 1)
        else:
            index = self.text.rfind(char, 0, self.cursor) if self.cursor > 0 else -1
        if index >= 0:
            self.cursor = index

    def _move_to_next_word(self) -> None:
        text, pos = self.text, self.cursor
        while pos < len(text) and text[pos] != " ":
            pos += 1
        while pos < len(text) and text[pos] == " ":
            pos += 1
        self.cursor = pos

    def _move_to_prev_word(self) -> None:
        text, pos = self.text, self.cursor
        while pos > 0 and text[pos - 1] == " ":
            pos -= 1
        while pos > 0 and text[pos - 1] != " ":
            pos -= 1
        self.cursor = pos

    def _move_to_end_of_word(self) -> None:
        text, pos = self.text, self.cursor
        if pos < len(text):
            pos += 1
        while pos < len(text) and text[pos] == " ":
            pos += 1
        while pos < len(text) and text[pos] != " ":
            pos += 1
        # land on the last character of the word, not past it
        if pos > 0 and (pos >= len(text) or text[pos] == " "):
            pos -= 1
        self.cursor = pos

    def _delete_char_at_cursor(self) -> None:
        if self.cursor < len(self.text):
            self._set_text(self.text[: self.cursor] + self.text[self.cursor + 1 :])

    def _delete_to_end_of_line(self) -> None:
        if self.cursor < len(self.text):
            self._set_text(self.text[: self.cursor])

    def _delete_to_beginning_of_line(self) -> None:
        if self.cursor > 0:
            text = self.text[self.cursor :]
            self.cursor = 0
            self._set_text(text)

    def _delete_to_end_of_word(self) -> None:
        text, pos = self.text, self.cursor
        end = pos
        while end < len(text) and text[end] != " ":
            end += 1
        while end < len(text) and text[end] == " ":
            end += 1
        if end > pos:
            self._set_text(text[:pos] + text[end:])

    def _delete_word_backward(self) -> None:
        end = self.cursor
        self._move_to_prev_word()
        if self.cursor < end:
            self._set_text(self.text[: self.cursor] + self.text[end:])
