"""MessagePanel — messages of the conversation being viewed."""
from __future__ import annotations

from rich.markup import escape as escape_markup
from textual.widgets import Static

from ..models import Message, format_clock
from ..session.panels import MessageListState

_MAX_CONTENT_CHARS = 600


class MessagePanel(Static):
    """Renders a :class:`MessageListState` from its scroll offset down."""

    DEFAULT_CSS = """
    MessagePanel {
        height: 1fr;
        border: round $panel-lighten-2;
        padding: 0 1;
    }
    MessagePanel.-focused {
        border: round $primary;
    }
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__("", **kwargs)
        self._display_text = ""
        self.border_title = "Messages"

    @staticmethod
    def _safe_markup_text(value: object) -> str:
        return escape_markup(str(value))

    def show(self, state: MessageListState, focused: bool) -> None:
        self.set_class(focused, "-focused")
        if state.conversation_id is None:
            self.border_title = "Messages"
        else:
            self.border_title = f"Messages ({len(state.messages)})"

        if not state.messages:
            empty = "No messages" if state.conversation_id else "Select a conversation"
            text = f"[dim]{empty}[/dim]"
        else:
            blocks = [
                self._render_message(msg, index == state.selected and focused)
                for index, msg in enumerate(
                    state.messages[state.offset :], start=state.offset
                )
            ]
            text = "\n\n".join(blocks)
        self._display_text = text
        self.update(text)

    def _render_message(self, msg: Message, selected: bool) -> str:
        content = msg.content
        if len(content) > _MAX_CONTENT_CHARS:
            content = content[: _MAX_CONTENT_CHARS - 3] + "..."
        gutter = "[bold reverse] [/] " if selected else ""
        lines: list[str] = []
        if not msg.is_from_me and msg.sender_name:
            lines.append(f"{gutter}[bold cyan]{self._safe_markup_text(msg.sender_name)}[/]")
        body_style = "green" if msg.is_from_me else "white"
        for line in content.split("\n"):
            lines.append(f"{gutter}[{body_style}]{self._safe_markup_text(line)}[/]")

        footer = format_clock(msg.timestamp)
        if msg.is_from_me and msg.status_mark:
            footer += f" {msg.status_mark}"
        if msg.reactions:
            footer += "  " + " ".join(self._safe_markup_text(r) for r in msg.reactions)
        lines.append(f"{gutter}[dim]{footer}[/dim]")
        return "\n".join(lines)
