"""ConversationPanel — left-hand list of conversations."""
from __future__ import annotations

from rich.markup import escape as escape_markup
from textual.widgets import Static

from ..models import Conversation, format_relative_time, now_ms
from ..session.panels import ConversationListState

_PREVIEW_CHARS = 40


class ConversationPanel(Static):
    """Renders a :class:`ConversationListState`, two rows per conversation.

    The current display text is kept in ``_display_text`` for tests.
    """

    DEFAULT_CSS = """
    ConversationPanel {
        height: 1fr;
        border: round $panel-lighten-2;
        padding: 0 1;
    }
    ConversationPanel.-focused {
        border: round $primary;
    }
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__("", **kwargs)
        self._display_text = ""
        self.border_title = "Conversations"

    def show(self, state: ConversationListState, focused: bool, now: int | None = None) -> None:
        now = now_ms() if now is None else now
        self.set_class(focused, "-focused")
        lines: list[str] = []
        if state.search_mode or state.query:
            cursor = "█" if state.search_mode else ""
            lines.append(f"[bold]/[/]{escape_markup(state.query)}{cursor}")

        items = state.filtered()
        if not items:
            lines.append("[dim]No conversations[/dim]")
        window = items[state.offset : state.offset + state.visible_count()]
        for index, conv in enumerate(window, start=state.offset):
            lines.extend(self._render_row(conv, index == state.selected, now))

        text = "\n".join(lines)
        self._display_text = text
        self.update(text)

    @staticmethod
    def _render_row(conv: Conversation, selected: bool, now: int) -> list[str]:
        marker = "[bold reverse] [/]" if selected else " "
        unread = "[bold green]●[/] " if conv.unread else ""
        name = escape_markup(conv.name)
        when = format_relative_time(conv.latest_timestamp, now)
        preview = " ".join(conv.latest_message.split())
        if len(preview) > _PREVIEW_CHARS:
            preview = preview[: _PREVIEW_CHARS - 3] + "..."
        title = f"[bold]{name}[/]" if conv.unread or selected else name
        return [
            f"{marker}{unread}{title}  [dim]{when}[/dim]",
            f"{marker}[dim]{escape_markup(preview)}[/dim]",
        ]
