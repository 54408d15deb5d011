"""InputPanel — one-line modal message editor."""
from __future__ import annotations

from rich.markup import escape as escape_markup
from textual.widgets import Static

from ..session.editor import Mode, ModalEditor

_PLACEHOLDERS = {
    Mode.NORMAL: "'i' for insert mode",
    Mode.INSERT: "Type a message... (Esc for normal mode)",
}


class InputPanel(Static):
    """Shows the editor buffer with a block cursor and a ``[N]``/``[I]`` badge."""

    DEFAULT_CSS = """
    InputPanel {
        height: 3;
        border: round $panel-lighten-2;
        padding: 0 1;
    }
    InputPanel.-focused {
        border: round $primary;
    }
    InputPanel.-focused.-insert {
        border: round $secondary;
    }
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__("", **kwargs)
        self._display_text = ""

    def show(self, editor: ModalEditor, focused: bool) -> None:
        self.set_class(focused, "-focused")
        self.set_class(editor.mode is Mode.INSERT, "-insert")
        if editor.mode is Mode.NORMAL:
            badge = "[bold yellow]\\[N][/] "
        else:
            badge = "[bold cyan]\\[I][/] "

        if not editor.text:
            body = f"[dim]{_PLACEHOLDERS[editor.mode]}[/dim]"
            if focused:
                body = "[reverse] [/]" + body
        elif focused:
            body = self._with_cursor(editor.text, editor.cursor)
        else:
            body = escape_markup(editor.text)

        sending = "  [yellow]Sending...[/]" if editor.sending else ""
        text = f"{badge}{body}{sending}"
        self._display_text = text
        self.update(text)

    @staticmethod
    def _with_cursor(text: str, cursor: int) -> str:
        before = escape_markup(text[:cursor])
        under = text[cursor : cursor + 1] or " "
        after = escape_markup(text[cursor + 1 :])
        return f"{before}[reverse]{escape_markup(under)}[/]{after}"
