"""StatusBar and HelpBar — the one-line bars above and below the panels."""
from __future__ import annotations

from rich.markup import escape as escape_markup
from textual.widgets import Static

from ..config import KeybindConfig
from ..session.editor import Mode
from ..session.focus import Panel

APP_NAME = "Messages TUI"

_PANEL_TAGS = {
    Panel.LIST: "[Contacts]",
    Panel.DETAIL: "[Messages]",
    Panel.INPUT: "[Input]",
}


def help_text(keybinds: KeybindConfig, focused: Panel, mode: Mode, leader_pending: bool) -> str:
    """Key hints for the current panel, or the chord menu while the leader is open."""
    nav = keybinds.navigation
    quit_key = keybinds.global_keys.quit
    if leader_pending:
        return (
            f"{nav.conversations}: conversations | {nav.messages}: messages | "
            f"{nav.input}: input | r: refresh | {quit_key}: quit | Esc: cancel"
        )

    leader = f"{keybinds.leader_key}+{nav.conversations}/{nav.messages}/{nav.input}: panels"
    if focused is Panel.LIST:
        return f"↑/k ↓/j: navigate | Enter: select | /: search | {leader} | {quit_key}: quit"
    if focused is Panel.DETAIL:
        return f"↑/k ↓/j: scroll | +: react | {leader} | {quit_key}: quit"
    if mode is Mode.NORMAL:
        return f"[NORMAL] i: insert | v: editor | d: clear | Enter: send | {leader}"
    return f"[INSERT] Esc: normal mode | Enter: send | {leader}"


class StatusBar(Static):
    """Status message on the left, focused panel on the right."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        background: $panel;
        padding: 0 1;
    }
    StatusBar.-leader {
        background: $primary;
        color: $text;
        text-style: bold;
    }
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__(APP_NAME, **kwargs)
        self._display_text = APP_NAME

    def show(self, status: str, focused: Panel | None, leader_pending: bool = False) -> None:
        self.set_class(leader_pending, "-leader")
        left = status or APP_NAME
        right = _PANEL_TAGS[focused] if focused is not None else ""
        gap = max(1, self.size.width - 2 - len(left) - len(right))
        text = escape_markup(f"{left}{' ' * gap}{right}" if right else left)
        self._display_text = text
        self.update(text)


class HelpBar(Static):
    DEFAULT_CSS = """
    HelpBar {
        height: 1;
        color: $text-muted;
        padding: 0 1;
    }
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__("", **kwargs)
        self._display_text = ""

    def show(self, text: str) -> None:
        text = escape_markup(text)
        self._display_text = text
        self.update(text)
