"""Panel focus and the leader-key chord."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..config import KeybindConfig

LEADER_STATUS = "-- LEADER --"
LEADER_REFRESH_KEY = "r"


class Panel(Enum):
    LIST = 0
    DETAIL = 1
    INPUT = 2


PANEL_LABELS: dict[Panel, str] = {
    Panel.LIST: "Conversations",
    Panel.DETAIL: "Messages",
    Panel.INPUT: "Input",
}


class LeaderResult(Enum):
    CANCELLED = "cancelled"
    NAVIGATED = "navigated"
    COMMAND = "command"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class LeaderOutcome:
    result: LeaderResult
    panel: Panel | None = None
    command: str | None = None


# Encodings terminals use for ctrl+space.
_CTRL_SPACE_ALIASES = frozenset({"ctrl+space", "ctrl+@", "ctrl+at", "ctrl+ ", "\x00"})


def normalize_key(key: str) -> str:
    lowered = key.lower()
    if lowered in _CTRL_SPACE_ALIASES:
        return "ctrl+space"
    if lowered.startswith("ctrl+"):
        return lowered
    return key


class PanelController:
    """Owns which panel is focused and whether a leader chord is open.

    Exactly one panel is focused at all times. ``on_focus_change`` is called
    with ``(old, new)`` whenever focus moves, including a jump to the panel
    that is already focused.
    """

    _ORDER = (Panel.LIST, Panel.DETAIL, Panel.INPUT)

    def __init__(
        self,
        keybinds: KeybindConfig,
        *,
        focused: Panel = Panel.LIST,
        on_focus_change: Callable[[Panel, Panel], None] | None = None,
    ) -> None:
        self._keybinds = keybinds
        self.focused = focused
        self.leader_pending = False
        self.leader_sequence = 0
        self.on_focus_change = on_focus_change

    def focus(self, panel: Panel) -> None:
        old = self.focused
        self.focused = panel
        if self.on_focus_change is not None:
            self.on_focus_change(old, panel)

    def cycle_focus(self, step: int) -> Panel:
        index = self._ORDER.index(self.focused)
        self.focus(self._ORDER[(index + step) % len(self._ORDER)])
        return self.focused

    def matches_leader(self, key: str) -> bool:
        return normalize_key(key) == normalize_key(self._keybinds.leader_key)

    def press_leader(self) -> None:
        self.leader_sequence += 1
        self.leader_pending = True

    def cancel_leader(self) -> None:
        self.leader_pending = False

    def resolve_leader(self, key: str) -> LeaderOutcome:
        """Interpret the key that immediately follows the leader.

        The chord closes whatever the key is; an unmatched key is swallowed.
        """
        self.cancel_leader()
        if key == "escape":
            return LeaderOutcome(LeaderResult.CANCELLED)

        if key == LEADER_REFRESH_KEY:
            return LeaderOutcome(LeaderResult.COMMAND, command="refresh")
        if key == self._keybinds.global_keys.quit:
            return LeaderOutcome(LeaderResult.COMMAND, command="quit")

        nav = self._keybinds.navigation
        targets = {
            nav.conversations: Panel.LIST,
            nav.messages: Panel.DETAIL,
            nav.input: Panel.INPUT,
        }
        panel = targets.get(key)
        if panel is not None:
            self.focus(panel)
            return LeaderOutcome(LeaderResult.NAVIGATED, panel=panel)
        return LeaderOutcome(LeaderResult.UNMATCHED)
