"""Session state machines and the event loop that drives them."""
from __future__ import annotations

from .bridge import CommandBridge
from .controller import Session, SessionController
from .editor import Mode, ModalEditor
from .focus import Panel, PanelController
from .lifecycle import Lifecycle, LifecycleState

__all__ = [
    "CommandBridge",
    "Lifecycle",
    "LifecycleState",
    "ModalEditor",
    "Mode",
    "Panel",
    "PanelController",
    "Session",
    "SessionController",
]
