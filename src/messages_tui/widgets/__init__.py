"""Textual widgets for the messages TUI."""
from __future__ import annotations

from .conversation_panel import ConversationPanel
from .input_panel import InputPanel
from .message_panel import MessagePanel
from .screens import ErrorView, LoadingView, PairingView
from .status_bar import HelpBar, StatusBar, help_text

__all__ = [
    "ConversationPanel",
    "ErrorView",
    "HelpBar",
    "InputPanel",
    "LoadingView",
    "MessagePanel",
    "PairingView",
    "StatusBar",
    "help_text",
]
