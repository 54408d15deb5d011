"""Session state and the reducer that applies inbound events to it.

:meth:`SessionController.handle` is the only code that mutates a
:class:`Session`. It looks the event type up in a dispatch table and hands
off to one state machine: the panel controller, the modal editor, a list
panel or the lifecycle. Side effects go out through :class:`CommandBridge`
and come back later as more events.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..client.events import (
    ClientReady,
    Connected,
    ConversationsChanged,
    Disconnected,
    FatalError,
    NewMessage,
    Paired,
    QrReady,
    TemporaryError,
)
from ..config import KeybindConfig
from ..store import ConversationCache
from .bridge import CommandBridge
from .editor import Mode, ModalEditor, OpenEditorRequest, SubmitRequest
from .events import (
    ClientConnected,
    CommandKind,
    ConversationsLoaded,
    EditorCancelled,
    EditorFinished,
    KeyPress,
    MarkedRead,
    MessageSent,
    MessagesLoaded,
    OperationFailed,
    PairingStarted,
    PushReceived,
    ReactionSent,
    Resize,
    SessionRestored,
    SessionSaved,
)
from .focus import LEADER_STATUS, PANEL_LABELS, LeaderResult, Panel, PanelController
from .lifecycle import Lifecycle, LifecycleState, Signal
from .panels import ConversationListState, ListAction, MessageListState, ReactRequest

logger = logging.getLogger(__name__)

STATUS_CONNECTING = "Connecting..."
STATUS_CONNECTED = "Connected"
STATUS_DISCONNECTED = "Disconnected"
STATUS_REFRESHING = "Refreshing..."
STATUS_SENDING = "Sending..."
STATUS_SENT = "Message sent"
STATUS_SELECT_FIRST = "Select a conversation first! (Enter in contacts)"
STATUS_EDITOR_OPEN = "Editing in external editor..."
STATUS_EDITOR_DONE = "Press Enter to send"
STATUS_EDITOR_CANCELLED = "Message cancelled"
STATUS_WAITING_FOR_PAIRING = "Waiting for pairing..."
STATUS_SCAN_QR = "Scan the QR code with your phone"
STATUS_PAIRED = "Paired, connecting..."

INPUT_HEIGHT = 3
MIN_LIST_WIDTH = 20


@dataclass
class Layout:
    list_width: int = MIN_LIST_WIDTH
    detail_width: int = 60
    content_height: int = 22
    detail_height: int = 19


@dataclass
class Session:
    """Root aggregate for one run of the client."""

    keybinds: KeybindConfig
    lifecycle: Lifecycle = field(default_factory=Lifecycle)
    editor: ModalEditor = field(default_factory=ModalEditor)
    conversations: ConversationListState = field(default_factory=ConversationListState)
    detail: MessageListState = field(default_factory=MessageListState)
    focus: PanelController = field(init=False)
    status: str = STATUS_CONNECTING
    error: str | None = None
    pairing_url: str | None = None
    active_conversation_id: str | None = None
    width: int = 80
    height: int = 24
    layout: Layout = field(default_factory=Layout)
    show_help: bool = True
    quit_requested: bool = False
    editor_active: bool = False

    def __post_init__(self) -> None:
        self.focus = PanelController(self.keybinds, on_focus_change=self._focus_changed)

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.state

    @property
    def focused(self) -> Panel:
        return self.focus.focused

    def _focus_changed(self, old: Panel, new: Panel) -> None:
        if new is Panel.INPUT:
            self.editor.reset_mode()

    def capturing_text(self) -> bool:
        """True while the focused panel wants printable keys for itself."""
        if self.focused is Panel.INPUT:
            return self.editor.mode is Mode.INSERT or bool(self.editor.text or self.editor.draft)
        if self.focused is Panel.LIST:
            return self.conversations.capturing_text
        return False


class SessionController:
    def __init__(
        self,
        session: Session,
        bridge: CommandBridge,
        cache: ConversationCache,
    ) -> None:
        self.session = session
        self._bridge = bridge
        self._cache = cache
        # conversations changed while their fetch was running
        self._stale_fetches: set[str] = set()
        self._handlers: dict[type, Callable[[Any], None]] = {
            KeyPress: self._on_key,
            Resize: self._on_resize,
            ConversationsLoaded: self._on_conversations_loaded,
            MessagesLoaded: self._on_messages_loaded,
            MessageSent: self._on_message_sent,
            MarkedRead: self._on_marked_read,
            ReactionSent: self._on_reaction_sent,
            EditorFinished: self._on_editor_finished,
            EditorCancelled: self._on_editor_cancelled,
            SessionRestored: self._on_client_connected,
            ClientConnected: self._on_client_connected,
            PairingStarted: self._on_pairing_started,
            SessionSaved: self._on_session_saved,
            OperationFailed: self._on_operation_failed,
            PushReceived: self._on_push,
        }
        self._push_handlers: dict[type, Callable[[Any], None]] = {
            QrReady: self._on_qr_ready,
            Paired: self._on_paired,
            ClientReady: self._on_client_ready,
            Connected: self._on_pushed_connected,
            Disconnected: self._on_disconnected,
            NewMessage: self._on_new_message,
            ConversationsChanged: self._on_conversations_changed,
            FatalError: self._on_fatal_error,
            TemporaryError: self._on_temporary_error,
        }

    def start(self) -> None:
        self._bridge.initialize()

    def handle(self, event: object) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.debug("No handler for %s", type(event).__name__)
            return
        command = getattr(event, "command", None)
        if command is not None:
            self._bridge.complete(command)
        handler(event)

    # -- keyboard ------------------------------------------------------------

    def _on_key(self, event: KeyPress) -> None:
        session = self.session
        focus = session.focus
        key = event.name

        if focus.leader_pending:
            self._resolve_leader(key)
            return
        if focus.matches_leader(key):
            focus.press_leader()
            session.status = LEADER_STATUS
            return
        if self._handle_global_key(key):
            return
        if session.lifecycle.connected:
            self._handle_panel_key(key)

    def _resolve_leader(self, key: str) -> None:
        outcome = self.session.focus.resolve_leader(key)
        if outcome.result is LeaderResult.NAVIGATED and outcome.panel is not None:
            self.session.status = PANEL_LABELS[outcome.panel]
        elif outcome.result is LeaderResult.COMMAND:
            if outcome.command == "quit":
                self.quit()
            elif outcome.command == "refresh":
                self._refresh()
        else:
            self.session.status = ""

    def _handle_global_key(self, key: str) -> bool:
        session = self.session
        keys = session.keybinds.global_keys
        if key == "ctrl+c":
            self.quit()
            return True
        if key == keys.quit and not session.capturing_text():
            self.quit()
            return True
        if key == keys.help and not session.capturing_text():
            session.show_help = not session.show_help
            return True
        if key == keys.next_panel:
            session.focus.cycle_focus(1)
            return True
        if key == keys.prev_panel:
            session.focus.cycle_focus(-1)
            return True
        if key == keys.refresh:
            self._refresh()
            return True
        return False

    def _handle_panel_key(self, key: str) -> None:
        focused = self.session.focused
        if focused is Panel.LIST:
            self._handle_list_key(key)
        elif focused is Panel.DETAIL:
            request = self.session.detail.handle_key(key)
            if isinstance(request, ReactRequest):
                self._react(request)
        else:
            intent = self.session.editor.handle_key(key)
            if isinstance(intent, SubmitRequest):
                self._send(intent.text)
            elif isinstance(intent, OpenEditorRequest):
                self._open_editor(intent.initial)

    def _handle_list_key(self, key: str) -> None:
        session = self.session
        action = session.conversations.handle_key(key)
        conv = session.conversations.selected_conversation()
        if action is None or conv is None:
            return
        if action is ListAction.MOVED:
            self._show_conversation(conv.id)
            return
        session.active_conversation_id = conv.id
        session.status = f"Selected: {conv.name}"
        self._show_conversation(conv.id)
        if conv.unread and conv.latest_message_id:
            self._bridge.mark_read(conv.id, conv.latest_message_id)

    # -- actions -------------------------------------------------------------

    def quit(self) -> None:
        logger.info("Quit requested")
        self.session.quit_requested = True
        self._bridge.cancel()

    def _refresh(self) -> None:
        if not self.session.lifecycle.connected:
            return
        self.session.status = STATUS_REFRESHING
        self._bridge.list_conversations()

    def _show_conversation(self, conversation_id: str) -> None:
        detail = self.session.detail
        if detail.conversation_id != conversation_id:
            detail.set_messages(conversation_id, self._cache.messages(conversation_id))
        self._bridge.fetch_messages(conversation_id)

    def _refetch(self, conversation_id: str) -> None:
        if self._bridge.is_in_flight(CommandKind.FETCH, conversation_id):
            self._stale_fetches.add(conversation_id)
        else:
            self._bridge.fetch_messages(conversation_id)

    def _fetch_finished(self, conversation_id: str) -> None:
        if conversation_id in self._stale_fetches:
            self._stale_fetches.discard(conversation_id)
            self._bridge.fetch_messages(conversation_id)

    def _send(self, text: str) -> None:
        session = self.session
        conversation_id = session.active_conversation_id
        if not conversation_id:
            session.status = STATUS_SELECT_FIRST
            session.editor.send_failed(text)
            return
        if self._bridge.send_message(conversation_id, text) is None:
            session.editor.send_failed(text)
            return
        session.status = STATUS_SENDING

    def _open_editor(self, initial: str) -> None:
        if self._bridge.run_editor(initial) is None:
            return
        self.session.editor_active = True
        self.session.status = STATUS_EDITOR_OPEN

    def _react(self, request: ReactRequest) -> None:
        message = request.message
        self._bridge.send_reaction(message.conversation_id, message.id, request.emoji)

    def _connected(self) -> None:
        transition = self.session.lifecycle.apply(Signal.CONNECTED)
        if not transition.changed:
            self.session.status = STATUS_CONNECTED
            return
        self.session.error = None
        self.session.pairing_url = None
        self.session.focus.focus(Panel.LIST)
        self.session.status = STATUS_CONNECTED
        self._bridge.list_conversations()
        self._bridge.watch_events()

    def _fail(self, error: str) -> None:
        session = self.session
        session.error = error
        session.editor.send_finished()
        transition = session.lifecycle.apply(Signal.FATAL)
        if transition.degraded:
            logger.warning("Fatal service error while connected: %s", error)
        session.status = f"Error: {error}"

    def _reload_list_from_cache(self) -> None:
        self.session.conversations.set_conversations(self._cache.conversations())

    # -- command results -----------------------------------------------------

    def _on_resize(self, event: Resize) -> None:
        session = self.session
        session.width = event.width
        session.height = event.height
        layout = session.layout
        layout.list_width = max(MIN_LIST_WIDTH, event.width // 4)
        layout.detail_width = max(0, event.width - layout.list_width)
        # status bar and help bar take a row each
        layout.content_height = max(0, event.height - 2)
        layout.detail_height = max(0, layout.content_height - INPUT_HEIGHT)
        session.conversations.height = layout.content_height
        session.detail.height = layout.detail_height

    def _on_conversations_loaded(self, event: ConversationsLoaded) -> None:
        session = self.session
        self._cache.set_conversations(list(event.conversations))
        self._reload_list_from_cache()
        session.status = f"Loaded {len(event.conversations)} conversations"
        conv = session.conversations.selected_conversation()
        if session.detail.conversation_id is None and conv is not None:
            self._show_conversation(conv.id)

    def _on_messages_loaded(self, event: MessagesLoaded) -> None:
        self._cache.set_messages(event.conversation_id, list(event.messages))
        if self.session.detail.conversation_id == event.conversation_id:
            self.session.detail.set_messages(event.conversation_id, list(event.messages))
        self._fetch_finished(event.conversation_id)

    def _on_message_sent(self, event: MessageSent) -> None:
        session = self.session
        session.editor.send_finished()
        session.status = STATUS_SENT
        if event.conversation_id == session.active_conversation_id:
            self._refetch(event.conversation_id)

    def _on_marked_read(self, event: MarkedRead) -> None:
        self._cache.mark_read(event.conversation_id)
        self._reload_list_from_cache()

    def _on_reaction_sent(self, event: ReactionSent) -> None:
        self.session.status = f"Reacted {event.emoji}"
        self._refetch(event.conversation_id)

    def _on_editor_finished(self, event: EditorFinished) -> None:
        session = self.session
        session.editor_active = False
        session.editor.set_value(event.text)
        session.focus.focus(Panel.INPUT)
        session.status = STATUS_EDITOR_DONE

    def _on_editor_cancelled(self, event: EditorCancelled) -> None:
        self.session.editor_active = False
        self.session.status = STATUS_EDITOR_CANCELLED

    def _on_client_connected(self, event: SessionRestored | ClientConnected) -> None:
        self._connected()

    def _on_pairing_started(self, event: PairingStarted) -> None:
        if self.session.pairing_url is None:
            self.session.status = STATUS_WAITING_FOR_PAIRING

    def _on_session_saved(self, event: SessionSaved) -> None:
        transition = self.session.lifecycle.apply(Signal.PAIR_SUCCEEDED)
        self._after_pairing_step(transition.pairing_completed)

    def _on_operation_failed(self, event: OperationFailed) -> None:
        session = self.session
        kind = event.command.kind
        if kind in (CommandKind.RESTORE, CommandKind.CONNECT, CommandKind.SAVE_SESSION):
            self._fail(event.error)
            return
        if kind is CommandKind.EDITOR:
            session.editor_active = False
            session.status = f"Editor error: {event.error}"
            return
        if kind is CommandKind.FETCH and event.command.key is not None:
            self._fetch_finished(event.command.key)
        if kind is CommandKind.SEND:
            session.editor.send_failed(event.text)
        session.status = f"Error: {event.error}"

    # -- pushed events -------------------------------------------------------

    def _on_push(self, event: PushReceived) -> None:
        handler = self._push_handlers.get(type(event.event))
        if handler is None:
            logger.debug("No handler for pushed %s", type(event.event).__name__)
            return
        handler(event.event)

    def _on_qr_ready(self, event: QrReady) -> None:
        self.session.lifecycle.apply(Signal.QR_SHOWN)
        if self.session.state is LifecycleState.PAIRING:
            self.session.pairing_url = event.url
            self.session.status = STATUS_SCAN_QR

    def _on_paired(self, event: Paired) -> None:
        self._bridge.save_session(event.session or None)

    def _on_client_ready(self, event: ClientReady) -> None:
        transition = self.session.lifecycle.apply(Signal.CLIENT_READY)
        self._after_pairing_step(transition.pairing_completed)

    def _after_pairing_step(self, completed: bool) -> None:
        if completed:
            self.session.status = STATUS_PAIRED
            self._bridge.connect()

    def _on_pushed_connected(self, event: Connected) -> None:
        self._connected()

    def _on_disconnected(self, event: Disconnected) -> None:
        self.session.status = STATUS_DISCONNECTED

    def _on_new_message(self, event: NewMessage) -> None:
        message = event.message
        self._cache.add_message(message)
        self.session.detail.add_message(message)
        self._reload_list_from_cache()
        self._bridge.list_conversations()

    def _on_conversations_changed(self, event: ConversationsChanged) -> None:
        self._bridge.list_conversations()

    def _on_fatal_error(self, event: FatalError) -> None:
        self._fail(f"fatal error: {event.error}")

    def _on_temporary_error(self, event: TemporaryError) -> None:
        self.session.status = f"Error: temporary error: {event.error}"
