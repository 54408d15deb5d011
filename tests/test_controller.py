from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from messages_tui.client.events import (
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
from messages_tui.config import KeybindConfig
from messages_tui.models import Conversation, Message
from messages_tui.session.bridge import CommandBridge
from messages_tui.session.controller import (
    STATUS_SELECT_FIRST,
    Session,
    SessionController,
)
from messages_tui.session.editor import Mode
from messages_tui.session.events import (
    ClientConnected,
    CommandKind,
    ConversationsLoaded,
    EditorCancelled,
    EditorFinished,
    KeyPress,
    MessageSent,
    MessagesLoaded,
    OperationFailed,
    PairingStarted,
    PendingCommand,
    PushReceived,
    ReactionSent,
    Resize,
    SessionRestored,
    SessionSaved,
)
from messages_tui.session.focus import LEADER_STATUS, Panel
from messages_tui.session.lifecycle import LifecycleState
from messages_tui.store import ConversationCache

ALICE = Conversation(id="c1", name="Alice", latest_timestamp=20, latest_message_id="m9", unread=True)
BOB = Conversation(id="c2", name="Bob", latest_timestamp=10)


def key(name: str) -> KeyPress:
    return KeyPress(name, name if len(name) == 1 else None)


def make_controller() -> tuple[SessionController, MagicMock, ConversationCache]:
    bridge = MagicMock(spec=CommandBridge)
    bridge.is_in_flight.return_value = False
    cache = ConversationCache()
    controller = SessionController(Session(KeybindConfig()), bridge, cache)
    return controller, bridge, cache


def connected_controller():
    controller, bridge, cache = make_controller()
    controller.handle(SessionRestored(PendingCommand(CommandKind.RESTORE)))
    controller.handle(
        ConversationsLoaded(PendingCommand(CommandKind.LIST), (ALICE, BOB))
    )
    bridge.reset_mock()
    return controller, bridge, cache


def press(controller: SessionController, *names: str) -> None:
    for name in names:
        controller.handle(key(name))


class TestStartup:
    def test_start_initializes_bridge(self):
        controller, bridge, _ = make_controller()
        controller.start()
        bridge.initialize.assert_called_once_with()

    def test_restored_session_connects(self):
        controller, bridge, _ = make_controller()
        command = PendingCommand(CommandKind.RESTORE)
        controller.handle(SessionRestored(command))
        session = controller.session
        assert session.state is LifecycleState.CONNECTED
        assert session.focused is Panel.LIST
        assert session.status == "Connected"
        bridge.complete.assert_called_once_with(command)
        bridge.list_conversations.assert_called_once_with()
        bridge.watch_events.assert_called_once_with()

    def test_conversations_loaded_fills_list(self):
        controller, bridge, cache = connected_controller()
        session = controller.session
        assert session.status == "Loaded 2 conversations"
        assert [c.id for c in session.conversations.conversations] == ["c1", "c2"]
        assert cache.get_conversation("c1") == ALICE

    def test_pairing_started_status(self):
        controller, _, _ = make_controller()
        controller.handle(PairingStarted(PendingCommand(CommandKind.RESTORE)))
        assert controller.session.status == "Waiting for pairing..."

    def test_restore_failure_is_fatal(self):
        controller, _, _ = make_controller()
        command = PendingCommand(CommandKind.RESTORE)
        controller.handle(OperationFailed(command, "gateway down"))
        assert controller.session.state is LifecycleState.ERRORED
        assert controller.session.error == "gateway down"


class TestPairing:
    def test_qr_then_pair_then_ready_connects(self):
        controller, bridge, _ = make_controller()
        session = controller.session

        controller.handle(PushReceived(QrReady("https://pair/abc")))
        assert session.state is LifecycleState.PAIRING
        assert session.pairing_url == "https://pair/abc"

        controller.handle(PushReceived(Paired({"token": "t"})))
        bridge.save_session.assert_called_once_with({"token": "t"})
        controller.handle(SessionSaved(PendingCommand(CommandKind.SAVE_SESSION)))
        bridge.connect.assert_not_called()

        controller.handle(PushReceived(ClientReady()))
        bridge.connect.assert_called_once_with()

        controller.handle(ClientConnected(PendingCommand(CommandKind.CONNECT)))
        assert session.state is LifecycleState.CONNECTED
        assert session.pairing_url is None

    def test_ready_before_paired_also_connects(self):
        controller, bridge, _ = make_controller()
        controller.handle(PushReceived(QrReady("u")))
        controller.handle(PushReceived(ClientReady()))
        bridge.connect.assert_not_called()
        controller.handle(SessionSaved(PendingCommand(CommandKind.SAVE_SESSION)))
        bridge.connect.assert_called_once_with()

    def test_empty_pair_blob_asks_bridge_to_export(self):
        controller, bridge, _ = make_controller()
        controller.handle(PushReceived(QrReady("u")))
        controller.handle(PushReceived(Paired({})))
        bridge.save_session.assert_called_once_with(None)

    def test_save_failure_during_pairing_is_fatal(self):
        controller, _, _ = make_controller()
        controller.handle(PushReceived(QrReady("u")))
        controller.handle(
            OperationFailed(PendingCommand(CommandKind.SAVE_SESSION), "disk full")
        )
        assert controller.session.state is LifecycleState.ERRORED

    def test_fatal_during_pairing_errors(self):
        controller, _, _ = make_controller()
        controller.handle(PushReceived(QrReady("u")))
        controller.handle(PushReceived(FatalError("pairing timed out")))
        assert controller.session.state is LifecycleState.ERRORED
        assert "pairing timed out" in controller.session.error


class TestKeys:
    def test_leader_chord_navigates(self):
        controller, _, _ = connected_controller()
        controller.handle(KeyPress("ctrl+@", "\x00"))
        assert controller.session.status == LEADER_STATUS
        assert controller.session.focus.leader_pending
        press(controller, "m")
        assert controller.session.focused is Panel.DETAIL
        assert controller.session.status == "Messages"
        assert not controller.session.focus.leader_pending

    def test_leader_unmatched_key_is_swallowed(self):
        controller, bridge, _ = connected_controller()
        controller.handle(KeyPress("ctrl+space"))
        press(controller, "j")
        assert controller.session.conversations.selected == 0
        bridge.fetch_messages.assert_not_called()

    def test_leader_unmatched_key_closes_chord_before_next_key(self):
        controller, bridge, _ = connected_controller()
        session = controller.session
        controller.handle(KeyPress("ctrl+space"))
        press(controller, "z")
        assert not session.focus.leader_pending
        assert session.status == ""
        press(controller, "m")
        assert session.focused is Panel.LIST
        assert not session.focus.leader_pending
        bridge.fetch_messages.assert_not_called()

    def test_leader_refresh(self):
        controller, bridge, _ = connected_controller()
        controller.handle(KeyPress("ctrl+space"))
        press(controller, "r")
        assert controller.session.status == "Refreshing..."
        bridge.list_conversations.assert_called_once_with()

    def test_tab_cycles_and_input_focus_resets_mode(self):
        controller, _, _ = connected_controller()
        session = controller.session
        session.editor.mode = Mode.NORMAL
        press(controller, "tab", "tab")
        assert session.focused is Panel.INPUT
        assert session.editor.mode is Mode.INSERT
        controller.handle(KeyPress("shift+tab"))
        assert session.focused is Panel.DETAIL

    def test_quit_key_quits_from_list(self):
        controller, bridge, _ = connected_controller()
        press(controller, "q")
        assert controller.session.quit_requested
        bridge.cancel.assert_called_once_with()

    def test_quit_key_is_text_while_typing(self):
        controller, bridge, _ = connected_controller()
        controller.session.focus.focus(Panel.INPUT)
        press(controller, "q")
        assert not controller.session.quit_requested
        assert controller.session.editor.text == "q"

    def test_quit_key_is_text_in_search(self):
        controller, _, _ = connected_controller()
        press(controller, "/", "q")
        assert not controller.session.quit_requested
        assert controller.session.conversations.query == "q"

    def test_ctrl_c_always_quits(self):
        controller, _, _ = connected_controller()
        controller.session.focus.focus(Panel.INPUT)
        controller.handle(KeyPress("ctrl+c", "\x03"))
        assert controller.session.quit_requested

    def test_help_toggles(self):
        controller, _, _ = connected_controller()
        before = controller.session.show_help
        press(controller, "?")
        assert controller.session.show_help is not before

    def test_panel_keys_ignored_until_connected(self):
        controller, bridge, _ = make_controller()
        press(controller, "j", "enter")
        bridge.fetch_messages.assert_not_called()
        assert controller.session.active_conversation_id is None

    def test_refresh_key_needs_connection(self):
        controller, bridge, _ = make_controller()
        controller.handle(KeyPress("ctrl+r"))
        bridge.list_conversations.assert_not_called()


class TestConversationSelection:
    def test_moving_previews_conversation(self):
        controller, bridge, _ = connected_controller()
        press(controller, "j")
        bridge.fetch_messages.assert_called_once_with("c2")
        assert controller.session.detail.conversation_id == "c2"
        assert controller.session.active_conversation_id is None

    def test_enter_activates_and_marks_read(self):
        controller, bridge, _ = connected_controller()
        press(controller, "enter")
        session = controller.session
        assert session.active_conversation_id == "c1"
        assert session.status == "Selected: Alice"
        bridge.fetch_messages.assert_called_with("c1")
        bridge.mark_read.assert_called_once_with("c1", "m9")

    def test_messages_loaded_updates_visible_conversation(self):
        controller, _, cache = connected_controller()
        press(controller, "enter")
        msg = Message(id="m1", conversation_id="c1", content="hi", timestamp=1)
        controller.handle(MessagesLoaded(PendingCommand(CommandKind.FETCH, "c1"), "c1", (msg,)))
        assert controller.session.detail.messages == [msg]
        assert cache.messages("c1") == [msg]

    def test_messages_for_other_conversation_only_cached(self):
        controller, _, cache = connected_controller()
        press(controller, "enter")
        msg = Message(id="m1", conversation_id="c2", content="hi", timestamp=1)
        controller.handle(MessagesLoaded(PendingCommand(CommandKind.FETCH, "c2"), "c2", (msg,)))
        assert controller.session.detail.messages == []
        assert cache.messages("c2") == [msg]


class TestSending:
    def test_send_without_active_conversation_keeps_text(self):
        controller, bridge, _ = connected_controller()
        controller.session.focus.focus(Panel.INPUT)
        press(controller, "h", "i", "enter")
        session = controller.session
        assert session.status == STATUS_SELECT_FIRST
        assert session.editor.text == "hi"
        assert not session.editor.sending
        bridge.send_message.assert_not_called()

    def test_send_to_active_conversation(self):
        controller, bridge, _ = connected_controller()
        press(controller, "enter")
        controller.session.focus.focus(Panel.INPUT)
        press(controller, "h", "i", "enter")
        bridge.send_message.assert_called_once_with("c1", "hi")
        assert controller.session.status == "Sending..."
        assert controller.session.editor.text == ""

    def test_message_sent_refetches_active(self):
        controller, bridge, _ = connected_controller()
        press(controller, "enter")
        bridge.reset_mock()
        controller.session.editor.sending = True
        controller.handle(MessageSent(PendingCommand(CommandKind.SEND), "c1", "hi"))
        assert controller.session.status == "Message sent"
        assert not controller.session.editor.sending
        bridge.fetch_messages.assert_called_once_with("c1")

    def test_message_sent_during_fetch_refetches_when_fetch_lands(self):
        controller, bridge, _ = connected_controller()
        press(controller, "enter")
        bridge.reset_mock()
        fetch = PendingCommand(CommandKind.FETCH, "c1")
        bridge.is_in_flight.side_effect = lambda kind, key=None: (kind, key) == (
            CommandKind.FETCH,
            "c1",
        )
        controller.handle(MessageSent(PendingCommand(CommandKind.SEND), "c1", "hi"))
        bridge.is_in_flight.assert_called_with(CommandKind.FETCH, "c1")
        bridge.fetch_messages.assert_not_called()

        bridge.is_in_flight.side_effect = None
        controller.handle(MessagesLoaded(fetch, "c1", ()))
        bridge.complete.assert_called_with(fetch)
        bridge.fetch_messages.assert_called_once_with("c1")

        controller.handle(MessagesLoaded(fetch, "c1", ()))
        bridge.fetch_messages.assert_called_once_with("c1")

    def test_reaction_during_failed_fetch_still_refetches(self):
        controller, bridge, _ = connected_controller()
        fetch = PendingCommand(CommandKind.FETCH, "c2")
        bridge.is_in_flight.return_value = True
        controller.handle(ReactionSent(PendingCommand(CommandKind.REACT), "c2", "m1", "👍"))
        bridge.fetch_messages.assert_not_called()

        bridge.is_in_flight.return_value = False
        controller.handle(OperationFailed(fetch, "timeout"))
        assert controller.session.status == "Error: timeout"
        bridge.fetch_messages.assert_called_once_with("c2")

    def test_send_failure_restores_text(self):
        controller, _, _ = connected_controller()
        controller.session.editor.sending = True
        controller.handle(
            OperationFailed(PendingCommand(CommandKind.SEND), "phone offline", text="hi")
        )
        assert controller.session.editor.text == "hi"
        assert controller.session.status == "Error: phone offline"
        assert controller.session.state is LifecycleState.CONNECTED

    def test_v_opens_external_editor(self):
        controller, bridge, _ = connected_controller()
        controller.session.focus.focus(Panel.INPUT)
        press(controller, "d", "r", "a", "f", "t", "escape", "v")
        bridge.run_editor.assert_called_once_with("draft")
        assert controller.session.editor_active

    def test_editor_finished_loads_text(self):
        controller, _, _ = connected_controller()
        controller.session.editor_active = True
        controller.handle(EditorFinished(PendingCommand(CommandKind.EDITOR), "line1\nline2"))
        session = controller.session
        assert not session.editor_active
        assert session.focused is Panel.INPUT
        assert session.editor.draft == "line1\nline2"
        assert session.status == "Press Enter to send"

    def test_editor_cancelled(self):
        controller, _, _ = connected_controller()
        controller.handle(EditorCancelled(PendingCommand(CommandKind.EDITOR)))
        assert controller.session.status == "Message cancelled"

    def test_editor_failure(self):
        controller, _, _ = connected_controller()
        controller.session.editor_active = True
        controller.handle(
            OperationFailed(PendingCommand(CommandKind.EDITOR), "editor failed: exit status 1")
        )
        assert not controller.session.editor_active
        assert controller.session.status == "Editor error: editor failed: exit status 1"

    def test_reaction_from_detail_panel(self):
        controller, bridge, _ = connected_controller()
        press(controller, "enter")
        msg = Message(id="m1", conversation_id="c1", content="hi", timestamp=1)
        controller.handle(MessagesLoaded(PendingCommand(CommandKind.FETCH, "c1"), "c1", (msg,)))
        controller.session.focus.focus(Panel.DETAIL)
        press(controller, "+")
        bridge.send_reaction.assert_called_once_with("c1", "m1", "👍")


class TestPushWhileConnected:
    def test_new_message_updates_cache_and_detail(self):
        controller, bridge, cache = connected_controller()
        press(controller, "enter")
        bridge.reset_mock()
        msg = Message(id="m2", conversation_id="c1", content="new!", timestamp=99)
        controller.handle(PushReceived(NewMessage(msg)))
        assert controller.session.detail.messages[-1] == msg
        assert cache.get_conversation("c1").latest_message == "new!"
        bridge.list_conversations.assert_called_once_with()

    def test_conversations_changed_reloads(self):
        controller, bridge, _ = connected_controller()
        controller.handle(PushReceived(ConversationsChanged()))
        bridge.list_conversations.assert_called_once_with()

    def test_fatal_while_connected_only_reports(self):
        controller, _, _ = connected_controller()
        controller.handle(PushReceived(FatalError("phone unreachable")))
        assert controller.session.state is LifecycleState.CONNECTED
        assert "phone unreachable" in controller.session.status

    def test_temporary_error_and_disconnect_are_status_only(self):
        controller, _, _ = connected_controller()
        controller.handle(PushReceived(TemporaryError("rate limited")))
        assert controller.session.status == "Error: temporary error: rate limited"
        controller.handle(PushReceived(Disconnected("bye")))
        assert controller.session.status == "Disconnected"
        assert controller.session.state is LifecycleState.CONNECTED

    def test_repeated_connected_does_not_rewatch(self):
        controller, bridge, _ = connected_controller()
        controller.handle(PushReceived(Connected()))
        bridge.watch_events.assert_not_called()
        assert controller.session.status == "Connected"


@pytest.mark.parametrize("width, list_width", [(80, 20), (200, 50), (40, 20)])
def test_resize_recomputes_layout(width, list_width):
    controller, _, _ = make_controller()
    controller.handle(Resize(width, 30))
    layout = controller.session.layout
    assert layout.list_width == list_width
    assert layout.content_height == 28
    assert controller.session.conversations.height == 28
    assert controller.session.detail.height == 25
