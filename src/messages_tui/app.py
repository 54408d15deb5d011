"""MessagesApp — Textual host for the session controller."""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager

from textual import events
from textual.app import App, ComposeResult, SuspendNotSupported
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.message import Message
from textual.theme import Theme
from textual.widgets import ContentSwitcher

from .client import ChatService, GatewayChatService
from .config import AppConfig, load_config
from .session import CommandBridge, LifecycleState, Panel, Session, SessionController
from .session.events import InboundEvent, KeyPress, Resize
from .session.external_editor import ExternalEditor
from .store import ConversationCache, SessionStore
from .widgets import (
    ConversationPanel,
    ErrorView,
    HelpBar,
    InputPanel,
    LoadingView,
    MessagePanel,
    PairingView,
    StatusBar,
    help_text,
)

logger = logging.getLogger(__name__)

_VIEW_IDS = {
    LifecycleState.LOADING: "loading-view",
    LifecycleState.PAIRING: "pairing-view",
    LifecycleState.CONNECTED: "connected-view",
    LifecycleState.ERRORED: "error-view",
}


class MessagesApp(App[None]):
    """Three-panel chat client.

    Every keystroke, resize and background result is turned into an inbound
    event and handed to :class:`SessionController` on the UI thread; the
    widgets are then redrawn from the session.
    """

    TITLE = "Messages"

    CSS = """
Screen {
    layout: vertical;
}
#views {
    height: 1fr;
}
#connected-view {
    height: 1fr;
}
ConversationPanel {
    width: 25%;
    min-width: 20;
}
#detail-column {
    width: 1fr;
}
"""

    class Inbound(Message):
        """Wraps a session event posted from a background worker."""

        def __init__(self, event: InboundEvent) -> None:
            super().__init__()
            self.event = event

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        service: ChatService | None = None,
        store: SessionStore | None = None,
        editor: ExternalEditor | None = None,
    ) -> None:
        super().__init__()
        self._config = config or load_config()
        self._service = service or GatewayChatService(self._config.gateway)
        self._store = store or SessionStore()
        self._cache = ConversationCache()
        self.session = Session(self._config.keybinds)
        self._bridge = CommandBridge(
            self._service,
            self._store,
            self._post_inbound,
            self._run_in_worker,
            editor=editor or ExternalEditor.from_config(self._config),
            suspend=self._terminal_handoff,
        )
        self.controller = SessionController(self.session, self._bridge, self._cache)

    def compose(self) -> ComposeResult:
        yield StatusBar(id="status-bar")
        with ContentSwitcher(initial="loading-view", id="views"):
            yield LoadingView(id="loading-view")
            yield PairingView(id="pairing-view")
            yield ErrorView(id="error-view")
            with Horizontal(id="connected-view"):
                yield ConversationPanel(id="conversation-panel")
                with Vertical(id="detail-column"):
                    yield MessagePanel(id="message-panel")
                    yield InputPanel(id="input-panel")
        yield HelpBar(id="help-bar")

    def on_mount(self) -> None:
        logger.info("MessagesApp mounted, gateway %s", self._config.gateway.base_url)
        theme = self._config.theme
        self.register_theme(Theme(
            name="messages",
            primary=theme.primary_color,
            secondary=theme.secondary_color,
            dark=True,
        ))
        self.theme = "messages"
        self.controller.handle(Resize(self.size.width, self.size.height))
        self.controller.start()
        self._refresh_view()

    def on_unmount(self) -> None:
        """Stop event delivery and release the gateway client."""
        self._bridge.cancel()
        self._service.close()

    # -- plumbing ------------------------------------------------------------

    def _post_inbound(self, event: InboundEvent) -> None:
        self.post_message(self.Inbound(event))

    def _run_in_worker(self, work: Callable[[], Awaitable[None]], group: str) -> None:
        self.run_worker(work, name=group, group=group, exclusive=False)

    @contextmanager
    def _terminal_handoff(self) -> Iterator[None]:
        """Give the terminal to a child process, resuming on every exit path."""
        suspension = self.suspend()
        try:
            suspension.__enter__()
        except SuspendNotSupported:
            logger.warning("Terminal cannot be suspended; running editor without handoff")
            yield
            return
        try:
            yield
        finally:
            suspension.__exit__(None, None, None)

    def request_quit(self) -> None:
        """Quit from outside the key path, e.g. on SIGTERM."""
        self.controller.quit()
        self.exit()

    def _dispatch(self, event: object) -> None:
        self.controller.handle(event)
        if self.session.quit_requested:
            self.exit()
            return
        self._refresh_view()

    # -- events --------------------------------------------------------------

    def on_key(self, event: events.Key) -> None:
        event.prevent_default()
        event.stop()
        self._dispatch(KeyPress(event.key, event.character))

    def on_resize(self, event: events.Resize) -> None:
        self._dispatch(Resize(event.size.width, event.size.height))

    def on_messages_app_inbound(self, message: Inbound) -> None:
        self._dispatch(message.event)

    # -- rendering -----------------------------------------------------------

    def _refresh_view(self) -> None:
        session = self.session
        if session.editor_active:
            return
        try:
            switcher = self.query_one("#views", ContentSwitcher)
        except NoMatches:
            logger.debug("View refresh before compose finished")
            return
        switcher.current = _VIEW_IDS[session.state]

        connected = session.state is LifecycleState.CONNECTED
        focus = session.focus
        self.query_one(StatusBar).show(
            session.status,
            session.focused if connected else None,
            focus.leader_pending,
        )

        if session.state is LifecycleState.PAIRING:
            self.query_one(PairingView).show(
                session.pairing_url, session.width, session.height
            )
        elif session.state is LifecycleState.ERRORED:
            self.query_one(ErrorView).show(session.error, session.keybinds.global_keys.quit)
        elif connected:
            self.query_one(ConversationPanel).show(
                session.conversations, session.focused is Panel.LIST
            )
            self.query_one(MessagePanel).show(
                session.detail, session.focused is Panel.DETAIL
            )
            self.query_one(InputPanel).show(
                session.editor, session.focused is Panel.INPUT
            )

        help_bar = self.query_one(HelpBar)
        help_bar.display = connected and (session.show_help or focus.leader_pending)
        help_bar.show(
            help_text(session.keybinds, session.focused, session.editor.mode, focus.leader_pending)
        )
