"""Turns blocking service, store and editor calls into inbound events.

Each dispatch runs as a background worker; blocking calls go through
``asyncio.to_thread``. Whatever happens, the worker posts exactly one result
event (success or :class:`OperationFailed`) through ``post``, which feeds the
same queue keystrokes use. Nothing here touches session state.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractContextManager, nullcontext

from ..client.events import FatalError, PushEvent
from ..client.service import DEFAULT_CONVERSATION_LIMIT, DEFAULT_MESSAGE_LIMIT, ChatService
from ..store import SessionStore, StoreError
from .events import (
    ClientConnected,
    CommandKind,
    CommandResult,
    ConversationsLoaded,
    EditorCancelled,
    EditorFinished,
    InboundEvent,
    MarkedRead,
    MessageSent,
    MessagesLoaded,
    OperationFailed,
    PairingStarted,
    PendingCommand,
    PushReceived,
    ReactionSent,
    SessionRestored,
    SessionSaved,
)
from .external_editor import ExternalEditor

logger = logging.getLogger(__name__)

Post = Callable[[InboundEvent], object]
Runner = Callable[[Callable[[], Awaitable[None]], str], object]
Suspend = Callable[[], AbstractContextManager[object]]


def describe_error(exc: BaseException) -> str:
    """One-line, user-facing rendering of an exception."""
    text = " ".join(str(exc).split())
    return text or type(exc).__name__


class CommandBridge:
    def __init__(
        self,
        service: ChatService,
        store: SessionStore,
        post: Post,
        runner: Runner,
        *,
        editor: ExternalEditor | None = None,
        suspend: Suspend = nullcontext,
    ) -> None:
        self._service = service
        self._store = store
        self._post_event = post
        self._runner = runner
        self._editor = editor or ExternalEditor()
        self._suspend = suspend
        self._in_flight: set[PendingCommand] = set()
        self._cancelled = threading.Event()

    # -- bookkeeping ---------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop delivering events. Running work is left to finish; its result is dropped."""
        if not self._cancelled.is_set():
            logger.info("Bridge cancelled with %d command(s) in flight", len(self._in_flight))
        self._cancelled.set()

    def is_in_flight(self, kind: CommandKind, key: str | None = None) -> bool:
        return PendingCommand(kind, key) in self._in_flight

    def complete(self, command: PendingCommand) -> None:
        """Release ``command``'s slot once its result has been consumed."""
        self._in_flight.discard(command)

    def _post(self, event: InboundEvent) -> None:
        if self._cancelled.is_set():
            logger.debug("Dropping %s after cancel", type(event).__name__)
            return
        self._post_event(event)

    def _dispatch(
        self,
        command: PendingCommand,
        work: Callable[[], Awaitable[CommandResult]],
        *,
        failure_text: str | None = None,
    ) -> PendingCommand | None:
        if self._cancelled.is_set():
            return None
        if command in self._in_flight:
            logger.debug("Skipping %s: already in flight", command)
            return None
        self._in_flight.add(command)

        async def run() -> None:
            try:
                event = await work()
            except Exception as exc:  # noqa: BLE001
                logger.warning("%s failed: %s", command.kind.value, exc)
                event = OperationFailed(command, describe_error(exc), text=failure_text)
            self._post(event)

        group = command.kind.value if command.key is None else f"{command.kind.value}:{command.key}"
        self._runner(run, group)
        return command

    # -- startup -------------------------------------------------------------

    def initialize(self) -> PendingCommand | None:
        """Restore the saved session, or fall back to QR pairing."""
        command = PendingCommand(CommandKind.RESTORE)

        async def work() -> CommandResult:
            try:
                blob = await asyncio.to_thread(self._store.load_session)
            except StoreError as exc:
                logger.warning("Discarding unreadable session: %s", exc)
                await asyncio.to_thread(self._store.clear_session)
                blob = None

            if blob is not None:
                if await asyncio.to_thread(self._service.restore, blob):
                    try:
                        await asyncio.to_thread(self._store.save_session, blob)
                    except StoreError as exc:
                        logger.warning("Could not refresh session timestamp: %s", exc)
                    return SessionRestored(command)
                logger.info("Saved session expired, starting pairing")
                await asyncio.to_thread(self._store.clear_session)

            self.watch(self._service.pairing_events(), "pairing")
            await asyncio.to_thread(self._service.start_pairing)
            return PairingStarted(command)

        return self._dispatch(command, work)

    def connect(self) -> PendingCommand | None:
        command = PendingCommand(CommandKind.CONNECT)

        async def work() -> CommandResult:
            await asyncio.to_thread(self._service.connect)
            return ClientConnected(command)

        return self._dispatch(command, work)

    def save_session(self, blob: dict | None = None) -> PendingCommand | None:
        """Persist ``blob``, or the service's current session when it is empty."""
        command = PendingCommand(CommandKind.SAVE_SESSION)

        async def work() -> CommandResult:
            session = blob or await asyncio.to_thread(self._service.export_session)
            await asyncio.to_thread(self._store.save_session, session)
            return SessionSaved(command)

        return self._dispatch(command, work)

    # -- conversations -------------------------------------------------------

    def list_conversations(self, limit: int = DEFAULT_CONVERSATION_LIMIT) -> PendingCommand | None:
        command = PendingCommand(CommandKind.LIST)

        async def work() -> CommandResult:
            conversations = await asyncio.to_thread(self._service.list_conversations, limit)
            return ConversationsLoaded(command, tuple(conversations))

        return self._dispatch(command, work)

    def fetch_messages(
        self, conversation_id: str, limit: int = DEFAULT_MESSAGE_LIMIT
    ) -> PendingCommand | None:
        command = PendingCommand(CommandKind.FETCH, conversation_id)

        async def work() -> CommandResult:
            messages = await asyncio.to_thread(
                self._service.fetch_messages, conversation_id, limit
            )
            return MessagesLoaded(command, conversation_id, tuple(messages))

        return self._dispatch(command, work)

    def send_message(self, conversation_id: str, text: str) -> PendingCommand | None:
        command = PendingCommand(CommandKind.SEND)

        async def work() -> CommandResult:
            await asyncio.to_thread(self._service.send_message, conversation_id, text)
            return MessageSent(command, conversation_id, text)

        return self._dispatch(command, work, failure_text=text)

    def mark_read(self, conversation_id: str, message_id: str) -> PendingCommand | None:
        command = PendingCommand(CommandKind.MARK_READ, conversation_id)

        async def work() -> CommandResult:
            await asyncio.to_thread(self._service.mark_read, conversation_id, message_id)
            return MarkedRead(command, conversation_id)

        return self._dispatch(command, work)

    def send_reaction(
        self, conversation_id: str, message_id: str, emoji: str
    ) -> PendingCommand | None:
        command = PendingCommand(CommandKind.REACT)

        async def work() -> CommandResult:
            await asyncio.to_thread(
                self._service.send_reaction, conversation_id, message_id, emoji
            )
            return ReactionSent(command, conversation_id, message_id, emoji)

        return self._dispatch(command, work)

    # -- external editor -----------------------------------------------------

    def run_editor(self, initial: str = "") -> PendingCommand | None:
        """Hand the terminal to the external editor and report what came back.

        The renderer is resumed before any outcome is posted, including
        failures.
        """
        command = PendingCommand(CommandKind.EDITOR)

        async def work() -> CommandResult:
            failure: Exception | None = None
            text: str | None = None
            with self._suspend():
                try:
                    text = await asyncio.to_thread(self._editor.compose, initial)
                except Exception as exc:  # noqa: BLE001
                    failure = exc
            if failure is not None:
                raise failure
            if text is None:
                return EditorCancelled(command)
            return EditorFinished(command, text)

        return self._dispatch(command, work)

    # -- push feeds ----------------------------------------------------------

    def watch(self, feed: AsyncIterator[PushEvent], name: str) -> None:
        """Forward every pushed event as :class:`PushReceived` until the feed ends."""

        async def pump() -> None:
            try:
                async for event in feed:
                    if self._cancelled.is_set():
                        break
                    self._post(PushReceived(event))
            except Exception as exc:  # noqa: BLE001
                logger.warning("%s feed failed: %s", name, exc)
                self._post(PushReceived(FatalError(f"{name} feed failed: {describe_error(exc)}")))
                return
            logger.info("%s feed ended", name)

        self._runner(pump, f"feed:{name}")

    def watch_events(self) -> None:
        self.watch(self._service.events(), "events")
