"""ChatService backed by a local messages gateway (REST + WebSocket push)."""
from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx
from websockets.asyncio.client import connect as ws_connect

from ..config import GatewayConfig
from ..models import Conversation, Message, MessageStatus
from .events import (
    ClientReady,
    Connected,
    ConversationsChanged,
    Disconnected,
    FatalError,
    NewMessage,
    Paired,
    PushEvent,
    QrReady,
    TemporaryError,
)
from .service import (
    DEFAULT_CONVERSATION_LIMIT,
    DEFAULT_MESSAGE_LIMIT,
    AuthError,
    ChatService,
    ChatServiceError,
    ServiceUnavailableError,
)

logger = logging.getLogger(__name__)

_HTTP_TIMEOUT_S = 10.0


def _summarize_error(text: str, max_chars: int = 200) -> str:
    compact = " ".join(text.split())
    if len(compact) <= max_chars:
        return compact
    return f"{compact[: max_chars - 3]}..."


def _extract_error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    text = response.text.strip()
    return _summarize_error(text) if text else f"HTTP {response.status_code}"


def parse_conversation(raw: dict) -> Conversation:
    """Map a camelCase gateway conversation record to :class:`Conversation`."""
    participants = raw.get("participants") or []
    return Conversation(
        id=str(raw["id"]),
        name=raw.get("name") or "Unknown",
        latest_message=raw.get("latestMessage") or "",
        latest_timestamp=int(raw.get("latestTimestamp") or 0),
        latest_message_id=raw.get("latestMessageId"),
        unread=bool(raw.get("unread", False)),
        is_group=bool(raw.get("isGroup", False)),
        participants=tuple(str(p) for p in participants),
    )


def parse_message(raw: dict) -> Message:
    try:
        status = MessageStatus(raw.get("status") or "sent")
    except ValueError:
        status = MessageStatus.SENT
    return Message(
        id=str(raw["id"]),
        conversation_id=str(raw["conversationId"]),
        content=raw.get("content") or "",
        timestamp=int(raw.get("timestamp") or 0),
        sender_id=raw.get("senderId") or "",
        sender_name=raw.get("senderName") or "",
        is_from_me=bool(raw.get("isFromMe", False)),
        status=status,
        reactions=tuple(str(r) for r in raw.get("reactions") or ()),
    )


def _parse_records(items: object, parser: Callable[[dict], Any], what: str) -> list:
    if not isinstance(items, list):
        raise ChatServiceError(f"Unexpected gateway response: {what} is not a list")
    parsed = []
    for raw in items:
        try:
            parsed.append(parser(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed %s record: %s", what, exc)
    return parsed


def parse_push_frame(raw: str | bytes) -> PushEvent | None:
    """Decode one push frame; unknown or malformed frames yield ``None``."""
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(frame, dict):
        return None

    frame_type = frame.get("type")
    if frame_type == "connected":
        return Connected()
    if frame_type == "disconnected":
        return Disconnected(str(frame.get("reason") or ""))
    if frame_type == "message.new":
        try:
            return NewMessage(parse_message(frame["message"]))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Dropping malformed message frame: %s", exc)
            return None
    if frame_type == "conversations.changed":
        return ConversationsChanged()
    if frame_type == "error.fatal":
        return FatalError(str(frame.get("error") or "unknown error"))
    if frame_type == "error.temporary":
        return TemporaryError(str(frame.get("error") or "unknown error"))
    if frame_type == "pair.qr":
        url = frame.get("url")
        return QrReady(url) if isinstance(url, str) and url else None
    if frame_type == "pair.success":
        session = frame.get("session")
        return Paired(session if isinstance(session, dict) else {})
    if frame_type == "client.ready":
        return ClientReady()
    logger.debug("Ignoring push frame type %r", frame_type)
    return None


class GatewayChatService(ChatService):
    def __init__(
        self,
        config: GatewayConfig,
        *,
        http_client: httpx.Client | None = None,
        connector: Callable[[str], Awaitable[Any]] | None = None,
    ) -> None:
        self.config = config
        self._client = http_client
        self._connector = connector or self._default_connector

    def _get_client(self) -> httpx.Client:
        """Get or create reusable HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.config.base_url,
                headers=self._auth_headers(),
                timeout=_HTTP_TIMEOUT_S,
            )
            logger.info("Gateway client created for %s", self.config.base_url)
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        if self.config.token:
            return {"Authorization": f"Bearer {self.config.token}"}
        return {}

    async def _default_connector(self, url: str) -> Any:
        return await ws_connect(url, additional_headers=self._auth_headers())

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        client = self._get_client()
        try:
            response = client.request(method, path, **kwargs)
        except httpx.ConnectError as exc:
            logger.warning("Gateway connection failed: %s", exc)
            raise ServiceUnavailableError(
                f"Cannot reach gateway at {self.config.base_url}: {exc}"
            ) from exc
        except httpx.TimeoutException as exc:
            logger.warning("Gateway request timed out: %s", exc)
            raise ServiceUnavailableError(f"Gateway request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            logger.warning("Gateway request error: %s", exc)
            raise ServiceUnavailableError(f"Gateway request error: {exc}") from exc

        if response.status_code in (401, 403):
            logger.warning("Gateway auth failed: HTTP %d", response.status_code)
            raise AuthError(f"Authentication failed: HTTP {response.status_code}")

        if response.status_code >= 400:
            detail = _extract_error_text(response)
            logger.warning("%s %s failed: HTTP %d %s", method, path, response.status_code, detail)
            raise ChatServiceError(f"Gateway returned HTTP {response.status_code}: {detail}")

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ChatServiceError(f"Gateway returned invalid JSON for {path}") from exc

    # -- session ---------------------------------------------------------------

    def restore(self, session: dict) -> bool:
        try:
            self._request("POST", "/session/restore", json={"session": session})
        except AuthError:
            logger.info("Saved session rejected by gateway")
            return False
        return True

    def start_pairing(self) -> None:
        self._request("POST", "/pair/start")

    def export_session(self) -> dict:
        data = self._request("GET", "/session")
        if not isinstance(data, dict):
            raise ChatServiceError("Unexpected gateway response: session is not an object")
        return data

    def connect(self) -> None:
        self._request("POST", "/connect")

    # -- conversations -----------------------------------------------------------

    def list_conversations(self, limit: int = DEFAULT_CONVERSATION_LIMIT) -> list[Conversation]:
        data = self._request("GET", "/conversations", params={"limit": limit})
        items = data.get("conversations") if isinstance(data, dict) else data
        conversations = _parse_records(items, parse_conversation, "conversation")
        logger.debug("Fetched %d conversations", len(conversations))
        return conversations

    def fetch_messages(
        self, conversation_id: str, limit: int = DEFAULT_MESSAGE_LIMIT
    ) -> list[Message]:
        path = f"/conversations/{quote(conversation_id, safe='')}/messages"
        data = self._request("GET", path, params={"limit": limit})
        items = data.get("messages") if isinstance(data, dict) else data
        messages = _parse_records(items, parse_message, "message")
        # oldest first for display
        return sorted(messages, key=lambda message: message.timestamp)

    def send_message(self, conversation_id: str, text: str) -> None:
        path = f"/conversations/{quote(conversation_id, safe='')}/messages"
        self._request("POST", path, json={"text": text})

    def mark_read(self, conversation_id: str, message_id: str) -> None:
        path = f"/conversations/{quote(conversation_id, safe='')}/read"
        self._request("POST", path, json={"messageId": message_id})

    def send_reaction(self, conversation_id: str, message_id: str, emoji: str) -> None:
        path = (
            f"/conversations/{quote(conversation_id, safe='')}"
            f"/messages/{quote(message_id, safe='')}/reactions"
        )
        self._request("POST", path, json={"emoji": emoji})

    # -- push feeds --------------------------------------------------------------

    def events(self) -> AsyncIterator[PushEvent]:
        return self._stream("/events")

    def pairing_events(self) -> AsyncIterator[PushEvent]:
        return self._stream("/pair/events")

    async def _stream(self, path: str) -> AsyncIterator[PushEvent]:
        url = f"{self.config.ws_url}{path}"
        try:
            ws = await self._connector(url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Push feed %s connect failed: %s", url, exc)
            yield FatalError(f"cannot open {path}: {exc}")
            return

        reason = "closed"
        try:
            async for raw in ws:
                event = parse_push_frame(raw)
                if event is not None:
                    yield event
        except Exception as exc:  # noqa: BLE001
            reason = str(exc) or type(exc).__name__
            logger.debug("Push feed %s ended: %s", url, exc)
        finally:
            try:
                await ws.close()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Closing push feed %s failed: %s", url, exc)
        if path == "/events":
            yield Disconnected(reason)

    def close(self) -> None:
        if self._client is not None:
            logger.info("Closing gateway client")
            self._client.close()
