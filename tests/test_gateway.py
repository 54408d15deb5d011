from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from messages_tui.client import AuthError, ChatServiceError, GatewayChatService, ServiceUnavailableError
from messages_tui.client.events import (
    ClientReady,
    Connected,
    Disconnected,
    FatalError,
    NewMessage,
    Paired,
    QrReady,
)
from messages_tui.client.gateway import parse_conversation, parse_message, parse_push_frame
from messages_tui.config import GatewayConfig
from messages_tui.models import MessageStatus


SAMPLE_CONVERSATIONS = {
    "conversations": [
        {
            "id": "conv-1",
            "name": "Alice",
            "latestMessage": "see you",
            "latestTimestamp": 1771379198943,
            "latestMessageId": "msg-9",
            "unread": True,
            "isGroup": False,
            "participants": ["+15550001"],
        },
        {"id": "conv-2", "name": "Family", "isGroup": True},
        {"name": "no id"},
    ]
}

SAMPLE_MESSAGES = {
    "messages": [
        {"id": "m2", "conversationId": "conv-1", "content": "second", "timestamp": 20, "isFromMe": True, "status": "read"},
        {"id": "m1", "conversationId": "conv-1", "content": "first", "timestamp": 10, "senderName": "Alice"},
    ]
}


def make_service(handler, token: str | None = "test-token", connector=None) -> GatewayChatService:
    config = GatewayConfig(host="127.0.0.1", port=18790, token=token)
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    client = httpx.Client(
        base_url=config.base_url,
        headers=headers,
        transport=httpx.MockTransport(handler),
    )
    return GatewayChatService(config, http_client=client, connector=connector)


class TestParsing:
    def test_parse_conversation_maps_camel_case(self):
        conv = parse_conversation(SAMPLE_CONVERSATIONS["conversations"][0])
        assert conv.id == "conv-1"
        assert conv.latest_message == "see you"
        assert conv.latest_message_id == "msg-9"
        assert conv.unread is True
        assert conv.participants == ("+15550001",)

    def test_parse_message_unknown_status_falls_back(self):
        msg = parse_message({"id": "x", "conversationId": "c", "status": "weird"})
        assert msg.status is MessageStatus.SENT
        assert msg.content == ""

    def test_parse_message_requires_conversation(self):
        with pytest.raises(KeyError):
            parse_message({"id": "x"})

    @pytest.mark.parametrize(
        "frame, expected",
        [
            ({"type": "connected"}, Connected()),
            ({"type": "disconnected", "reason": "bye"}, Disconnected("bye")),
            ({"type": "pair.qr", "url": "https://pair/xyz"}, QrReady("https://pair/xyz")),
            ({"type": "pair.success", "session": {"k": 1}}, Paired({"k": 1})),
            ({"type": "client.ready"}, ClientReady()),
            ({"type": "error.fatal", "error": "logged out"}, FatalError("logged out")),
        ],
    )
    def test_push_frames(self, frame, expected):
        assert parse_push_frame(json.dumps(frame)) == expected

    def test_new_message_frame(self):
        frame = {"type": "message.new", "message": SAMPLE_MESSAGES["messages"][1]}
        event = parse_push_frame(json.dumps(frame))
        assert isinstance(event, NewMessage)
        assert event.message.sender_name == "Alice"

    @pytest.mark.parametrize(
        "raw",
        ["not json", "[1]", json.dumps({"type": "mystery"}), json.dumps({"type": "pair.qr"})],
    )
    def test_unusable_frames_are_dropped(self, raw):
        assert parse_push_frame(raw) is None


class TestRequests:
    def test_list_conversations_skips_malformed_records(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["limit"] = request.url.params["limit"]
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=SAMPLE_CONVERSATIONS)

        conversations = make_service(handler).list_conversations(25)
        assert [c.id for c in conversations] == ["conv-1", "conv-2"]
        assert seen == {"path": "/conversations", "limit": "25", "auth": "Bearer test-token"}

    def test_fetch_messages_sorted_oldest_first(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/conversations/conv-1/messages"
            return httpx.Response(200, json=SAMPLE_MESSAGES)

        messages = make_service(handler).fetch_messages("conv-1")
        assert [m.id for m in messages] == ["m1", "m2"]
        assert messages[1].status is MessageStatus.READ

    def test_send_message_posts_text(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append((request.method, request.url.raw_path, json.loads(request.content)))
            return httpx.Response(204)

        make_service(handler).send_message("conv/1", "hello")
        assert bodies == [("POST", b"/conversations/conv%2F1/messages", {"text": "hello"})]

    def test_mark_read_and_reaction(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"ok": True})

        service = make_service(handler)
        service.mark_read("c1", "m1")
        service.send_reaction("c1", "m1", "👍")
        assert calls == [
            ("/conversations/c1/read", {"messageId": "m1"}),
            ("/conversations/c1/messages/m1/reactions", {"emoji": "👍"}),
        ]

    def test_restore_rejected_session_returns_false(self):
        service = make_service(lambda request: httpx.Response(401))
        assert service.restore({"token": "stale"}) is False

    def test_restore_accepted(self):
        service = make_service(lambda request: httpx.Response(200, json={"ok": True}))
        assert service.restore({"token": "fresh"}) is True

    def test_export_session_requires_object(self):
        service = make_service(lambda request: httpx.Response(200, json=[1, 2]))
        with pytest.raises(ChatServiceError):
            service.export_session()

    def test_auth_error(self):
        service = make_service(lambda request: httpx.Response(403))
        with pytest.raises(AuthError):
            service.list_conversations()

    def test_http_error_includes_detail(self):
        service = make_service(lambda request: httpx.Response(500, json={"error": "phone offline"}))
        with pytest.raises(ChatServiceError, match="phone offline"):
            service.connect()

    def test_connect_error_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ServiceUnavailableError):
            make_service(handler).list_conversations()

    def test_invalid_json_raises(self):
        service = make_service(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(ChatServiceError):
            service.list_conversations()


class _FakeWebSocket:
    def __init__(self, frames: list[str], error: Exception | None = None) -> None:
        self._frames = list(frames)
        self._error = error
        self.closed = False

    def __aiter__(self) -> _FakeWebSocket:
        return self

    async def __anext__(self) -> str:
        if self._frames:
            return self._frames.pop(0)
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration

    async def close(self) -> None:
        self.closed = True


async def collect(feed) -> list:
    return [event async for event in feed]


class TestPushFeeds:
    @pytest.mark.asyncio
    async def test_events_feed_yields_and_reports_disconnect(self):
        ws = _FakeWebSocket([json.dumps({"type": "connected"}), json.dumps({"type": "mystery"})])
        urls = []

        async def connector(url: str) -> _FakeWebSocket:
            urls.append(url)
            return ws

        service = make_service(lambda request: httpx.Response(204), connector=connector)
        events = await collect(service.events())
        assert urls == ["ws://127.0.0.1:18790/events"]
        assert events == [Connected(), Disconnected("closed")]
        assert ws.closed

    @pytest.mark.asyncio
    async def test_events_feed_reports_connection_error_reason(self):
        ws = _FakeWebSocket([], error=ConnectionResetError("reset by peer"))

        async def connector(url: str) -> _FakeWebSocket:
            return ws

        service = make_service(lambda request: httpx.Response(204), connector=connector)
        assert await collect(service.events()) == [Disconnected("reset by peer")]

    @pytest.mark.asyncio
    async def test_pairing_feed_ends_quietly(self):
        ws = _FakeWebSocket([json.dumps({"type": "pair.qr", "url": "u"})])

        async def connector(url: str) -> _FakeWebSocket:
            assert url.endswith("/pair/events")
            return ws

        service = make_service(lambda request: httpx.Response(204), connector=connector)
        assert await collect(service.pairing_events()) == [QrReady("u")]

    @pytest.mark.asyncio
    async def test_connect_failure_yields_fatal(self):
        async def connector(url: str):
            raise OSError("connection refused")

        service = make_service(lambda request: httpx.Response(204), connector=connector)
        events = await asyncio.wait_for(collect(service.events()), timeout=1)
        assert len(events) == 1
        assert isinstance(events[0], FatalError)
        assert "connection refused" in events[0].error
