# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from typing import Any

import pytest

import adapters.realtime.openai_realtime as adapter_mod
from adapters.realtime.base import RemoteConnectionError
from adapters.realtime.openai_realtime import OpenAIRealtimeAdapter
from orchestrator.events import Event, EventType


class FakeConnection:
    """Stands in for websockets' ClientConnection: async-iterable, send, close."""

    def __init__(self, messages: list[str]) -> None:
        self._messages = messages
        self._closed = asyncio.Event()
        self.sent: list[dict[str, Any]] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for message in self._messages:
            yield message
        await self._closed.wait()

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.close_code = 1000
        self.close_reason = "bye"
        self._closed.set()


def make_adapter(emitted: list[Event]) -> OpenAIRealtimeAdapter:
    async def emit(event: Event) -> None:
        emitted.append(event)

    return OpenAIRealtimeAdapter(
        emit_event=emit,
        api_key="sk-test",
        url="wss://example.invalid/v1/realtime",
        model="test-model",
        session_id="sess_adapter",
    )


@pytest.fixture
def logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    captured: list[dict[str, Any]] = []
    monkeypatch.setattr(adapter_mod, "log_event", captured.append)
    return captured


def test_connect_emits_decoded_events_in_order_then_closed_once(
    monkeypatch: pytest.MonkeyPatch, logs: list[dict[str, Any]]
):
    conn = FakeConnection([
        json.dumps({"type": "session.created", "session": {"id": "remote_1"}}),
        "{not json",
        json.dumps({"type": "rate_limits.updated"}),
        json.dumps({"type": "session.updated"}),
    ])
    calls: list[dict[str, Any]] = []

    async def fake_connect(url: str, **kwargs: Any) -> FakeConnection:
        calls.append({"url": url, **kwargs})
        return conn

    monkeypatch.setattr(adapter_mod, "ws_connect", fake_connect)
    emitted: list[Event] = []
    adapter = make_adapter(emitted)

    async def scenario() -> None:
        await adapter.connect()
        await adapter.connect()
        while len(emitted) < 3:
            await asyncio.sleep(0)

        await adapter.send({"type": "input_audio_buffer.commit"})
        await adapter.close()
        await adapter.close()
        await adapter.wait_closed()

    asyncio.run(scenario())

    assert [e.event_type for e in emitted] == [
        EventType.REMOTE_CONNECTED,
        EventType.REMOTE_SESSION_CREATED,
        EventType.REMOTE_SESSION_UPDATED,
        EventType.REMOTE_CLOSED,
    ]
    assert emitted[-1].code == 1000
    assert conn.sent == [{"type": "input_audio_buffer.commit"}]

    (call,) = calls
    assert call["url"] == "wss://example.invalid/v1/realtime?model=test-model"
    assert call["additional_headers"]["Authorization"] == "Bearer sk-test"
    assert call["additional_headers"]["OpenAI-Beta"] == "realtime=v1"
    assert any(e["event_type"] == "REMOTE_PARSE_ERROR" for e in logs)


def test_connect_failure_emits_connect_failed_only(
    monkeypatch: pytest.MonkeyPatch, logs: list[dict[str, Any]]
):
    async def failing_connect(url: str, **kwargs: Any) -> FakeConnection:
        raise OSError("dns failure")

    monkeypatch.setattr(adapter_mod, "ws_connect", failing_connect)
    emitted: list[Event] = []
    adapter = make_adapter(emitted)

    async def scenario() -> None:
        await adapter.connect()
        await adapter.wait_closed()

    asyncio.run(scenario())

    (event,) = emitted
    assert event.event_type is EventType.REMOTE_CONNECT_FAILED
    assert "dns failure" in event.reason
    assert logs[-1]["event_type"] == "REMOTE_CONNECT_FAILED"


def test_send_before_connect_raises():
    adapter = make_adapter([])

    with pytest.raises(RemoteConnectionError):
        asyncio.run(adapter.send({"type": "input_audio_buffer.commit"}))


def test_close_during_handshake_emits_closed(
    monkeypatch: pytest.MonkeyPatch, logs: list[dict[str, Any]]
):
    async def hanging_connect(url: str, **kwargs: Any) -> FakeConnection:
        await asyncio.Event().wait()
        raise AssertionError("unreachable")

    monkeypatch.setattr(adapter_mod, "ws_connect", hanging_connect)
    emitted: list[Event] = []
    adapter = make_adapter(emitted)

    async def scenario() -> None:
        await adapter.connect()
        await asyncio.sleep(0)
        await adapter.close()
        await adapter.wait_closed()

        with pytest.raises(RemoteConnectionError):
            await adapter.send({"type": "input_audio_buffer.commit"})

    asyncio.run(scenario())

    (event,) = emitted
    assert event.event_type is EventType.REMOTE_CLOSED
    assert event.reason == "closed_before_open"


def test_emit_failure_does_not_stop_the_reader(
    monkeypatch: pytest.MonkeyPatch, logs: list[dict[str, Any]]
):
    conn = FakeConnection([json.dumps({"type": "session.updated"})])

    async def fake_connect(url: str, **kwargs: Any) -> FakeConnection:
        return conn

    monkeypatch.setattr(adapter_mod, "ws_connect", fake_connect)
    seen: list[Event] = []

    async def flaky_emit(event: Event) -> None:
        seen.append(event)
        if event.event_type is EventType.REMOTE_SESSION_UPDATED:
            raise RuntimeError("runtime exploded")

    adapter = OpenAIRealtimeAdapter(
        emit_event=flaky_emit,
        api_key="sk-test",
        url="wss://example.invalid/v1/realtime",
        model="test-model",
        session_id="sess_adapter",
    )

    async def scenario() -> None:
        await adapter.connect()
        while len(seen) < 2:
            await asyncio.sleep(0)
        await adapter.close()
        await adapter.wait_closed()

    asyncio.run(scenario())

    assert seen[-1].event_type is EventType.REMOTE_CLOSED
    assert any(e["event_type"] == "REMOTE_EMIT_FAILED" for e in logs)
