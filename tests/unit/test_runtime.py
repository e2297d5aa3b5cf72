# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import pytest

import orchestrator.runtime as runtime_mod
from adapters.realtime.base import RemoteConnectionError
from orchestrator.enums.phase import Phase
from orchestrator.events import (
    ClientAudio,
    ClientInit,
    ClientStop,
    EventType,
    RemoteAudioDelta,
    RemoteClosed,
    RemoteConnected,
    RemoteResponseCreated,
    RemoteResponseDone,
    RemoteSessionUpdated,
)
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import SessionState
from session.voice_session import TranslationSession


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeRemote:
    """Records sends/closes; close() reports RemoteClosed like the real adapter."""

    def __init__(self, calls: list[str], *, fail_send: bool = False) -> None:
        self.calls = calls
        self.sent: list[dict[str, Any]] = []
        self.fail_send = fail_send
        self.emit: Any = None
        self.closed = 0

    async def connect(self) -> None:
        self.calls.append("connect")

    async def send(self, message: dict[str, Any]) -> None:
        if self.fail_send:
            raise RemoteConnectionError("socket gone")
        self.calls.append(f"send:{message['type']}")
        self.sent.append(message)

    async def close(self) -> None:
        self.closed += 1
        self.calls.append("close")
        if self.closed == 1 and self.emit is not None:
            await self.emit(
                RemoteClosed(event_type=EventType.REMOTE_CLOSED, ts_ms=0, reason="closed")
            )

    async def wait_closed(self) -> None:
        return None


class Harness:
    def __init__(self, *, grace_ms: int = 10, fail_send: bool = False, sink_error: bool = False):
        self.calls: list[str] = []
        self.to_client: list[dict[str, Any]] = []
        self.ended: list[str | None] = []
        self.sink_error = sink_error
        self.remote = FakeRemote(self.calls, fail_send=fail_send)

        self.session = TranslationSession(
            session_id="sess_rt",
            client_id="client_rt",
            client_sink=self._sink,
            on_end=self._on_end,
        )
        self.session.attach_remote(self.remote)
        self.runtime = Runtime(
            initial_state=SessionState(close_grace_ms=grace_ms),
            context=RuntimeExecutionContext(session=self.session),
        )
        self.session.attach_runtime(self.runtime)
        self.remote.emit = self.runtime.handle_event

    async def _sink(self, message: dict[str, Any]) -> None:
        if self.sink_error:
            raise RuntimeError("client socket closed")
        self.to_client.append(message)

    async def _on_end(self, session_id: str, reason: str | None) -> None:
        self.ended.append(reason)

    async def activate(self) -> None:
        rt = self.runtime
        await rt.handle_event(
            ClientInit(event_type=EventType.CLIENT_INIT, ts_ms=0, session_id="sess_rt")
        )
        await rt.handle_event(RemoteConnected(event_type=EventType.REMOTE_CONNECTED, ts_ms=0))
        await rt.handle_event(
            RemoteSessionUpdated(event_type=EventType.REMOTE_SESSION_UPDATED, ts_ms=0)
        )

    def types_to_client(self) -> list[str]:
        return [m["type"] for m in self.to_client]


def audio(n: int, ts_ms: int) -> ClientAudio:
    return ClientAudio(event_type=EventType.CLIENT_AUDIO, ts_ms=ts_ms, pcm_bytes=b"\x01" * n)


# ---------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------

def test_full_session_round_trip():
    h = Harness()

    async def scenario() -> None:
        await h.activate()
        assert h.calls == ["connect", "send:session.update"]
        assert h.types_to_client() == ["session_ready"]

        await h.runtime.handle_event(audio(34_000, ts_ms=2500))
        assert h.calls[2:] == [
            "send:input_audio_buffer.append",
            "send:input_audio_buffer.append",
            "send:input_audio_buffer.commit",
            "send:response.create",
        ]

        for event in (
            RemoteResponseCreated(
                event_type=EventType.REMOTE_RESPONSE_CREATED, ts_ms=0, response_id="r1"
            ),
            RemoteAudioDelta(
                event_type=EventType.REMOTE_AUDIO_DELTA,
                ts_ms=0,
                response_id="r1",
                pcm_bytes=b"\x05\x06",
            ),
            RemoteResponseDone(
                event_type=EventType.REMOTE_RESPONSE_DONE, ts_ms=0, response_id="r1"
            ),
        ):
            await h.runtime.handle_event(event)

        assert h.to_client[-1] == {"type": "translated_audio", "audio": [5, 6], "text": ""}

        await h.runtime.handle_event(ClientStop(event_type=EventType.CLIENT_STOP, ts_ms=3000))
        await h.runtime.shutdown()

    asyncio.run(scenario())

    assert h.runtime.state.phase is Phase.CLOSED
    assert h.remote.closed == 1
    assert h.ended == ["stopped"]
    assert h.types_to_client()[-1] == "session_stopped"


def test_grace_close_runs_after_final_flush_and_is_awaited():
    h = Harness(grace_ms=30)

    async def scenario() -> None:
        await h.activate()
        await h.runtime.handle_event(audio(3000, ts_ms=100))
        await h.runtime.handle_event(ClientStop(event_type=EventType.CLIENT_STOP, ts_ms=200))

        assert h.remote.closed == 0
        await h.runtime.shutdown()

    asyncio.run(scenario())

    assert h.calls[-2:] == ["send:input_audio_buffer.append", "close"]
    assert "send:input_audio_buffer.commit" not in h.calls
    assert h.runtime.ended


def test_send_failure_terminates_session_with_client_error():
    h = Harness(fail_send=True)

    async def scenario() -> None:
        await h.activate()
        await h.runtime.shutdown()

    asyncio.run(scenario())

    assert h.runtime.state.phase is Phase.CLOSED
    assert h.ended == ["transport_error"]
    assert {"type": "error", "message": "Translation service connection error"} in h.to_client
    assert h.remote.closed == 1


def test_client_send_failure_is_logged_not_raised(monkeypatch: pytest.MonkeyPatch):
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(runtime_mod, "log_event", emitted.append)

    h = Harness(sink_error=True)

    async def scenario() -> None:
        await h.activate()

    asyncio.run(scenario())

    assert h.runtime.state.phase is Phase.ACTIVE
    failures = [e for e in emitted if e.get("event_type") == "CLIENT_SEND_FAILED"]
    assert failures and failures[0]["message_type"] == "session_ready"


def test_append_logs_carry_frame_facts(monkeypatch: pytest.MonkeyPatch):
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(runtime_mod, "log_event", emitted.append)

    h = Harness()

    async def scenario() -> None:
        await h.activate()
        await h.runtime.handle_event(audio(24_000, ts_ms=100))

    asyncio.run(scenario())

    (sent,) = [e for e in emitted if e.get("event_type") == "REMOTE_APPEND_SENT"]
    assert sent["bytes"] == 24_000
    assert sent["sequence_num"] == 1
    assert not sent["partial"]
    assert 0.0 <= sent["rms"] <= 1.0


def test_concurrent_events_are_serialized():
    h = Harness()

    async def scenario() -> None:
        await h.activate()
        await asyncio.gather(*(h.runtime.handle_event(audio(5000, ts_ms=10)) for _ in range(10)))

    asyncio.run(scenario())

    state = h.runtime.state
    appended = sum(
        len(m["audio"]) for m in h.remote.sent if m["type"] == "input_audio_buffer.append"
    )
    assert state.frames_sent == 2
    assert appended * 3 // 4 == 48_000
    assert len(state.pending_audio) == 2000
