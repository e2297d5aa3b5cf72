"""
Session gateway.

One gateway per client WebSocket connection.

Responsibilities:
- Tracks the client connection_status independently of the session phase
- Routes inbound client messages -> orchestrator events
- Creates the translation session on init (runtime, remote adapter,
  registry entry) and allows a fresh init once the previous session closed
- Reports client protocol errors to this client only

NOT responsible for:
- Framing, commit timing, relay rules (reducer)
- Executing commands (runtime)
- Remote wire format (protocol.realtime)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Coroutine
from uuid import uuid4

from constants import SESSION_ID_PREFIX
from observability.logger import log_event
from orchestrator.commit_scheduler import CommitPolicy
from orchestrator.events import (
    ClientAudio,
    ClientDisconnected,
    ClientInit,
    ClientStop,
    Event,
    EventType,
)
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import SessionState
from protocol.client import ClientProtocolError, error_message, parse_client_message
from protocol.realtime import RealtimeSessionSettings
from session.connection_status import ConnectionStatus
from session.registry import SessionIdInUse, SessionRegistry
from session.voice_session import TranslationSession

if TYPE_CHECKING:
    from config import AppConfig
    from orchestrator.runtime_context import RemotePeerProtocol


EmitEvent = Callable[[Event], Coroutine[Any, Any, None]]
RemoteFactory = Callable[[str, EmitEvent], "RemotePeerProtocol"]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"{SESSION_ID_PREFIX}{uuid4().hex[:12]}"


def _new_client_id() -> str:
    return f"client_{uuid4().hex[:12]}"


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        Messages produced by the gateway itself (e.g. protocol errors).
        Session output is delivered by the runtime through the client sink.
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """One gateway == one client connection, at most one live session at a time."""

    def __init__(
        self,
        *,
        config: AppConfig,
        registry: SessionRegistry,
        send_json: Callable[[dict[str, Any]], Awaitable[None]],
        remote_factory: RemoteFactory,
    ) -> None:
        self._config = config
        self._registry = registry
        self._send_json = send_json
        self._remote_factory = remote_factory

        self.client_id = _new_client_id()
        self.connection_status = ConnectionStatus.DOWN
        self.session: TranslationSession | None = None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def on_ws_connect(self) -> GatewayResult:
        """Called when the client WebSocket is accepted."""
        self.connection_status = ConnectionStatus.UP
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CLIENT_CONNECTED",
            "client_id": self.client_id,
        })
        return GatewayResult()

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """
        Called when the client WebSocket is gone.

        A live session is stopped (final flush/commit, grace-delay close)
        and this call waits until the remote leg has been torn down.
        """
        self.connection_status = ConnectionStatus.DOWN
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CLIENT_DISCONNECTED",
            "client_id": self.client_id,
            "reason": reason,
        })

        session = self.session
        if session is None or session.runtime is None:
            return GatewayResult()

        session.connection_status = ConnectionStatus.DOWN
        runtime = session.runtime
        await runtime.handle_event(
            ClientDisconnected(
                event_type=EventType.CLIENT_DISCONNECTED,
                ts_ms=_now_ms(),
                reason=reason,
            )
        )
        await runtime.shutdown()
        return GatewayResult()

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route one client text frame."""
        try:
            event = parse_client_message(payload, ts_ms=_now_ms())
        except ClientProtocolError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CLIENT_PROTOCOL_ERROR",
                "client_id": self.client_id,
                "session_id": self.session.session_id if self.session else None,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            return GatewayResult(outbound_json=(error_message(f"Invalid message: {e}"),))

        if isinstance(event, ClientInit):
            return await self._start_session(event)

        if isinstance(event, ClientAudio):
            return await self._on_audio(event)

        if isinstance(event, ClientStop):
            return await self._on_stop(event)

        return GatewayResult()

    async def on_binary_message(self, payload: bytes) -> GatewayResult:
        """Binary frames are raw PCM16 audio."""
        return await self._on_audio(
            ClientAudio(
                event_type=EventType.CLIENT_AUDIO,
                ts_ms=_now_ms(),
                pcm_bytes=payload,
            )
        )

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _live_runtime(self) -> Runtime | None:
        session = self.session
        if session is None or session.runtime is None or session.runtime.ended:
            return None
        return session.runtime

    async def _start_session(self, event: ClientInit) -> GatewayResult:
        if self._live_runtime() is not None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INIT_REJECTED",
                "client_id": self.client_id,
                "session_id": self.session.session_id if self.session else None,
                "reason": "session_active",
            })
            return GatewayResult(
                outbound_json=(error_message("A translation session is already active"),)
            )

        session_id = event.session_id or _new_session_id()
        config = self._config

        session = TranslationSession(
            session_id=session_id,
            client_id=self.client_id,
            settings=RealtimeSessionSettings.from_config(config),
            connection_status=self.connection_status,
            client_sink=self._send_json,
            on_end=self._on_session_end,
        )

        try:
            await self._registry.add(session)
        except SessionIdInUse:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INIT_REJECTED",
                "client_id": self.client_id,
                "session_id": session_id,
                "reason": "session_id_in_use",
            })
            return GatewayResult(
                outbound_json=(error_message(f"Session id already in use: {session_id}"),)
            )

        audio_format = config.audio_format
        runtime = Runtime(
            initial_state=SessionState(
                audio_format=audio_format,
                commit_policy=CommitPolicy.from_ms(
                    audio_format,
                    commit_interval_ms=config.commit_interval_ms,
                    flush_floor_ms=config.flush_floor_ms,
                    commit_floor_ms=config.commit_floor_ms,
                ),
                close_grace_ms=config.remote_close_grace_ms,
            ),
            context=RuntimeExecutionContext(session=session),
        )

        session.attach_remote(self._remote_factory(session_id, runtime.handle_event))
        session.attach_runtime(runtime)
        self.session = session

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "SESSION_STARTED",
            **session.log_context(),
        })

        await runtime.handle_event(replace(event, session_id=session_id))
        return GatewayResult()

    async def _on_session_end(self, session_id: str, reason: str | None) -> None:
        await self._registry.remove(session_id, reason)

    async def _on_audio(self, event: ClientAudio) -> GatewayResult:
        runtime = self._live_runtime()
        if runtime is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "AUDIO_WITHOUT_SESSION",
                "client_id": self.client_id,
                "payload_len": len(event.pcm_bytes),
            })
            return GatewayResult()

        await runtime.handle_event(event)
        return GatewayResult()

    async def _on_stop(self, event: ClientStop) -> GatewayResult:
        runtime = self._live_runtime()
        if runtime is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "STOP_WITHOUT_SESSION",
                "client_id": self.client_id,
            })
            return GatewayResult()

        await runtime.handle_event(event)
        return GatewayResult()
