"""
Runtime execution shell for a single translation session.

Responsibilities:
- Own session state
- Call the pure reducer
- Execute commands with side effects (remote sends, client sends, close)
- Convert command failures into follow-up events
- Run the grace-delay remote close

Non-responsibilities:
- Framing, commit timing or response tracking (reducer)
- Wire formats (protocol/*)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import TYPE_CHECKING, Any

from adapters.realtime.base import RemoteConnectionError
from audio.pcm import rms_level
from constants import REMOTE_SHUTDOWN_TIMEOUT_S
from observability.logger import log_event
from orchestrator.commands import (
    AppendAudio,
    CloseRemote,
    Command,
    CommitAudio,
    ConnectRemote,
    CreateResponse,
    EndSession,
    LogEvent,
    SendJSONToClient,
    SendSessionUpdate,
)
from orchestrator.enums.phase import Phase
from orchestrator.events import (
    Event,
    EventType,
    RemoteConnectFailed,
    RemoteTransportError,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import SessionState
from protocol.client import encode_server_message
from protocol.realtime import (
    build_append,
    build_commit,
    build_response_create,
    build_session_update,
)

if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for a single translation session.

    Architectural role:
    Runtime is the bridge between the pure orchestration layer
    (reducer + immutable state) and the imperative world
    (remote socket, client socket, logging, time).

    Guarantees:
    - One mutator: events from the client loop and the remote reader are
      serialized by a per-session lock
    - Reducer is called exactly once per event, state is swapped before
      any command executes
    - Commands execute in reducer-emitted order
    - Follow-up events raised by command execution are queued and reduced
      after the current batch, under the same lock acquisition
    """

    def __init__(
        self,
        *,
        initial_state: SessionState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._lock = asyncio.Lock()
        self._pending: deque[Event] = deque()
        self._close_tasks: list[asyncio.Task[None]] = []
        self._remote_failed = False
        self._ended = asyncio.Event()

    @property
    def state(self) -> SessionState:
        """
        Current immutable session state.

        Read-only for consumers; only the reducer produces new values.
        """
        return self._state

    @property
    def ended(self) -> bool:
        return self._ended.is_set()

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        This is the only entry point for events affecting session state.
        All event sources converge here:
        - Gateway (client messages, disconnect)
        - Remote adapter (connection lifecycle, protocol events)
        - Command execution (follow-up failures)
        """
        async with self._lock:
            self._pending.append(event)
            while self._pending:
                current = self._pending.popleft()
                new_state, commands = reduce(self._state, current)
                self._state = new_state

                for cmd in commands:
                    await self._execute_command(cmd)

    async def wait_ended(self, timeout_s: float | None = None) -> bool:
        """Wait until EndSession was executed. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._ended.wait(), timeout=timeout_s)
        except asyncio.TimeoutError:
            return False
        return True

    async def shutdown(self, *, timeout_s: float = REMOTE_SHUTDOWN_TIMEOUT_S) -> None:
        """
        Clean shutdown of the runtime.

        Awaits pending grace-delay closes (never cancels them, the final
        commit must land), then waits for the remote reader to finish.
        Called by the gateway after the client disconnected.
        """
        while any(not t.done() for t in self._close_tasks):
            await asyncio.gather(*self._close_tasks, return_exceptions=True)

        remote = self._ctx.remote
        if remote is not None:
            try:
                await asyncio.wait_for(remote.wait_closed(), timeout=timeout_s)
            except asyncio.TimeoutError:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "RUNTIME_SHUTDOWN_TIMEOUT",
                    "session_id": self._ctx.session_id,
                    "phase": self._state.phase.value,
                })

        if not self._ended.is_set() and self._state.phase is not Phase.IDLE:
            # The reader never reported closure; release the registry slot.
            self._ended.set()
            await self._ctx.end_session("shutdown_timeout")

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "connection_status": self._ctx.connection_status.value,
            })

        elif isinstance(cmd, ConnectRemote):
            remote = self._ctx.remote
            if remote is None:
                self._pending.append(
                    RemoteConnectFailed(
                        event_type=EventType.REMOTE_CONNECT_FAILED,
                        ts_ms=_now_ms(),
                        reason="no remote adapter configured",
                    )
                )
                return
            await remote.connect()
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "REMOTE_CONNECT_STARTED",
                "session_id": cmd.session_id,
            })

        elif isinstance(cmd, SendSessionUpdate):
            await self._send_remote(
                build_session_update(self._ctx.settings), "session.update"
            )

        elif isinstance(cmd, AppendAudio):
            sent = await self._send_remote(
                build_append(cmd.frame.pcm_bytes), "input_audio_buffer.append"
            )
            if sent:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "REMOTE_APPEND_SENT",
                    "session_id": self._ctx.session_id,
                    "sequence_num": cmd.frame.sequence_num,
                    "bytes": len(cmd.frame),
                    "partial": cmd.frame.partial,
                    "rms": round(rms_level(cmd.frame.pcm_bytes), 4),
                })

        elif isinstance(cmd, CommitAudio):
            sent = await self._send_remote(build_commit(), "input_audio_buffer.commit")
            if sent:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "REMOTE_COMMIT_SENT",
                    "session_id": self._ctx.session_id,
                    "bytes_committed": cmd.bytes_committed,
                })

        elif isinstance(cmd, CreateResponse):
            sent = await self._send_remote(
                build_response_create(self._ctx.settings), "response.create"
            )
            if sent:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "REMOTE_RESPONSE_REQUESTED",
                    "session_id": self._ctx.session_id,
                })

        elif isinstance(cmd, CloseRemote):
            self._schedule_close(cmd.delay_ms)

        elif isinstance(cmd, SendJSONToClient):
            await self._send_client(encode_server_message(cmd.message_type, cmd.data))

        elif isinstance(cmd, EndSession):
            self._ended.set()
            await self._ctx.end_session(cmd.reason)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "SESSION_ENDED",
                "session_id": self._ctx.session_id,
                "reason": cmd.reason,
            })

        else:
            raise TypeError(f"Unhandled command: {type(cmd).__name__}")

    # ------------------------------------------------------------------
    # Remote leg
    # ------------------------------------------------------------------

    async def _send_remote(self, message: dict[str, Any], kind: str) -> bool:
        """
        Send to the remote peer.

        A failed send queues RemoteTransportError; later sends in the same
        session are skipped.
        """
        if self._remote_failed:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "REMOTE_SEND_SKIPPED",
                "session_id": self._ctx.session_id,
                "message_type": kind,
            })
            return False

        remote = self._ctx.remote
        try:
            if remote is None:
                raise RemoteConnectionError("no remote adapter configured")
            await remote.send(message)
        except RemoteConnectionError as e:
            self._remote_failed = True
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "REMOTE_SEND_FAILED",
                "session_id": self._ctx.session_id,
                "message_type": kind,
                "error": str(e),
            })
            self._pending.append(
                RemoteTransportError(
                    event_type=EventType.REMOTE_TRANSPORT_ERROR,
                    ts_ms=_now_ms(),
                    reason=f"{kind} send failed: {e}",
                )
            )
            return False
        return True

    def _schedule_close(self, delay_ms: int) -> None:
        self._close_tasks = [t for t in self._close_tasks if not t.done()]
        self._close_tasks.append(asyncio.create_task(self._close_remote_after(delay_ms)))
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "REMOTE_CLOSE_SCHEDULED",
            "session_id": self._ctx.session_id,
            "delay_ms": delay_ms,
        })

    async def _close_remote_after(self, delay_ms: int) -> None:
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)

        remote = self._ctx.remote
        if remote is None:
            return
        await remote.close()
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "REMOTE_CLOSE_EXECUTED",
            "session_id": self._ctx.session_id,
            "delay_ms": delay_ms,
        })

    # ------------------------------------------------------------------
    # Client leg
    # ------------------------------------------------------------------

    async def _send_client(self, message: dict[str, Any]) -> None:
        """Client send failures are logged and never raised into the session."""
        try:
            await self._ctx.send_to_client(message)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CLIENT_SEND_FAILED",
                "session_id": self._ctx.session_id,
                "message_type": message.get("type"),
                "error": repr(e),
            })
