"""
OpenAI Realtime translation adapter (session-scoped WebSocket).

Core model:
- One remote WebSocket per translation session, opened on ConnectRemote and
  closed on CloseRemote (after the grace delay on a client stop).
- A single background task owns the socket lifetime: connect, then read
  until the socket closes.
- Inbound messages are decoded by protocol.realtime and emitted in arrival
  order; emission is awaited so the runtime sees them in wire order.

Event behavior:
- connect succeeded   => RemoteConnected
- connect failed      => RemoteConnectFailed (no RemoteClosed follows)
- socket closed       => RemoteClosed, exactly once
- undecodable message => logged as REMOTE_PARSE_ERROR and dropped

Design constraints:
- Adapter must not call the reducer directly.
- Adapter must not know about the client WebSocket.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Callable, Coroutine

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed

from adapters.realtime.base import RealtimeAdapter, RemoteConnectionError
from constants import REMOTE_CONNECT_TIMEOUT_S, REMOTE_MAX_MESSAGE_BYTES
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.events import (
    Event,
    EventType,
    RemoteClosed,
    RemoteConnected,
    RemoteConnectFailed,
)
from protocol.realtime import RemoteProtocolError, parse_remote_event


def _now_ms() -> int:
    return int(time.time() * 1000)


class OpenAIRealtimeAdapter(RealtimeAdapter):
    """
    Remote translation peer over the OpenAI Realtime WebSocket API.

    Public interface:
    - connect(): spawn the connection task, return immediately
    - send(message): JSON-encode and send, RemoteConnectionError if not open
    - close(): close the socket (or abort a connect in flight)
    - wait_closed(): join the connection task
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Coroutine[Any, Any, None]],
        api_key: str,
        url: str,
        model: str,
        session_id: str,
        open_timeout_s: float = REMOTE_CONNECT_TIMEOUT_S,
    ) -> None:
        self._emit_async = emit_event
        self._api_key = api_key
        self._url = url
        self._model = model
        self._session_id = session_id
        self._open_timeout_s = open_timeout_s

        self._ws: ClientConnection | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._closing = False
        self._closed_emitted = False

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        if self._run_task is not None or self._closing:
            return
        self._run_task = asyncio.create_task(self._run())

    async def send(self, message: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None or self._closing:
            raise RemoteConnectionError("remote socket is not open")

        try:
            await ws.send(json.dumps(message))
        except ConnectionClosed as e:
            raise RemoteConnectionError(f"remote socket closed: {e}") from e

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True

        ws = self._ws
        if ws is not None:
            await ws.close()
            return

        task = self._run_task
        if task is not None and not task.done():
            # Still connecting: abort the handshake.
            task.cancel()

    async def wait_closed(self) -> None:
        task = self._run_task
        if task is None:
            return
        await asyncio.gather(task, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    def _build_url(self) -> str:
        return f"{self._url}?model={self._model}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

    async def _run(self) -> None:
        try:
            with timed("remote_connect_latency", session_id=self._session_id):
                ws = await ws_connect(
                    self._build_url(),
                    additional_headers=self._headers(),
                    max_size=REMOTE_MAX_MESSAGE_BYTES,
                    open_timeout=self._open_timeout_s,
                )
        except asyncio.CancelledError:
            await self._emit_closed(reason="closed_before_open", code=None)
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "REMOTE_CONNECT_FAILED",
                "session_id": self._session_id,
                "error": repr(e),
            })
            await self._emit(
                RemoteConnectFailed(
                    event_type=EventType.REMOTE_CONNECT_FAILED,
                    ts_ms=_now_ms(),
                    reason=f"connect_failed: {e!r}",
                )
            )
            return

        self._ws = ws
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "REMOTE_CONNECTED",
            "session_id": self._session_id,
        })

        if self._closing:
            await ws.close()
        else:
            await self._emit(
                RemoteConnected(event_type=EventType.REMOTE_CONNECTED, ts_ms=_now_ms())
            )

        await self._recv_loop(ws)

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    async def _recv_loop(self, ws: ClientConnection) -> None:
        """Read until the socket closes, then emit RemoteClosed."""
        reason: str | None = None
        try:
            async for raw in ws:
                try:
                    event = parse_remote_event(raw, ts_ms=_now_ms())
                except RemoteProtocolError as e:
                    log_event({
                        "ts_ms": _now_ms(),
                        "event_type": "REMOTE_PARSE_ERROR",
                        "session_id": self._session_id,
                        "error": str(e),
                    })
                    continue

                if event is not None:
                    await self._emit(event)
        except ConnectionClosed as e:
            reason = f"connection_closed: {e}"
        except asyncio.CancelledError:
            reason = "cancelled"

        await self._emit_closed(
            reason=reason or ws.close_reason or "closed",
            code=ws.close_code,
        )

    async def _emit_closed(self, *, reason: str | None, code: int | None) -> None:
        if self._closed_emitted:
            return
        self._closed_emitted = True
        self._ws = None

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "REMOTE_CLOSED",
            "session_id": self._session_id,
            "reason": reason,
            "code": code,
        })
        await self._emit(
            RemoteClosed(
                event_type=EventType.REMOTE_CLOSED,
                ts_ms=_now_ms(),
                reason=reason,
                code=code,
            )
        )

    async def _emit(self, event: Event) -> None:
        try:
            await self._emit_async(event)
        except Exception as e:  # pylint: disable=broad-exception-caught
            # The reader must keep running so RemoteClosed is still delivered.
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "REMOTE_EMIT_FAILED",
                "session_id": self._session_id,
                "dropped_event": event.event_type.value,
                "error": repr(e),
            })
