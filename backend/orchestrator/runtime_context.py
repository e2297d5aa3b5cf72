"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution (remote peer, client sink, session settings).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, runtime_checkable

from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from protocol.realtime import RealtimeSessionSettings
    from session.voice_session import TranslationSession


# ---------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class RemotePeerProtocol(Protocol):
    """
    Remote translation service connection.

    Contract:
    - connect() returns promptly; the outcome arrives later as
      RemoteConnected or RemoteConnectFailed
    - send() raises RemoteConnectionError when the socket is absent or dead
    - close() is idempotent; RemoteClosed is emitted exactly once
    """

    async def connect(self) -> None: ...
    async def send(self, message: dict[str, Any]) -> None: ...
    async def close(self) -> None: ...
    async def wait_closed(self) -> None: ...


ClientSink = Callable[[dict[str, Any]], Awaitable[None]]
SessionEndCallback = Callable[[str, "str | None"], Awaitable[None]]


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    Live views into session-owned resources so Runtime does not need
    to synchronize or cache anything.

    Runtime is allowed to:
    - Call the remote peer
    - Send to the client sink
    - Observe connection state

    Runtime is NOT allowed to:
    - Mutate session state directly
    - Perform orchestration decisions
    """

    def __init__(self, session: TranslationSession) -> None:
        self.session = session

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.session.connection_status

    @property
    def remote(self) -> RemotePeerProtocol | None:
        return self.session.remote

    @property
    def settings(self) -> RealtimeSessionSettings:
        return self.session.settings

    async def send_to_client(self, message: dict[str, Any]) -> None:
        sink = self.session.client_sink
        if sink is None or self.session.connection_status is not ConnectionStatus.UP:
            return
        await sink(message)

    async def end_session(self, reason: str | None) -> None:
        callback = self.session.on_end
        if callback is not None:
            await callback(self.session.session_id, reason)
