"""
Translation session container.

- Holds identity, client connection status and session-scoped resources
- Owned and mutated by SessionGateway
- NOT a state machine; contains no orchestration logic
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from protocol.realtime import RealtimeSessionSettings
from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from orchestrator.runtime import Runtime
    from orchestrator.runtime_context import (
        ClientSink,
        RemotePeerProtocol,
        SessionEndCallback,
    )


@dataclass
class TranslationSession:
    """Mutable runtime container for a single translation session."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    client_id: str
    settings: RealtimeSessionSettings = field(default_factory=RealtimeSessionSettings)
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Client leg (gateway-controlled)
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.UP
    client_sink: ClientSink | None = None
    on_end: SessionEndCallback | None = None

    # ------------------------------------------------------------------
    # Remote leg and executor
    # ------------------------------------------------------------------

    remote: RemotePeerProtocol | None = None
    runtime: Runtime | None = None

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionGateway)
    # ------------------------------------------------------------------

    def attach_remote(self, remote: RemotePeerProtocol) -> None:
        self.remote = remote

    def attach_runtime(self, runtime: Runtime) -> None:
        """Attach the runtime executor. Must be called after attach_remote()."""
        self.runtime = runtime

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        phase = self.runtime.state.phase.value if self.runtime is not None else None
        return {
            "session_id": self.session_id,
            "client_id": self.client_id,
            "connection_status": self.connection_status.value,
            "phase": phase,
        }
