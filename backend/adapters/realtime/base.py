"""
Remote translation adapter contract.

This module defines the *interface only*: no buffering, commit policy,
response tracking or orchestration decisions live here.

Key invariants:
- The adapter emits events; it does not call the reducer or make phase
  transitions.
- Connection outcome is reported asynchronously: exactly one of
  RemoteConnected / RemoteConnectFailed per connect().
- RemoteClosed is emitted exactly once after a successful connect, or
  when close() interrupts a connect still in flight.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class RemoteConnectionError(Exception):
    """Send attempted on an absent, closing or dead remote socket."""


class RealtimeAdapter(ABC):
    """
    Abstract interface for a remote speech-to-speech translation peer.

    Note: emit_event callback must be async.

    Non-responsibilities:
    - No session phases
    - No framing or commit timing
    - No direct interaction with the client WebSocket
    """

    @abstractmethod
    async def connect(self) -> None:
        """Start connecting in the background and return immediately."""
        raise NotImplementedError

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        """
        Send one JSON message to the remote service.

        Raises:
            RemoteConnectionError if the socket is not open.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Close the remote socket. Idempotent."""
        raise NotImplementedError

    @abstractmethod
    async def wait_closed(self) -> None:
        """Wait until the reader task has finished and RemoteClosed was emitted."""
        raise NotImplementedError
