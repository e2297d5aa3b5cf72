"""
Side-effect command definitions for the session reducer.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from audio.frames import AudioFrame

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Remote peer
    CONNECT_REMOTE = "CONNECT_REMOTE"
    SEND_SESSION_UPDATE = "SEND_SESSION_UPDATE"
    APPEND_AUDIO = "APPEND_AUDIO"
    COMMIT_AUDIO = "COMMIT_AUDIO"
    CREATE_RESPONSE = "CREATE_RESPONSE"
    CLOSE_REMOTE = "CLOSE_REMOTE"

    # Client / transport
    SEND_JSON_TO_CLIENT = "SEND_JSON_TO_CLIENT"

    # Session / lifecycle
    END_SESSION = "END_SESSION"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Remote Peer Commands
# =============================================================================

@dataclass(frozen=True)
class ConnectRemote(Command):
    """Open the remote translation connection for this session."""
    session_id: str
    command_type: CommandType = CommandType.CONNECT_REMOTE


@dataclass(frozen=True)
class SendSessionUpdate(Command):
    """Send the one-time session configuration to the remote peer."""
    command_type: CommandType = CommandType.SEND_SESSION_UPDATE


@dataclass(frozen=True)
class AppendAudio(Command):
    """
    Append one frame of client audio to the remote input buffer.

    frame.partial marks a flushed remainder shorter than a full frame.
    """
    frame: AudioFrame
    command_type: CommandType = CommandType.APPEND_AUDIO


@dataclass(frozen=True)
class CommitAudio(Command):
    """Mark the remote input buffer as a complete utterance."""
    bytes_committed: int
    command_type: CommandType = CommandType.COMMIT_AUDIO


@dataclass(frozen=True)
class CreateResponse(Command):
    """Ask the remote peer to generate a translation for committed audio."""
    command_type: CommandType = CommandType.CREATE_RESPONSE


@dataclass(frozen=True)
class CloseRemote(Command):
    """
    Close the remote connection after delay_ms.

    A non-zero delay lets just-issued appends and commits land. Once
    started the delay is not cancelled.
    """
    delay_ms: int = 0
    command_type: CommandType = CommandType.CLOSE_REMOTE


# =============================================================================
# Client / Transport Commands
# =============================================================================

@dataclass(frozen=True)
class SendJSONToClient(Command):
    """
    Send a JSON message to the client.

    The runtime builds the envelope as {"type": message_type, **data}.
    """
    message_type: str
    data: dict[str, Any]
    command_type: CommandType = CommandType.SEND_JSON_TO_CLIENT


# =============================================================================
# Session / Lifecycle Commands
# =============================================================================

@dataclass(frozen=True)
class EndSession(Command):
    """Session reached CLOSED; release it from the registry."""
    reason: str | None = None
    command_type: CommandType = CommandType.END_SESSION


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
