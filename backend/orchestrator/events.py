"""
Unified event definitions for the session reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- Timestamps are supplied by the source (or fixed in tests); the reducer
  never reads a clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (phase, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Client intent
    # ------------------------------------------------------------------
    CLIENT_INIT = "CLIENT_INIT"
    CLIENT_AUDIO = "CLIENT_AUDIO"
    CLIENT_STOP = "CLIENT_STOP"
    CLIENT_DISCONNECTED = "CLIENT_DISCONNECTED"

    # ------------------------------------------------------------------
    # Remote connection lifecycle
    # ------------------------------------------------------------------
    REMOTE_CONNECTED = "REMOTE_CONNECTED"
    REMOTE_CONNECT_FAILED = "REMOTE_CONNECT_FAILED"
    REMOTE_CLOSED = "REMOTE_CLOSED"
    REMOTE_TRANSPORT_ERROR = "REMOTE_TRANSPORT_ERROR"

    # ------------------------------------------------------------------
    # Remote protocol events
    # ------------------------------------------------------------------
    REMOTE_SESSION_CREATED = "REMOTE_SESSION_CREATED"
    REMOTE_SESSION_UPDATED = "REMOTE_SESSION_UPDATED"
    REMOTE_RESPONSE_CREATED = "REMOTE_RESPONSE_CREATED"
    REMOTE_AUDIO_DELTA = "REMOTE_AUDIO_DELTA"
    REMOTE_TRANSCRIPT_DELTA = "REMOTE_TRANSCRIPT_DELTA"
    REMOTE_INPUT_TRANSCRIPTION = "REMOTE_INPUT_TRANSCRIPTION"
    REMOTE_SPEECH_STARTED = "REMOTE_SPEECH_STARTED"
    REMOTE_SPEECH_STOPPED = "REMOTE_SPEECH_STOPPED"
    REMOTE_RESPONSE_DONE = "REMOTE_RESPONSE_DONE"
    REMOTE_ERROR = "REMOTE_ERROR"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Client Events
# =============================================================================

@dataclass(frozen=True)
class ClientInit(Event):
    """Client asked to start a translation session."""
    session_id: str


@dataclass(frozen=True)
class ClientAudio(Event):
    """Raw PCM16 mono audio chunk from the client, any length."""
    pcm_bytes: bytes


@dataclass(frozen=True)
class ClientStop(Event):
    """Client asked to end the session."""


@dataclass(frozen=True)
class ClientDisconnected(Event):
    """Client transport closed; the client can no longer be notified."""
    reason: str | None = None


# =============================================================================
# Remote Lifecycle Events
# =============================================================================

@dataclass(frozen=True)
class RemoteConnected(Event):
    """Remote socket is open; configuration has not been sent yet."""


@dataclass(frozen=True)
class RemoteConnectFailed(Event):
    """Remote socket could not be opened."""
    reason: str


@dataclass(frozen=True)
class RemoteClosed(Event):
    """Remote socket closed (requested or not)."""
    reason: str | None = None
    code: int | None = None


@dataclass(frozen=True)
class RemoteTransportError(Event):
    """A send on the remote leg failed."""
    reason: str


# =============================================================================
# Remote Protocol Events
# =============================================================================

@dataclass(frozen=True)
class RemoteSessionCreated(Event):
    """Remote acknowledged the socket with its default session."""
    remote_session_id: str | None = None


@dataclass(frozen=True)
class RemoteSessionUpdated(Event):
    """Remote accepted the session configuration."""


@dataclass(frozen=True)
class RemoteResponseCreated(Event):
    """Remote started generating a response."""
    response_id: str


@dataclass(frozen=True)
class RemoteAudioDelta(Event):
    """A slice of translated PCM16 audio for a response."""
    response_id: str
    pcm_bytes: bytes


@dataclass(frozen=True)
class RemoteTranscriptDelta(Event):
    """A slice of translated text for a response."""
    response_id: str
    text: str


@dataclass(frozen=True)
class RemoteInputTranscription(Event):
    """Transcription of the client's own speech for a committed item."""
    text: str
    item_id: str | None = None


@dataclass(frozen=True)
class RemoteSpeechStarted(Event):
    """Remote VAD detected the start of speech."""


@dataclass(frozen=True)
class RemoteSpeechStopped(Event):
    """Remote VAD detected the end of speech."""


@dataclass(frozen=True)
class RemoteResponseDone(Event):
    """Remote finished a response."""
    response_id: str
    status: str | None = None


@dataclass(frozen=True)
class RemoteError(Event):
    """
    Error reported by the remote service in-band.

    fatal=True means the session cannot continue on this connection.
    """
    message: str
    code: str | None = None
    error_type: str | None = None
    fatal: bool = False
