"""
CONSTANTS
---------
Single source of truth for behavioral defaults of the translation relay.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- Deployment overrides go through config.AppConfig, which falls back to these.
- No magic numbers elsewhere in the codebase.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, FrozenSet, Tuple

# =============================================================================
# Audio Format (PCM16 mono @ 24kHz)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 24_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)
AUDIO_FRAME_MS: Final[int] = 500

AUDIO_BYTES_PER_SECOND: Final[int] = (
    AUDIO_SAMPLE_RATE_HZ * AUDIO_SAMPLE_WIDTH_BYTES * AUDIO_CHANNELS
)

# =============================================================================
# Commit Policy
# =============================================================================

# Flush + commit is considered at most once per interval.
COMMIT_INTERVAL_MS: Final[int] = 2_000

# Retained remainder must hold at least this much audio before a timed flush.
FLUSH_FLOOR_MS: Final[int] = 200

# Audio sent since the last commit must reach this before a commit is issued.
# The remote service rejects commits below its own minimum input duration.
COMMIT_FLOOR_MS: Final[int] = 100

# =============================================================================
# Session Lifecycle
# =============================================================================

# Delay between a stop and closing the remote socket so the final
# append/commit can land.
REMOTE_CLOSE_GRACE_MS: Final[int] = 1_000

REMOTE_CONNECT_TIMEOUT_S: Final[float] = 10.0
REMOTE_MAX_MESSAGE_BYTES: Final[int] = 2**24

# Upper bound on waiting for the remote reader to finish during teardown.
REMOTE_SHUTDOWN_TIMEOUT_S: Final[float] = 5.0

SESSION_ID_PREFIX: Final[str] = "sess_"

# =============================================================================
# Remote Translation Service (OpenAI Realtime, beta event schema)
# =============================================================================

REALTIME_URL_DEFAULT: Final[str] = "wss://api.openai.com/v1/realtime"
REALTIME_MODEL_DEFAULT: Final[str] = "gpt-4o-realtime-preview-2024-12-17"
REALTIME_VOICE_DEFAULT: Final[str] = "alloy"
TRANSCRIPTION_MODEL_DEFAULT: Final[str] = "whisper-1"
TARGET_LANGUAGE_DEFAULT: Final[str] = "Hindi"
REALTIME_AUDIO_FORMAT: Final[str] = "pcm16"

SESSION_MODALITIES: Final[Tuple[str, ...]] = ("text", "audio")
RESPONSE_MODALITIES: Final[Tuple[str, ...]] = ("audio", "text")

VAD_TYPE: Final[str] = "server_vad"
VAD_THRESHOLD_DEFAULT: Final[float] = 0.5
VAD_PREFIX_PADDING_MS_DEFAULT: Final[int] = 300
VAD_SILENCE_DURATION_MS_DEFAULT: Final[int] = 500

# Remote errors that end the session instead of being relayed and survived.
FATAL_REMOTE_ERROR_TYPES: Final[FrozenSet[str]] = frozenset({
    "authentication_error",
    "server_error",
})
FATAL_REMOTE_ERROR_CODES: Final[FrozenSet[str]] = frozenset({
    "invalid_api_key",
    "session_expired",
    "insufficient_quota",
})

# =============================================================================
# Client-facing status strings
# =============================================================================

MSG_SESSION_READY: Final[str] = "Real-time translation ready"
MSG_SPEECH_STARTED: Final[str] = "Listening..."
MSG_SPEECH_STOPPED: Final[str] = "Processing..."
MSG_SESSION_STOPPED: Final[str] = "Translation session stopped"

# =============================================================================
# Helper Functions
# =============================================================================

def ms_to_bytes(duration_ms: int, bytes_per_second: int = AUDIO_BYTES_PER_SECOND) -> int:
    """
    Convert a duration to a whole number of PCM bytes (floor).

    Non-positive input returns 0.
    """
    if duration_ms <= 0:
        return 0
    return (bytes_per_second * duration_ms) // 1000


# =============================================================================
# Convenience Bundles
# =============================================================================

@dataclass(frozen=True)
class AudioFormat:
    """
    Immutable bundle describing the PCM audio format and frame size.

    This is a convenience wrapper for passing format metadata around;
    it is NOT a second source of truth.
    """
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    channels: int = AUDIO_CHANNELS
    sample_width_bytes: int = AUDIO_SAMPLE_WIDTH_BYTES
    frame_ms: int = AUDIO_FRAME_MS

    @property
    def bytes_per_second(self) -> int:
        """Return number of bytes per second of audio."""
        return self.sample_rate_hz * self.sample_width_bytes * self.channels

    @property
    def bytes_per_frame(self) -> int:
        """Return number of bytes per frame."""
        return (self.bytes_per_second * self.frame_ms) // 1000

    def bytes_for_ms(self, duration_ms: int) -> int:
        """Return the byte count of duration_ms of audio in this format."""
        return ms_to_bytes(duration_ms, self.bytes_per_second)

    def as_dict(self) -> dict[str, int]:
        """Client-facing description of the expected input audio."""
        return {
            "sample_rate": self.sample_rate_hz,
            "sample_width": self.sample_width_bytes,
            "channels": self.channels,
            "frame_duration_ms": self.frame_ms,
        }


AUDIO_FORMAT_DEFAULT: Final[AudioFormat] = AudioFormat()
