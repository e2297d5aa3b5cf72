"""
Remote translation service wire codec (OpenAI Realtime, beta event schema).

Responsibilities:
- Parse inbound JSON events into typed orchestrator events
- Build outbound JSON messages (session.update, append, commit, response.create)
- Classify remote errors as fatal or recoverable

Non-responsibilities:
- No sockets, no retries, no session state
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Mapping

from constants import (
    FATAL_REMOTE_ERROR_CODES,
    FATAL_REMOTE_ERROR_TYPES,
    REALTIME_AUDIO_FORMAT,
    REALTIME_VOICE_DEFAULT,
    RESPONSE_MODALITIES,
    SESSION_MODALITIES,
    TARGET_LANGUAGE_DEFAULT,
    TRANSCRIPTION_MODEL_DEFAULT,
    VAD_PREFIX_PADDING_MS_DEFAULT,
    VAD_SILENCE_DURATION_MS_DEFAULT,
    VAD_THRESHOLD_DEFAULT,
    VAD_TYPE,
)
from orchestrator.events import (
    Event,
    EventType,
    RemoteAudioDelta,
    RemoteError,
    RemoteInputTranscription,
    RemoteResponseCreated,
    RemoteResponseDone,
    RemoteSessionCreated,
    RemoteSessionUpdated,
    RemoteSpeechStarted,
    RemoteSpeechStopped,
    RemoteTranscriptDelta,
)

if TYPE_CHECKING:
    from config import AppConfig


class RemoteProtocolError(Exception):
    """Inbound remote payload could not be decoded."""


# =============================================================================
# Session settings
# =============================================================================

_SESSION_INSTRUCTIONS = (
    "You are a real-time translator. When you receive English speech, "
    "translate it to {language} and speak it back immediately. "
    "Only respond with the {language} translation, no additional text "
    "or explanations. Keep responses short and natural."
)

_RESPONSE_INSTRUCTIONS = (
    "Translate the user audio into fluent {language} and speak it back, "
    "preserving meaning and tone. Do not include English."
)


@dataclass(frozen=True)
class RealtimeSessionSettings:
    """Everything needed to configure one remote translation session."""

    target_language: str = TARGET_LANGUAGE_DEFAULT
    voice: str = REALTIME_VOICE_DEFAULT
    transcription_model: str = TRANSCRIPTION_MODEL_DEFAULT
    vad_threshold: float = VAD_THRESHOLD_DEFAULT
    vad_prefix_padding_ms: int = VAD_PREFIX_PADDING_MS_DEFAULT
    vad_silence_duration_ms: int = VAD_SILENCE_DURATION_MS_DEFAULT

    @property
    def instructions(self) -> str:
        return _SESSION_INSTRUCTIONS.format(language=self.target_language)

    @property
    def response_instructions(self) -> str:
        return _RESPONSE_INSTRUCTIONS.format(language=self.target_language)

    @staticmethod
    def from_config(config: "AppConfig") -> RealtimeSessionSettings:
        return RealtimeSessionSettings(
            target_language=config.target_language,
            voice=config.realtime_voice,
            transcription_model=config.transcription_model,
            vad_threshold=config.vad_threshold,
            vad_prefix_padding_ms=config.vad_prefix_padding_ms,
            vad_silence_duration_ms=config.vad_silence_duration_ms,
        )


# =============================================================================
# Outbound builders
# =============================================================================

def build_session_update(settings: RealtimeSessionSettings) -> dict[str, Any]:
    """Configure modalities, voice, audio formats, transcription and server VAD."""
    return {
        "type": "session.update",
        "session": {
            "modalities": list(SESSION_MODALITIES),
            "instructions": settings.instructions,
            "voice": settings.voice,
            "input_audio_format": REALTIME_AUDIO_FORMAT,
            "output_audio_format": REALTIME_AUDIO_FORMAT,
            "input_audio_transcription": {
                "model": settings.transcription_model,
            },
            "turn_detection": {
                "type": VAD_TYPE,
                "threshold": settings.vad_threshold,
                "prefix_padding_ms": settings.vad_prefix_padding_ms,
                "silence_duration_ms": settings.vad_silence_duration_ms,
            },
        },
    }


def build_append(pcm_bytes: bytes) -> dict[str, Any]:
    return {
        "type": "input_audio_buffer.append",
        "audio": base64.b64encode(pcm_bytes).decode("ascii"),
    }


def build_commit() -> dict[str, Any]:
    return {"type": "input_audio_buffer.commit"}


def build_response_create(settings: RealtimeSessionSettings) -> dict[str, Any]:
    return {
        "type": "response.create",
        "response": {
            "modalities": list(RESPONSE_MODALITIES),
            "instructions": settings.response_instructions,
        },
    }


# =============================================================================
# Error classification
# =============================================================================

def is_fatal_error(error_type: str | None, code: str | None) -> bool:
    """
    Fatal errors end the session (bad credentials, expired session,
    server failure). Everything else is relayed and survived.
    """
    return (
        (error_type is not None and error_type in FATAL_REMOTE_ERROR_TYPES)
        or (code is not None and code in FATAL_REMOTE_ERROR_CODES)
    )


# =============================================================================
# Inbound parsing
# =============================================================================

def _require_str(data: Mapping[str, Any], key: str, wire_type: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise RemoteProtocolError(f"{wire_type}: missing or non-string '{key}'")
    return value


def _response_id(data: Mapping[str, Any], wire_type: str) -> str:
    response = data.get("response")
    if not isinstance(response, Mapping):
        raise RemoteProtocolError(f"{wire_type}: missing 'response' object")
    return _require_str(response, "id", wire_type)


def _session_created(data: Mapping[str, Any], ts_ms: int) -> Event:
    session = data.get("session")
    remote_id = session.get("id") if isinstance(session, Mapping) else None
    return RemoteSessionCreated(
        event_type=EventType.REMOTE_SESSION_CREATED,
        ts_ms=ts_ms,
        remote_session_id=remote_id if isinstance(remote_id, str) else None,
    )


def _session_updated(data: Mapping[str, Any], ts_ms: int) -> Event:
    return RemoteSessionUpdated(
        event_type=EventType.REMOTE_SESSION_UPDATED, ts_ms=ts_ms
    )


def _response_created(data: Mapping[str, Any], ts_ms: int) -> Event:
    return RemoteResponseCreated(
        event_type=EventType.REMOTE_RESPONSE_CREATED,
        ts_ms=ts_ms,
        response_id=_response_id(data, "response.created"),
    )


def _audio_delta(data: Mapping[str, Any], ts_ms: int) -> Event:
    encoded = _require_str(data, "delta", "response.audio.delta")
    try:
        pcm = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise RemoteProtocolError(f"response.audio.delta: bad base64: {e}") from e
    return RemoteAudioDelta(
        event_type=EventType.REMOTE_AUDIO_DELTA,
        ts_ms=ts_ms,
        response_id=_require_str(data, "response_id", "response.audio.delta"),
        pcm_bytes=pcm,
    )


def _transcript_delta(data: Mapping[str, Any], ts_ms: int) -> Event:
    wire_type = str(data.get("type"))
    return RemoteTranscriptDelta(
        event_type=EventType.REMOTE_TRANSCRIPT_DELTA,
        ts_ms=ts_ms,
        response_id=_require_str(data, "response_id", wire_type),
        text=_require_str(data, "delta", wire_type),
    )


def _input_transcription(data: Mapping[str, Any], ts_ms: int) -> Event:
    wire_type = "conversation.item.input_audio_transcription.completed"
    item_id = data.get("item_id")
    return RemoteInputTranscription(
        event_type=EventType.REMOTE_INPUT_TRANSCRIPTION,
        ts_ms=ts_ms,
        text=_require_str(data, "transcript", wire_type),
        item_id=item_id if isinstance(item_id, str) else None,
    )


def _speech_started(data: Mapping[str, Any], ts_ms: int) -> Event:
    return RemoteSpeechStarted(event_type=EventType.REMOTE_SPEECH_STARTED, ts_ms=ts_ms)


def _speech_stopped(data: Mapping[str, Any], ts_ms: int) -> Event:
    return RemoteSpeechStopped(event_type=EventType.REMOTE_SPEECH_STOPPED, ts_ms=ts_ms)


def _response_done(data: Mapping[str, Any], ts_ms: int) -> Event:
    response = data.get("response")
    status = response.get("status") if isinstance(response, Mapping) else None
    return RemoteResponseDone(
        event_type=EventType.REMOTE_RESPONSE_DONE,
        ts_ms=ts_ms,
        response_id=_response_id(data, "response.done"),
        status=status if isinstance(status, str) else None,
    )


def _error(data: Mapping[str, Any], ts_ms: int) -> Event:
    error = data.get("error")
    if not isinstance(error, Mapping):
        raise RemoteProtocolError("error: missing 'error' object")

    message = error.get("message")
    code = error.get("code")
    error_type = error.get("type")

    code = code if isinstance(code, str) else None
    error_type = error_type if isinstance(error_type, str) else None

    return RemoteError(
        event_type=EventType.REMOTE_ERROR,
        ts_ms=ts_ms,
        message=message if isinstance(message, str) and message else "unknown error",
        code=code,
        error_type=error_type,
        fatal=is_fatal_error(error_type, code),
    )


_PARSERS: dict[str, Callable[[Mapping[str, Any], int], Event]] = {
    "session.created": _session_created,
    "session.updated": _session_updated,
    "response.created": _response_created,
    "response.audio.delta": _audio_delta,
    "response.audio_transcript.delta": _transcript_delta,
    "response.text.delta": _transcript_delta,
    "conversation.item.input_audio_transcription.completed": _input_transcription,
    "input_audio_buffer.speech_started": _speech_started,
    "input_audio_buffer.speech_stopped": _speech_stopped,
    "response.done": _response_done,
    "error": _error,
}


def parse_remote_event(raw: str | bytes | Mapping[str, Any], *, ts_ms: int) -> Event | None:
    """
    Decode one inbound remote message.

    Returns:
        A typed event, or None for wire types the relay does not consume.

    Raises:
        RemoteProtocolError if the payload is not a JSON object or a
        consumed type is missing required fields.
    """
    if isinstance(raw, Mapping):
        data: Any = raw
    else:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise RemoteProtocolError(f"invalid JSON: {e}") from e

    if not isinstance(data, Mapping):
        raise RemoteProtocolError("remote message is not a JSON object")

    wire_type = data.get("type")
    if not isinstance(wire_type, str):
        raise RemoteProtocolError("remote message has no 'type'")

    parser = _PARSERS.get(wire_type)
    if parser is None:
        return None
    return parser(data, ts_ms)
