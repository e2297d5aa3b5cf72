"""
Client WebSocket envelope codec.

Client -> server (JSON text frames):
    {"type": "init", "sessionId": "..."}      sessionId optional
    {"type": "audio", "audio": [0..255, ...]}  or a base64 string
    {"type": "stop"}

Binary frames carry raw PCM16LE audio and are equivalent to "audio".

Server -> client:
    {"type": <message_type>, **data}; bytes values are sent as arrays of
    byte values, the same representation the client uses for mic audio.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Mapping

from orchestrator.events import (
    ClientAudio,
    ClientInit,
    ClientStop,
    Event,
    EventType,
)


class ClientProtocolError(Exception):
    """Malformed or unknown client message."""


def _decode_audio(audio: Any) -> bytes:
    if isinstance(audio, str):
        try:
            return base64.b64decode(audio, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ClientProtocolError(f"audio: invalid base64 ({e})") from e

    if isinstance(audio, list):
        # bool is an int subclass; reject it explicitly
        if not all(
            isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255
            for b in audio
        ):
            raise ClientProtocolError("audio: array values must be integers 0-255")
        return bytes(audio)

    raise ClientProtocolError("audio: expected an array of byte values or base64 string")


def parse_client_message(payload: str, *, ts_ms: int) -> Event:
    """
    Decode one client text frame into an orchestrator event.

    ClientInit.session_id is "" when the client did not supply one;
    the gateway assigns an id in that case.

    Raises:
        ClientProtocolError for invalid JSON, a missing/unknown type,
        or a malformed audio payload.
    """
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise ClientProtocolError(f"invalid JSON: {e}") from e

    if not isinstance(data, Mapping):
        raise ClientProtocolError("message must be a JSON object")

    msg_type = data.get("type")

    if msg_type == "init":
        session_id = data.get("sessionId")
        if session_id is not None and not isinstance(session_id, str):
            raise ClientProtocolError("init: sessionId must be a string")
        return ClientInit(
            event_type=EventType.CLIENT_INIT,
            ts_ms=ts_ms,
            session_id=session_id or "",
        )

    if msg_type == "audio":
        if "audio" not in data:
            raise ClientProtocolError("audio: missing 'audio' field")
        return ClientAudio(
            event_type=EventType.CLIENT_AUDIO,
            ts_ms=ts_ms,
            pcm_bytes=_decode_audio(data["audio"]),
        )

    if msg_type == "stop":
        return ClientStop(event_type=EventType.CLIENT_STOP, ts_ms=ts_ms)

    raise ClientProtocolError(f"unknown message type: {msg_type!r}")


def encode_server_message(message_type: str, data: Mapping[str, Any]) -> dict[str, Any]:
    """Build a JSON-serializable server -> client message."""
    out: dict[str, Any] = {"type": message_type}
    for key, value in data.items():
        if isinstance(value, (bytes, bytearray)):
            out[key] = list(value)
        else:
            out[key] = value
    return out


def error_message(message: str) -> dict[str, Any]:
    return encode_server_message("error", {"message": message})
