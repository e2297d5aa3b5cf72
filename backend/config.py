"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No protocol constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    AUDIO_FRAME_MS,
    COMMIT_FLOOR_MS,
    COMMIT_INTERVAL_MS,
    FLUSH_FLOOR_MS,
    REALTIME_MODEL_DEFAULT,
    REALTIME_URL_DEFAULT,
    REALTIME_VOICE_DEFAULT,
    REMOTE_CLOSE_GRACE_MS,
    TARGET_LANGUAGE_DEFAULT,
    TRANSCRIPTION_MODEL_DEFAULT,
    VAD_PREFIX_PADDING_MS_DEFAULT,
    VAD_SILENCE_DURATION_MS_DEFAULT,
    VAD_THRESHOLD_DEFAULT,
    AudioFormat,
)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the app factory, gateways and sessions.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    # ------------------------------------------------------------------
    # Remote translation service
    # ------------------------------------------------------------------

    openai_api_key: str | None = None
    realtime_url: str = REALTIME_URL_DEFAULT
    realtime_model: str = REALTIME_MODEL_DEFAULT
    realtime_voice: str = REALTIME_VOICE_DEFAULT
    transcription_model: str = TRANSCRIPTION_MODEL_DEFAULT
    target_language: str = TARGET_LANGUAGE_DEFAULT

    # ------------------------------------------------------------------
    # Voice activity detection (remote side)
    # ------------------------------------------------------------------

    vad_threshold: float = VAD_THRESHOLD_DEFAULT
    vad_prefix_padding_ms: int = VAD_PREFIX_PADDING_MS_DEFAULT
    vad_silence_duration_ms: int = VAD_SILENCE_DURATION_MS_DEFAULT

    # ------------------------------------------------------------------
    # Audio framing / commit policy
    # ------------------------------------------------------------------

    audio_frame_ms: int = AUDIO_FRAME_MS
    commit_interval_ms: int = COMMIT_INTERVAL_MS
    flush_floor_ms: int = FLUSH_FLOOR_MS
    commit_floor_ms: int = COMMIT_FLOOR_MS
    remote_close_grace_ms: int = REMOTE_CLOSE_GRACE_MS

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def audio_format(self) -> AudioFormat:
        """Audio format with the configured frame duration."""
        return AudioFormat(frame_ms=self.audio_frame_ms)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        frame_ms = _env_int("AUDIO_FRAME_MS", AUDIO_FRAME_MS)
        if frame_ms == 0:
            raise ValueError("AUDIO_FRAME_MS must be > 0")

        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),

            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            realtime_url=os.environ.get("REALTIME_URL", REALTIME_URL_DEFAULT),
            realtime_model=os.environ.get("REALTIME_MODEL", REALTIME_MODEL_DEFAULT),
            realtime_voice=os.environ.get("REALTIME_VOICE", REALTIME_VOICE_DEFAULT),
            transcription_model=os.environ.get(
                "TRANSCRIPTION_MODEL", TRANSCRIPTION_MODEL_DEFAULT
            ),
            target_language=os.environ.get("TARGET_LANGUAGE", TARGET_LANGUAGE_DEFAULT),

            vad_threshold=_env_float("VAD_THRESHOLD", VAD_THRESHOLD_DEFAULT),
            vad_prefix_padding_ms=_env_int(
                "VAD_PREFIX_PADDING_MS", VAD_PREFIX_PADDING_MS_DEFAULT
            ),
            vad_silence_duration_ms=_env_int(
                "VAD_SILENCE_DURATION_MS", VAD_SILENCE_DURATION_MS_DEFAULT
            ),

            audio_frame_ms=frame_ms,
            commit_interval_ms=_env_int("COMMIT_INTERVAL_MS", COMMIT_INTERVAL_MS),
            flush_floor_ms=_env_int("FLUSH_FLOOR_MS", FLUSH_FLOOR_MS),
            commit_floor_ms=_env_int("COMMIT_FLOOR_MS", COMMIT_FLOOR_MS),
            remote_close_grace_ms=_env_int(
                "REMOTE_CLOSE_GRACE_MS", REMOTE_CLOSE_GRACE_MS
            ),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
