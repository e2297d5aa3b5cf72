"""
Authoritative session state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
- One tagged phase value replaces scattered activity flags.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from constants import REMOTE_CLOSE_GRACE_MS, AudioFormat
from orchestrator.commit_scheduler import CommitPolicy
from orchestrator.enums.phase import Phase


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot of all reducer-owned session state."""

    session_id: str = ""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    phase: Phase = Phase.IDLE

    # False once the client leg is gone; client notifications are skipped.
    client_connected: bool = True

    # ------------------------------------------------------------------
    # Framing / commit policy (fixed for the session)
    # ------------------------------------------------------------------
    audio_format: AudioFormat = field(default_factory=AudioFormat)
    commit_policy: CommitPolicy = field(default_factory=CommitPolicy)
    close_grace_ms: int = REMOTE_CLOSE_GRACE_MS

    # ------------------------------------------------------------------
    # Outbound audio bookkeeping
    # ------------------------------------------------------------------

    # Frame buffer remainder, always shorter than one frame.
    pending_audio: bytes = b""

    # Bytes appended upstream since the last commit. Reset only by a commit.
    bytes_since_commit: int = 0

    # Start of the current commit interval: the last commit or timed flush.
    last_commit_ts_ms: int = 0
    frames_sent: int = 0
    commits_issued: int = 0

    # ------------------------------------------------------------------
    # Response tracking
    # ------------------------------------------------------------------

    # response.create sent, response.created not yet seen.
    response_requested: bool = False

    # Between response.created and the matching response.done.
    response_in_progress: bool = False
    active_response_id: str | None = None

    # Overlapping responses refused while another was in progress. Their
    # events are dropped; an id is forgotten once its response.done arrives.
    rejected_response_ids: frozenset[str] = frozenset()

    # Per-response accumulators, cleared on response.created / response.done.
    response_audio: tuple[bytes, ...] = ()
    response_text: str = ""

    responses_completed: int = 0

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: str | None = None
