"""
Commit scheduling policy (pure).

Decides, on every client audio chunk, whether the retained remainder should
be flushed upstream, whether the remote input buffer should be committed,
and whether a translation response should be requested.

Policy:
- A timed flush happens only after commit_interval_ms has elapsed since the
  last commit or flush AND the remainder holds at least flush_floor_bytes. This keeps
  near-silent slivers from being committed.
- A commit is issued only if the bytes sent since the last commit (including
  the flush) reach commit_floor_bytes. The remote service enforces its own
  minimum input duration, independent of the local frame size.
- A flush restarts the interval even without a commit, so a remainder that
  stays below the commit floor is sent at most once per interval.
- A response is requested only together with a commit, and only when no
  response is in progress or awaiting creation.
- On stop the same thresholds run once: flush whatever is retained, commit
  if the floor is met, never request a response.

The timer is polled from event timestamps on every audio chunk. There is
no timer task; a second writer would race the audio path.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from constants import (
    COMMIT_FLOOR_MS,
    COMMIT_INTERVAL_MS,
    FLUSH_FLOOR_MS,
    AudioFormat,
    ms_to_bytes,
)


class CommitAction(str, Enum):
    """Outcome of a scheduling decision."""

    NONE = "none"
    FLUSH = "flush"
    COMMIT = "commit"
    COMMIT_AND_RESPOND = "commit_and_respond"


@dataclass(frozen=True)
class CommitPolicy:
    """Thresholds in force for one session."""

    commit_interval_ms: int = COMMIT_INTERVAL_MS
    flush_floor_bytes: int = ms_to_bytes(FLUSH_FLOOR_MS)
    commit_floor_bytes: int = ms_to_bytes(COMMIT_FLOOR_MS)

    @staticmethod
    def from_ms(
        audio_format: AudioFormat,
        *,
        commit_interval_ms: int = COMMIT_INTERVAL_MS,
        flush_floor_ms: int = FLUSH_FLOOR_MS,
        commit_floor_ms: int = COMMIT_FLOOR_MS,
    ) -> CommitPolicy:
        """Build a policy from durations in the given audio format."""
        return CommitPolicy(
            commit_interval_ms=commit_interval_ms,
            flush_floor_bytes=audio_format.bytes_for_ms(flush_floor_ms),
            commit_floor_bytes=audio_format.bytes_for_ms(commit_floor_ms),
        )


@dataclass(frozen=True)
class CommitDecision:
    """
    Scheduling decision plus the reason, for logs.

    flush means "send the retained remainder now", whatever its size.
    """

    action: CommitAction
    reason: str

    @property
    def flush(self) -> bool:
        return self.action is not CommitAction.NONE

    @property
    def commit(self) -> bool:
        return self.action in (CommitAction.COMMIT, CommitAction.COMMIT_AND_RESPOND)

    @property
    def respond(self) -> bool:
        return self.action is CommitAction.COMMIT_AND_RESPOND


def decide(
    policy: CommitPolicy,
    *,
    remainder_bytes: int,
    bytes_since_commit: int,
    elapsed_ms: int,
    response_busy: bool,
) -> CommitDecision:
    """
    Periodic decision, evaluated after whole frames have been sent.

    Args:
        remainder_bytes: bytes retained by the frame buffer (< one frame)
        bytes_since_commit: bytes already sent since the last commit
        elapsed_ms: time since the last commit
        response_busy: a response is in progress or requested but not created
    """
    if elapsed_ms <= policy.commit_interval_ms:
        return CommitDecision(CommitAction.NONE, "interval_not_elapsed")

    if remainder_bytes < policy.flush_floor_bytes:
        return CommitDecision(CommitAction.NONE, "remainder_below_flush_floor")

    projected = bytes_since_commit + remainder_bytes
    if projected < policy.commit_floor_bytes:
        return CommitDecision(CommitAction.FLUSH, "sent_below_commit_floor")

    if response_busy:
        return CommitDecision(CommitAction.COMMIT, "response_busy")

    return CommitDecision(CommitAction.COMMIT_AND_RESPOND, "interval_elapsed")


def decide_on_stop(
    policy: CommitPolicy,
    *,
    remainder_bytes: int,
    bytes_since_commit: int,
) -> CommitDecision:
    """Final decision on stop: flush everything, commit if the floor is met."""
    projected = bytes_since_commit + remainder_bytes

    if projected >= policy.commit_floor_bytes:
        return CommitDecision(CommitAction.COMMIT, "final_commit")

    if remainder_bytes > 0:
        return CommitDecision(CommitAction.FLUSH, "final_below_commit_floor")

    return CommitDecision(CommitAction.NONE, "nothing_to_commit")
