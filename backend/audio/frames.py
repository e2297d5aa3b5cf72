"""
Audio frame primitives.

Pure data containers only.
No behavior, no buffering, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioFrame:
    """
    One fixed-size slice of client audio ready for the remote peer.

    sequence_num:
        Monotonic per-session index of frames sent upstream.
        Used for debugging and logs only.

    pcm_bytes:
        Raw PCM16 audio bytes. Length equals the configured frame size,
        except for the single partial frame produced by a flush.

    partial:
        True when the frame is a flushed remainder shorter than a frame.
    """
    sequence_num: int
    pcm_bytes: bytes
    partial: bool = False

    def __len__(self) -> int:
        return len(self.pcm_bytes)
