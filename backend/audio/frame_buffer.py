"""
Frame buffer for client audio (pure, synchronous).

Purpose:
- Accumulate arbitrarily sized client PCM chunks
- Slice off fixed-size frames in arrival order
- Retain the remainder (always shorter than one frame) for the next call

Invariants:
- Emitted frames are exactly bytes_per_frame long
- emitted frames + remainder == all appended bytes, in order
- No padding, no dropping
"""

from __future__ import annotations


class FrameBuffer:
    """
    Re-chunks a PCM byte stream into fixed-size frames without loss.

    The buffer may be seeded with a previously retained remainder so that
    callers holding the remainder in immutable state can rebuild it per call.
    """

    def __init__(self, bytes_per_frame: int, retained: bytes = b"") -> None:
        if bytes_per_frame <= 0:
            raise ValueError("bytes_per_frame must be > 0")
        if len(retained) >= bytes_per_frame:
            raise ValueError(
                "retained remainder must be shorter than one frame "
                f"(retained={len(retained)}, frame={bytes_per_frame})"
            )

        self._bytes_per_frame = bytes_per_frame
        self._buffer = bytes(retained)

    @property
    def bytes_per_frame(self) -> int:
        """Configured frame size in bytes."""
        return self._bytes_per_frame

    @property
    def remainder(self) -> bytes:
        """Bytes retained for the next append (shorter than one frame)."""
        return self._buffer

    def append(self, data: bytes) -> list[bytes]:
        """
        Add audio and return every complete frame now available.

        Empty input yields an empty list and leaves the remainder untouched.
        """
        if not data:
            return []

        self._buffer += data
        frames: list[bytes] = []

        whole = len(self._buffer) // self._bytes_per_frame
        end = whole * self._bytes_per_frame
        for offset in range(0, end, self._bytes_per_frame):
            frames.append(self._buffer[offset : offset + self._bytes_per_frame])

        self._buffer = self._buffer[end:]
        return frames

    def take_remainder(self) -> bytes:
        """Return the retained bytes and clear the buffer."""
        out = self._buffer
        self._buffer = b""
        return out

    def __len__(self) -> int:
        return len(self._buffer)
