"""
Authoritative session phase enumeration.

Rules:
- This enum defines ONLY the lifecycle phases of one translation session.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class Phase(str, Enum):
    """
    Lifecycle phase of a single client translation session.

    IDLE -> CONNECTING -> ACTIVE -> STOPPING -> CLOSED
    Any phase may jump to CLOSED on an unrecoverable remote failure.
    """

    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    STOPPING = "STOPPING"
    CLOSED = "CLOSED"
