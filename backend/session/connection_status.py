"""
Client connection status for translation sessions.

The client WebSocket leg is tracked separately from the session phase:
a session can be STOPPING with the client already gone, or CLOSED while
the client stays connected and may send a fresh init.

Owned and mutated by SessionGateway only.
"""
from enum import Enum


class ConnectionStatus(Enum):
    """Client WebSocket leg status, independent of Phase."""
    DOWN = "DOWN"      # Client disconnected (or not yet accepted)
    UP = "UP"          # Client WebSocket open; outbound messages are delivered
