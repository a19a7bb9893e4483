"""Real-time catalog rooms over WebSocket."""

from .hub import BroadcastHub, Broadcaster, Connection
from .protocol import (
    DELETED,
    ENTRIES_UPDATED,
    JOIN,
    LEAVE,
    METADATA_UPDATED,
    room_name,
)

__all__ = [
    "BroadcastHub",
    "Broadcaster",
    "Connection",
    "DELETED",
    "ENTRIES_UPDATED",
    "JOIN",
    "LEAVE",
    "METADATA_UPDATED",
    "room_name",
]
