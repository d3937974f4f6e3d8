"""Domain layer - Modelos y contratos."""

from .channel import Channel, NO_DATA
from .connection_state import ConnectionState
from .reading import Reading, ReadingSet
from .message import Message
from .snapshot import StatsSnapshot, DashboardSnapshot

__all__ = [
    "Channel",
    "NO_DATA",
    "ConnectionState",
    "Reading",
    "ReadingSet",
    "Message",
    "StatsSnapshot",
    "DashboardSnapshot",
]
