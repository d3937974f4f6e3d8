"""Statistics for the MQTT connection manager."""

from __future__ import annotations


class ReceiverStats:
    """Estadísticas del receptor MQTT."""

    def __init__(self):
        self.received = 0
        self.processed = 0
        self.failed = 0
        self.non_json = 0
        self.self_tests = 0
        self.publish_rejected = 0
        self.reconnects = 0
        self.last_message_at: float = 0

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} processed={self.processed} "
            f"failed={self.failed} non_json={self.non_json} "
            f"self_tests={self.self_tests} reconnects={self.reconnects}"
        )

    def to_dict(self) -> dict:
        """Convert stats to dictionary."""
        return {
            "received": self.received,
            "processed": self.processed,
            "failed": self.failed,
            "non_json": self.non_json,
            "self_tests": self.self_tests,
            "publish_rejected": self.publish_rejected,
            "reconnects": self.reconnects,
            "last_message_at": self.last_message_at,
        }
