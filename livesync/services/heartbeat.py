"""Process-scoped heartbeat counter exposed by the heartbeat endpoint."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models import isoformat, utcnow


@dataclass(frozen=True, slots=True)
class HeartbeatSnapshot:
    count: int
    last_heartbeat: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "status": "ok",
            "last_heartbeat": isoformat(self.last_heartbeat) if self.last_heartbeat else None,
            "heartbeat_count": self.count,
        }


class Heartbeat:
    """Counts beats since process start; starts at zero."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0
        self._last: Optional[datetime] = None

    def beat(self) -> HeartbeatSnapshot:
        with self._lock:
            self._count += 1
            self._last = utcnow()
            return HeartbeatSnapshot(self._count, self._last)


__all__ = ["Heartbeat", "HeartbeatSnapshot"]
