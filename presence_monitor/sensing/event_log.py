"""
In-memory log of received device state messages.
"""

from __future__ import annotations

import csv
import io
import json
import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from presence_monitor.core.models import SensorState, format_timestamp

CSV_HEADERS = ["Timestamp", "MAC", "State", "Message"]


@dataclass(frozen=True)
class StateEvent:
    """One received state message and the rules it matched."""

    timestamp: datetime
    mac: str
    state: SensorState
    message: str
    matched_rules: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "mac": self.mac,
            "state": self.state.value,
            "message": self.message,
            "matched_rules": list(self.matched_rules),
        }


class EventLog:
    """Bounded ring of the most recent state events."""

    def __init__(self, max_events: int = 500):
        self._events: Deque[StateEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def record(self, event: StateEvent) -> None:
        with self._lock:
            self._events.append(event)

    def events(self, limit: Optional[int] = None) -> List[StateEvent]:
        """Events newest first."""
        with self._lock:
            ordered = list(reversed(self._events))
        return ordered[:limit] if limit is not None else ordered

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def summary(self) -> Dict[str, Any]:
        events = self.events()
        by_state = Counter(event.state.value for event in events)
        return {
            "total_events": len(events),
            "unique_devices": len({event.mac for event in events}),
            "by_state": {state.value: by_state.get(state.value, 0) for state in SensorState},
            "last_event": events[0].to_dict() if events else None,
        }

    def to_json(self) -> str:
        return json.dumps([event.to_dict() for event in self.events()], indent=2)

    def to_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_HEADERS)
        for event in self.events():
            writer.writerow([format_timestamp(event.timestamp), event.mac, event.state.value, event.message])
        return buffer.getvalue()

    def __len__(self) -> int:
        return len(self._events)
