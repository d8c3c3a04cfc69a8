"""
Domain records for samples, alert rules, alerts, users and devices.

Records are plain dataclasses. Each one knows how to turn itself into the
JSON-compatible dict kept in the key-value store and how to rebuild itself
from that dict.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Union


# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

class SensorState(str, Enum):
    """State reported by a sensing device."""

    MOVE = "move"
    STATIC = "static"
    SOMEONE = "someone"

    @property
    def implies_presence(self) -> bool:
        return self is not SensorState.STATIC


class Severity(str, Enum):
    """Alert severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertType(str, Enum):
    """System-defined trigger conditions."""

    PRESENCE_DETECTED = "presence_detected"
    SIGNAL_LOSS = "signal_loss"
    UNAUTHORIZED_PRESENCE = "unauthorized_presence"
    INACTIVITY = "inactivity"


TRIGGER_CONDITIONS: Dict[AlertType, str] = {
    AlertType.PRESENCE_DETECTED: "Confidence level above threshold",
    AlertType.SIGNAL_LOSS: "RSSI below -90 dBm",
    AlertType.UNAUTHORIZED_PRESENCE: "Presence detected between 2-5 AM",
    AlertType.INACTIVITY: "No movement detected for extended period",
}


class AnalyticsPeriod(str, Enum):
    """Look-back windows accepted by the analytics aggregator."""

    ONE_HOUR = "1h"
    ONE_DAY = "24h"
    ONE_WEEK = "7d"
    ONE_MONTH = "30d"

    @property
    def delta(self) -> timedelta:
        return _PERIOD_DELTAS[self]

    @classmethod
    def parse(cls, value: Union[str, "AnalyticsPeriod", None]) -> "AnalyticsPeriod":
        """Parse a period string; anything unknown falls back to 24h."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.ONE_DAY


_PERIOD_DELTAS = {
    AnalyticsPeriod.ONE_HOUR: timedelta(hours=1),
    AnalyticsPeriod.ONE_DAY: timedelta(hours=24),
    AnalyticsPeriod.ONE_WEEK: timedelta(days=7),
    AnalyticsPeriod.ONE_MONTH: timedelta(days=30),
}


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 timestamp into a naive local datetime.

    Timezone-aware inputs are converted to local wall-clock time so that
    hour-of-day bucketing and rule windows all use the same clock.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MetricSample:
    """One captured telemetry sample; immutable once written."""

    id: str
    device_id: str
    timestamp: datetime
    rssi: float
    signal_strength: float
    presence_detected: bool
    confidence_level: float
    room_location: str
    raw_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "timestamp": format_timestamp(self.timestamp),
            "rssi": self.rssi,
            "signal_strength": self.signal_strength,
            "presence_detected": self.presence_detected,
            "confidence_level": self.confidence_level,
            "room_location": self.room_location,
            "raw_data": self.raw_data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricSample":
        return cls(
            id=data["id"],
            device_id=data["device_id"],
            timestamp=parse_timestamp(data["timestamp"]),
            rssi=data["rssi"],
            signal_strength=data["signal_strength"],
            presence_detected=bool(data["presence_detected"]),
            confidence_level=data["confidence_level"],
            room_location=data["room_location"],
            raw_data=data.get("raw_data") or {},
        )


@dataclass
class AlertRule:
    """User-authored notification rule evaluated on every state message."""

    id: str
    name: str
    mac: str
    state: SensorState
    start_time: str
    end_time: str
    enabled: bool = True

    @property
    def is_wildcard(self) -> bool:
        return not self.mac or not self.mac.strip()

    def to_dict(self) -> Dict[str, Any]:
        # camelCase keys match the persisted rule file format
        return {
            "id": self.id,
            "name": self.name,
            "mac": self.mac,
            "state": self.state.value,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertRule":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            mac=data.get("mac") or "",
            state=SensorState(data["state"]),
            start_time=data.get("startTime", data.get("start_time", "00:00")),
            end_time=data.get("endTime", data.get("end_time", "23:59")),
            enabled=bool(data.get("enabled", True)),
        )


@dataclass
class Alert:
    """System-generated alert; only ``read``/``acknowledged`` ever change."""

    id: str
    user_id: str
    device_id: str
    type: AlertType
    message: str
    severity: Severity
    timestamp: datetime
    read: bool = False
    acknowledged: bool = False
    trigger_conditions: str = ""
    read_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "device_id": self.device_id,
            "type": self.type.value,
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": format_timestamp(self.timestamp),
            "read": self.read,
            "acknowledged": self.acknowledged,
            "trigger_conditions": self.trigger_conditions,
            "read_at": format_timestamp(self.read_at),
            "acknowledged_at": format_timestamp(self.acknowledged_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alert":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            device_id=data["device_id"],
            type=AlertType(data["type"]),
            message=data["message"],
            severity=Severity(data["severity"]),
            timestamp=parse_timestamp(data["timestamp"]),
            read=bool(data.get("read", False)),
            acknowledged=bool(data.get("acknowledged", False)),
            trigger_conditions=data.get("trigger_conditions", ""),
            read_at=parse_timestamp(data["read_at"]) if data.get("read_at") else None,
            acknowledged_at=parse_timestamp(data["acknowledged_at"]) if data.get("acknowledged_at") else None,
        )


DEFAULT_ALERT_THRESHOLD = 50


@dataclass
class UserSettings:
    """Per-user notification preferences consumed by the trigger engine."""

    notifications_enabled: bool = True
    alert_threshold: float = DEFAULT_ALERT_THRESHOLD
    extra: Dict[str, Any] = field(default_factory=dict)

    def merged(self, patch: Dict[str, Any]) -> "UserSettings":
        """Return a copy with ``patch`` merged over the current values."""
        data = self.to_dict()
        data.update(patch)
        return UserSettings.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data["notifications_enabled"] = self.notifications_enabled
        data["alert_threshold"] = self.alert_threshold
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "UserSettings":
        data = dict(data or {})
        notifications = data.pop("notifications_enabled", True)
        threshold = data.pop("alert_threshold", DEFAULT_ALERT_THRESHOLD)
        return cls(
            notifications_enabled=bool(notifications),
            alert_threshold=DEFAULT_ALERT_THRESHOLD if threshold is None else threshold,
            extra=data,
        )


@dataclass
class UserRecord:
    """Registered user with attached settings."""

    id: str
    email: str
    name: str
    created_at: datetime
    settings: UserSettings = field(default_factory=UserSettings)
    updated_at: Optional[datetime] = None
    password_hash: Optional[str] = None

    def to_dict(self, include_secret: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "settings": self.settings.to_dict(),
        }
        if include_secret:
            data["password_hash"] = self.password_hash
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserRecord":
        return cls(
            id=data["id"],
            email=data["email"],
            name=data.get("name", ""),
            created_at=parse_timestamp(data["created_at"]),
            settings=UserSettings.from_dict(data.get("settings")),
            updated_at=parse_timestamp(data["updated_at"]) if data.get("updated_at") else None,
            password_hash=data.get("password_hash"),
        )


@dataclass
class DeviceRecord:
    """Registered sensing device."""

    id: str
    name: str
    location: str
    owner_id: str
    created_at: datetime
    status: str = "active"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "owner_id": self.owner_id,
            "created_at": format_timestamp(self.created_at),
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceRecord":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            location=data.get("location", ""),
            owner_id=data["owner_id"],
            created_at=parse_timestamp(data["created_at"]),
            status=data.get("status", "active"),
        )
