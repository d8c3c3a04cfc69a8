"""
Core presence monitoring logic: records, derived signals, rule and trigger
evaluation, and analytics.
"""

from .models import (
    Alert,
    AlertRule,
    AlertType,
    AnalyticsPeriod,
    DeviceRecord,
    MetricSample,
    SensorState,
    Severity,
    UserRecord,
    UserSettings,
)
from .exceptions import (
    CaptureError,
    ConflictError,
    MalformedInputError,
    NotFoundError,
    NotFoundOrUnauthorizedError,
    PresenceMonitorError,
    StoreError,
    UnauthorizedError,
)

__all__ = [
    "Alert",
    "AlertRule",
    "AlertType",
    "AnalyticsPeriod",
    "DeviceRecord",
    "MetricSample",
    "SensorState",
    "Severity",
    "UserRecord",
    "UserSettings",
    "CaptureError",
    "ConflictError",
    "MalformedInputError",
    "NotFoundError",
    "NotFoundOrUnauthorizedError",
    "PresenceMonitorError",
    "StoreError",
    "UnauthorizedError",
]
