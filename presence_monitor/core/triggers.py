"""
System-defined alert triggers.

Each check is a pure function of the captured sample, the subscriber's
settings and the current time. A check returns a :class:`TriggerResult`;
``NO_ALERT`` means the condition did not fire.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from presence_monitor.core.models import (
    DEFAULT_ALERT_THRESHOLD,
    TRIGGER_CONDITIONS,
    AlertType,
    MetricSample,
    Severity,
    UserSettings,
)

SIGNAL_LOSS_RSSI = -90
UNAUTHORIZED_HOURS = range(2, 6)  # 02:00 through 05:59


@dataclass(frozen=True)
class TriggerResult:
    should_alert: bool
    type: Optional[AlertType] = None
    message: str = ""
    severity: Optional[Severity] = None

    @property
    def trigger_conditions(self) -> str:
        return TRIGGER_CONDITIONS.get(self.type, "") if self.type else ""


NO_ALERT = TriggerResult(should_alert=False)


def check_presence(sample: MetricSample, settings: UserSettings) -> TriggerResult:
    threshold = settings.alert_threshold
    if threshold is None:
        threshold = DEFAULT_ALERT_THRESHOLD
    if sample.presence_detected and sample.confidence_level > threshold:
        return TriggerResult(
            should_alert=True,
            type=AlertType.PRESENCE_DETECTED,
            message=f"Presence detected in {sample.room_location} with {sample.confidence_level}% confidence",
            severity=Severity.MEDIUM,
        )
    return NO_ALERT


def check_signal_loss(sample: MetricSample) -> TriggerResult:
    if sample.rssi < SIGNAL_LOSS_RSSI:
        return TriggerResult(
            should_alert=True,
            type=AlertType.SIGNAL_LOSS,
            message=f"Weak signal detected on device {sample.device_id} ({sample.rssi} dBm)",
            severity=Severity.HIGH,
        )
    return NO_ALERT


def check_unauthorized_presence(sample: MetricSample, now: datetime) -> TriggerResult:
    if sample.presence_detected and now.hour in UNAUTHORIZED_HOURS:
        return TriggerResult(
            should_alert=True,
            type=AlertType.UNAUTHORIZED_PRESENCE,
            message=f"Unauthorized presence detected in {sample.room_location} at {now.strftime('%H:%M')}",
            severity=Severity.HIGH,
        )
    return NO_ALERT


def check_inactivity(sample: MetricSample) -> TriggerResult:
    # Extension point: no historical gap detection exists yet.
    return NO_ALERT


def run_checks(sample: MetricSample, settings: UserSettings, now: datetime) -> List[TriggerResult]:
    """Run all four checks and return the ones that fired."""
    results = [
        check_presence(sample, settings),
        check_signal_loss(sample),
        check_unauthorized_presence(sample, now),
        check_inactivity(sample),
    ]
    return [result for result in results if result.should_alert]
