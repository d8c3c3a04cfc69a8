"""
Alert storage and trigger evaluation for the Presence Monitor API
"""

import asyncio
import logging
import uuid
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from presence_monitor.config.settings import Settings
from presence_monitor.core.exceptions import NotFoundOrUnauthorizedError
from presence_monitor.core.models import (
    TRIGGER_CONDITIONS,
    Alert,
    AlertType,
    MetricSample,
    Severity,
    UserSettings,
)
from presence_monitor.core.triggers import run_checks
from presence_monitor.database import keys
from presence_monitor.database.kv_store import KVStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DAYS = 30


class AlertService:
    """
    Alert store and trigger engine.

    Each alert is kept once under ``alert:<id>``; ``user_alerts:<user>`` holds
    only the ids of that user's alerts. Creation writes both keys in one
    atomic store call, state transitions only touch the alert record.
    """

    def __init__(
        self,
        settings: Settings,
        store: KVStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.store = store
        self.clock = clock or datetime.now
        self._user_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        self.stats = {
            "alerts_created": 0,
            "trigger_runs": 0,
            "subscriber_failures": 0,
        }

    async def create(
        self,
        user_id: str,
        device_id: str,
        type: AlertType,
        message: str,
        severity: Severity = Severity.MEDIUM,
    ) -> Alert:
        """Create and persist an alert."""
        type = AlertType(type)
        alert = Alert(
            id=uuid.uuid4().hex,
            user_id=user_id,
            device_id=device_id,
            type=type,
            message=message,
            severity=Severity(severity),
            timestamp=self.clock(),
            trigger_conditions=TRIGGER_CONDITIONS.get(type, ""),
        )

        index_key = keys.user_alerts_key(user_id)
        async with self._user_locks[user_id]:
            alert_ids = await self.store.get(index_key) or []
            alert_ids.append(alert.id)
            await self.store.set_many({
                keys.alert_key(alert.id): alert.to_dict(),
                index_key: alert_ids,
            })

        self.stats["alerts_created"] += 1
        logger.info(f"Alert created: {alert.type.value} for user {user_id} on device {device_id}")
        return alert

    async def _user_alerts(self, user_id: str) -> List[Alert]:
        alert_ids = await self.store.get(keys.user_alerts_key(user_id)) or []
        records = await asyncio.gather(*(self.store.get(keys.alert_key(alert_id)) for alert_id in alert_ids))

        alerts = []
        for alert_id, record in zip(alert_ids, records):
            if record is None:
                logger.warning(f"Alert {alert_id} indexed for user {user_id} has no record")
                continue
            alerts.append(Alert.from_dict(record))
        return alerts

    async def list_alerts(self, user_id: str, include_read: bool = False) -> List[Alert]:
        """List a user's alerts, newest first."""
        alerts = await self._user_alerts(user_id)
        if not include_read:
            alerts = [alert for alert in alerts if not alert.read]
        alerts.sort(key=lambda alert: alert.timestamp, reverse=True)
        return alerts

    async def _owned_alert(self, user_id: str, alert_id: str) -> Alert:
        record = await self.store.get(keys.alert_key(alert_id))
        if record is None or record.get("user_id") != user_id:
            raise NotFoundOrUnauthorizedError(
                "Alert not found or unauthorized",
                {"alert_id": alert_id},
            )
        return Alert.from_dict(record)

    async def mark_read(self, user_id: str, alert_id: str) -> Alert:
        """Mark an alert as read. Already-read alerts are returned unchanged."""
        alert = await self._owned_alert(user_id, alert_id)
        if not alert.read:
            alert.read = True
            alert.read_at = self.clock()
            await self.store.set(keys.alert_key(alert_id), alert.to_dict())
        return alert

    async def acknowledge(self, user_id: str, alert_id: str) -> Alert:
        """Acknowledge an alert. Already-acknowledged alerts are returned unchanged."""
        alert = await self._owned_alert(user_id, alert_id)
        if not alert.acknowledged:
            alert.acknowledged = True
            alert.acknowledged_at = self.clock()
            await self.store.set(keys.alert_key(alert_id), alert.to_dict())
        return alert

    async def history(self, user_id: str, days: int = DEFAULT_HISTORY_DAYS) -> Dict[str, Any]:
        """Alerts of the last ``days`` days with per-type counts."""
        cutoff = self.clock() - timedelta(days=days)
        alerts = [alert for alert in await self._user_alerts(user_id) if alert.timestamp >= cutoff]
        alerts.sort(key=lambda alert: alert.timestamp, reverse=True)

        statistics = Counter(alert.type.value for alert in alerts)
        return {
            "history": [alert.to_dict() for alert in alerts],
            "statistics": dict(statistics),
            "total_alerts": len(alerts),
        }

    async def _subscriber_settings(self, user_id: str) -> Optional[UserSettings]:
        record = await self.store.get(keys.user_key(user_id))
        if record is None:
            return None
        return UserSettings.from_dict(record.get("settings"))

    async def check_triggers(self, device_id: str, sample: MetricSample) -> List[Alert]:
        """
        Run the system triggers for every subscriber of ``device_id``.

        Subscribers with notifications disabled (or without a user record) are
        skipped. A failure while processing one subscriber is logged and the
        remaining subscribers are still processed.
        """
        self.stats["trigger_runs"] += 1
        subscribers = await self.store.get(keys.device_users_key(device_id)) or []
        now = self.clock()

        created: List[Alert] = []
        for user_id in subscribers:
            try:
                settings = await self._subscriber_settings(user_id)
                if settings is None or not settings.notifications_enabled:
                    continue

                for result in run_checks(sample, settings, now):
                    alert = await self.create(user_id, device_id, result.type, result.message, result.severity)
                    created.append(alert)
            except Exception as e:
                self.stats["subscriber_failures"] += 1
                logger.error(f"Trigger check failed for user {user_id} on device {device_id}: {e}", exc_info=True)

        if created:
            logger.info(f"{len(created)} alert(s) raised for device {device_id}")
        return created

    async def get_status(self) -> Dict[str, Any]:
        """Get service status."""
        return {
            "status": "healthy",
            "statistics": self.stats.copy(),
        }
