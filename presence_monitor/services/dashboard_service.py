"""
Dashboard composition and device registry for the Presence Monitor API
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from presence_monitor.config.settings import Settings
from presence_monitor.core.analytics import chart_data
from presence_monitor.core.exceptions import MalformedInputError, NotFoundError, NotFoundOrUnauthorizedError
from presence_monitor.core.models import AnalyticsPeriod, DeviceRecord, MetricSample, parse_timestamp
from presence_monitor.database import keys
from presence_monitor.database.kv_store import KVStore
from presence_monitor.services.alert_service import AlertService
from presence_monitor.services.metrics_service import MetricsService

logger = logging.getLogger(__name__)

RECENT_ALERTS = 10
DETAILED_DEFAULT_WINDOW = timedelta(hours=24)


class DashboardService:
    """Merges device state, recent alerts and analytics for one user."""

    def __init__(
        self,
        settings: Settings,
        store: KVStore,
        metrics_service: MetricsService,
        alert_service: AlertService,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.store = store
        self.metrics_service = metrics_service
        self.alert_service = alert_service
        self.clock = clock or datetime.now
        self._registry_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Device registry
    # ------------------------------------------------------------------

    async def get_user_devices(self, user_id: str) -> List[str]:
        """Get ids of the devices associated with a user."""
        return await self.store.get(keys.user_devices_key(user_id)) or []

    async def get_device(self, device_id: str) -> Optional[DeviceRecord]:
        record = await self.store.get(keys.device_key(device_id))
        return DeviceRecord.from_dict(record) if record else None

    async def list_user_devices(self, user_id: str) -> List[Dict[str, Any]]:
        """Device records for every device associated with a user."""
        devices = []
        for device_id in await self.get_user_devices(user_id):
            device = await self.get_device(device_id)
            devices.append(device.to_dict() if device else {"id": device_id})
        return devices

    async def add_user_device(
        self,
        user_id: str,
        device_id: str,
        name: Optional[str] = None,
        location: Optional[str] = None,
    ) -> DeviceRecord:
        """
        Associate a device with a user, in both directions.

        Re-adding an existing association is a no-op for the index lists. The
        first user to register a device stays its owner.
        """
        if not device_id or not device_id.strip():
            raise MalformedInputError("device_id is required")

        async with self._registry_lock:
            user_devices = await self.get_user_devices(user_id)
            device_users = await self.store.get(keys.device_users_key(device_id)) or []
            existing = await self.get_device(device_id)

            if device_id not in user_devices:
                user_devices.append(device_id)
            if user_id not in device_users:
                device_users.append(user_id)

            device = DeviceRecord(
                id=device_id,
                name=name if name is not None else (existing.name if existing else device_id),
                location=location if location is not None else (existing.location if existing else ""),
                owner_id=existing.owner_id if existing else user_id,
                created_at=existing.created_at if existing else self.clock(),
                status="active",
            )

            await self.store.set_many({
                keys.user_devices_key(user_id): user_devices,
                keys.device_users_key(device_id): device_users,
                keys.device_key(device_id): device.to_dict(),
            })

        logger.info(f"Device {device_id} associated with user {user_id}")
        return device

    async def detailed_metrics(
        self,
        user_id: str,
        device_id: str,
        start: Optional[Union[str, datetime]] = None,
        end: Optional[Union[str, datetime]] = None,
    ) -> Dict[str, Any]:
        """Samples and 24h analytics for a device the user has access to."""
        if device_id not in await self.get_user_devices(user_id):
            raise NotFoundOrUnauthorizedError(
                "Unauthorized access to device",
                {"device_id": device_id},
            )

        now = self.clock()
        upper = parse_timestamp(end) if end is not None else now
        lower = parse_timestamp(start) if start is not None else now - DETAILED_DEFAULT_WINDOW

        samples = await self.metrics_service.list_samples(device_id, start=lower, end=upper)
        analytics = await self.metrics_service.analytics(device_id, AnalyticsPeriod.ONE_DAY)

        return {
            "metrics": [sample.to_dict() for sample in samples],
            "analytics": analytics.to_dict(),
            "device_id": device_id,
            "period": {"start": lower.isoformat(), "end": upper.isoformat()},
        }

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    async def _device_summary(self, device_id: str, period: str) -> Dict[str, Any]:
        try:
            latest = await self.metrics_service.latest(device_id)
        except NotFoundError:
            latest = None
        analytics = await self.metrics_service.analytics(device_id, period)

        return {
            "device_id": device_id,
            "status": "online" if latest else "offline",
            "latest_data": latest.to_dict() if latest else None,
            "analytics": analytics.to_dict(),
        }

    @staticmethod
    def _summary(
        samples: List[MetricSample],
        alerts: List[Dict[str, Any]],
        devices: List[Dict[str, Any]],
        now: datetime,
    ) -> Dict[str, Any]:
        average = sum(s.confidence_level for s in samples) / len(samples) if samples else 0
        return {
            "total_devices": len(devices),
            "online_devices": sum(1 for device in devices if device["status"] == "online"),
            "active_alerts": sum(1 for alert in alerts if not alert["acknowledged"]),
            "total_detections": sum(1 for s in samples if s.presence_detected),
            "average_confidence": round(average, 2),
            "last_update": now.isoformat(),
        }

    async def dashboard(
        self,
        user_id: str,
        device_id: Optional[str] = None,
        period: str = "24h",
    ) -> Dict[str, Any]:
        """Compose the dashboard view for a user."""
        now = self.clock()
        targets = [device_id] if device_id else await self.get_user_devices(user_id)

        if not targets:
            return {
                "devices": [],
                "alerts": [],
                "summary": self._summary([], [], [], now),
                "charts": chart_data([], now),
                "period": period,
            }

        devices = []
        samples: List[MetricSample] = []
        for target in targets:
            samples.extend(await self.metrics_service.list_samples(target))
            devices.append(await self._device_summary(target, period))

        recent = await self.alert_service.list_alerts(user_id, include_read=True)
        alerts = [alert.to_dict() for alert in recent[:RECENT_ALERTS]]

        return {
            "devices": devices,
            "alerts": alerts,
            "summary": self._summary(samples, alerts, devices, now),
            "charts": chart_data(samples, now),
            "period": period,
        }
