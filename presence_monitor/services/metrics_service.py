"""
Sample ingest service for the Presence Monitor API
"""

import asyncio
import logging
import math
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from presence_monitor.config.settings import Settings
from presence_monitor.core.analytics import Analytics, compute_analytics
from presence_monitor.core.exceptions import CaptureError, MalformedInputError, NotFoundError, StoreError
from presence_monitor.core.models import AnalyticsPeriod, MetricSample, parse_timestamp
from presence_monitor.database import keys
from presence_monitor.database.kv_store import KVStore

logger = logging.getLogger(__name__)

SAMPLE_DEFAULTS = {
    "rssi": -50,
    "signal_strength": 0,
    "presence_detected": False,
    "confidence_level": 0,
    "room_location": "unknown",
}

EPOCH = datetime(1970, 1, 1)

TRUE_STRINGS = frozenset({"true", "1", "yes"})
FALSE_STRINGS = frozenset({"false", "0", "no"})


def _field(raw: Mapping[str, Any], name: str) -> Any:
    value = raw.get(name)
    return SAMPLE_DEFAULTS[name] if value is None else value


def _number(raw: Mapping[str, Any], name: str) -> float:
    value = _field(raw, name)
    if isinstance(value, bool):
        raise MalformedInputError(f"{name} must be a number", {"field": name})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedInputError(f"{name} must be a number", {"field": name})
    if not math.isfinite(number):
        raise MalformedInputError(f"{name} must be a finite number", {"field": name})
    return number


def _flag(raw: Mapping[str, Any], name: str) -> bool:
    value = _field(raw, name)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in TRUE_STRINGS | FALSE_STRINGS:
        return value.strip().lower() in TRUE_STRINGS
    raise MalformedInputError(f"{name} must be a boolean", {"field": name})


def _text(raw: Mapping[str, Any], name: str) -> str:
    value = _field(raw, name)
    if not isinstance(value, str):
        raise MalformedInputError(f"{name} must be a string", {"field": name})
    return value


class MetricsService:
    """Captures samples into per-device series and reads them back."""

    def __init__(
        self,
        settings: Settings,
        store: KVStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.store = store
        self.clock = clock or datetime.now
        self._device_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        self.stats = {
            "samples_captured": 0,
            "capture_failures": 0,
            "last_capture_time": None,
        }

    async def capture(
        self,
        device_id: str,
        raw_sample: Mapping[str, Any],
        raw_data: Optional[Mapping[str, Any]] = None,
    ) -> MetricSample:
        """
        Normalize a raw sample and append it to the device series.

        Missing fields get their defaults. Numeric fields are coerced to float
        and ``presence_detected`` to bool; values that cannot be coerced raise
        ``MalformedInputError``. The raw payload (``raw_sample``
        unless ``raw_data`` is given) is kept as-is in ``raw_data``. The series
        entry and the device's latest pointer are written together; writes for
        one device are serialized so the latest pointer follows arrival order.
        """
        if not device_id:
            raise MalformedInputError("device_id is required")
        if not isinstance(raw_sample, Mapping):
            raise MalformedInputError("Sample payload must be an object")

        timestamp = self.clock()
        suffix = f"{int(timestamp.timestamp() * 1000)}-{uuid.uuid4().hex[:8]}"
        sample_id = keys.metric_key(device_id, suffix)

        sample = MetricSample(
            id=sample_id,
            device_id=device_id,
            timestamp=timestamp,
            rssi=_number(raw_sample, "rssi"),
            signal_strength=_number(raw_sample, "signal_strength"),
            presence_detected=_flag(raw_sample, "presence_detected"),
            confidence_level=_number(raw_sample, "confidence_level"),
            room_location=_text(raw_sample, "room_location"),
            raw_data=dict(raw_sample if raw_data is None else raw_data),
        )
        record = sample.to_dict()

        try:
            async with self._device_locks[device_id]:
                await self.store.set_many({
                    sample_id: record,
                    keys.latest_key(device_id): record,
                })
        except StoreError as e:
            self.stats["capture_failures"] += 1
            logger.error(f"Failed to capture sample for device {device_id}: {e}")
            raise CaptureError(f"Failed to capture sensor data for device {device_id}") from e

        self.stats["samples_captured"] += 1
        self.stats["last_capture_time"] = timestamp.isoformat()
        logger.debug(f"Captured sample {sample_id}")
        return sample

    async def list_samples(
        self,
        device_id: str,
        start: Optional[Union[str, datetime]] = None,
        end: Optional[Union[str, datetime]] = None,
    ) -> List[MetricSample]:
        """List samples for a device, newest first, within inclusive bounds."""
        records = await self.store.get_by_prefix(keys.metric_prefix(device_id))
        # "esp:" is also a prefix of "esp:kitchen:"
        samples = [
            MetricSample.from_dict(record)
            for record in records
            if record.get("device_id") == device_id
        ]

        if start is not None or end is not None:
            lower = parse_timestamp(start) if start is not None else EPOCH
            upper = parse_timestamp(end) if end is not None else self.clock()
            samples = [s for s in samples if lower <= s.timestamp <= upper]

        samples.sort(key=lambda s: s.timestamp, reverse=True)
        return samples

    async def latest(self, device_id: str) -> MetricSample:
        """Get the most recently captured sample for a device."""
        record = await self.store.get(keys.latest_key(device_id))
        if record is None:
            raise NotFoundError(f"No data found for device {device_id}", {"device_id": device_id})
        return MetricSample.from_dict(record)

    async def analytics(self, device_id: str, period: Union[str, AnalyticsPeriod] = "24h") -> Analytics:
        """Aggregate a device's samples over the requested period."""
        now = self.clock()
        start = now - AnalyticsPeriod.parse(period).delta
        samples = await self.list_samples(device_id, start=start, end=now)
        return compute_analytics(samples, period, now)

    async def get_status(self) -> Dict[str, Any]:
        """Get service status."""
        return {
            "status": "healthy",
            "backend": getattr(self.store, "backend", "unknown"),
            "statistics": self.stats.copy(),
        }
