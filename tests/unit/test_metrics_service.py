from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from presence_monitor.core.exceptions import CaptureError, MalformedInputError, NotFoundError, StoreError
from presence_monitor.services.metrics_service import MetricsService


class TestMetricsService:
    """Sample capture and read-back."""

    @pytest.mark.asyncio
    async def test_capture_applies_defaults(self, metrics_service, clock):
        sample = await metrics_service.capture("D1", {})

        assert sample.device_id == "D1"
        assert sample.timestamp == clock.now
        assert sample.rssi == -50
        assert sample.signal_strength == 0
        assert sample.presence_detected is False
        assert sample.confidence_level == 0
        assert sample.room_location == "unknown"
        assert sample.raw_data == {}
        assert sample.id.startswith("metric:D1:")

    @pytest.mark.asyncio
    async def test_explicit_none_gets_default(self, metrics_service):
        sample = await metrics_service.capture("D1", {"rssi": None, "room_location": None})

        assert sample.rssi == -50
        assert sample.room_location == "unknown"

    @pytest.mark.asyncio
    async def test_capture_keeps_caller_values_and_raw_payload(self, metrics_service):
        raw = {"rssi": -61, "presence_detected": True, "confidence_level": 77, "room_location": "kitchen", "fw": "1.2"}
        sample = await metrics_service.capture("D1", raw)

        assert sample.rssi == -61
        assert sample.presence_detected is True
        assert sample.confidence_level == 77
        assert sample.room_location == "kitchen"
        assert sample.raw_data == raw

    @pytest.mark.asyncio
    async def test_latest_returns_captured_sample(self, metrics_service):
        sample = await metrics_service.capture("D1", {"rssi": -70, "confidence_level": 30})
        assert await metrics_service.latest("D1") == sample

    @pytest.mark.asyncio
    async def test_later_capture_replaces_latest(self, metrics_service, clock):
        await metrics_service.capture("D1", {"rssi": -70})
        clock.advance(seconds=5)
        second = await metrics_service.capture("D1", {"rssi": -40, "timestamp": "2001-01-01T00:00:00"})

        assert await metrics_service.latest("D1") == second

    @pytest.mark.asyncio
    async def test_latest_without_samples(self, metrics_service):
        with pytest.raises(NotFoundError):
            await metrics_service.latest("nope")

    @pytest.mark.asyncio
    async def test_list_samples_newest_first(self, metrics_service, clock):
        for rssi in (-90, -80, -70):
            await metrics_service.capture("D1", {"rssi": rssi})
            clock.advance(minutes=1)
        await metrics_service.capture("D2", {"rssi": -10})

        samples = await metrics_service.list_samples("D1")

        assert [s.rssi for s in samples] == [-70, -80, -90]

    @pytest.mark.asyncio
    async def test_list_samples_filters_inclusive_range(self, metrics_service, clock):
        start = clock.now
        for rssi in (-90, -80, -70):
            await metrics_service.capture("D1", {"rssi": rssi})
            clock.advance(minutes=10)

        samples = await metrics_service.list_samples(
            "D1",
            start=start + timedelta(minutes=10),
            end=(start + timedelta(minutes=20)).isoformat(),
        )

        assert [s.rssi for s in samples] == [-70, -80]

    @pytest.mark.asyncio
    async def test_device_prefix_does_not_leak(self, metrics_service):
        await metrics_service.capture("D1", {})
        await metrics_service.capture("D10", {})

        assert len(await metrics_service.list_samples("D1")) == 1

    @pytest.mark.asyncio
    async def test_colon_separated_device_does_not_leak(self, metrics_service):
        await metrics_service.capture("esp", {"rssi": -60})
        await metrics_service.capture("esp:kitchen", {"rssi": -70})

        samples = await metrics_service.list_samples("esp")
        analytics = await metrics_service.analytics("esp")

        assert [s.device_id for s in samples] == ["esp"]
        assert analytics.data_points == 1
        assert [s.rssi for s in await metrics_service.list_samples("esp:kitchen")] == [-70]

    @pytest.mark.asyncio
    async def test_numeric_strings_are_coerced(self, metrics_service):
        sample = await metrics_service.capture(
            "D1",
            {"rssi": "-61", "signal_strength": "40", "confidence_level": "80", "presence_detected": "true"},
        )

        assert sample.rssi == -61.0
        assert sample.signal_strength == 40.0
        assert sample.confidence_level == 80.0
        assert sample.presence_detected is True
        assert sample.raw_data["confidence_level"] == "80"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,value", [
        ("rssi", "strong"),
        ("confidence_level", "eighty"),
        ("signal_strength", [1, 2]),
        ("confidence_level", float("nan")),
        ("rssi", True),
        ("presence_detected", "maybe"),
        ("presence_detected", 5),
        ("room_location", 3),
    ])
    async def test_uncoercible_values_are_malformed(self, metrics_service, field, value):
        with pytest.raises(MalformedInputError):
            await metrics_service.capture("D1", {field: value})

        assert await metrics_service.list_samples("D1") == []

    @pytest.mark.asyncio
    async def test_capture_requires_device_id(self, metrics_service):
        with pytest.raises(MalformedInputError):
            await metrics_service.capture("", {})

    @pytest.mark.asyncio
    async def test_capture_requires_object_payload(self, metrics_service):
        with pytest.raises(MalformedInputError):
            await metrics_service.capture("D1", ["not", "an", "object"])

    @pytest.mark.asyncio
    async def test_store_failure_becomes_capture_error(self, settings, clock):
        store = AsyncMock()
        store.set_many.side_effect = StoreError("disk full")
        service = MetricsService(settings, store, clock=clock)

        with pytest.raises(CaptureError):
            await service.capture("D1", {"rssi": -60})
        assert service.stats["capture_failures"] == 1

    @pytest.mark.asyncio
    async def test_analytics_without_samples(self, metrics_service):
        analytics = await metrics_service.analytics("D1", "1h")

        assert analytics.average_confidence == 0
        assert analytics.presence_percentage == 0
        assert analytics.data_points == 0

    @pytest.mark.asyncio
    async def test_analytics_counts_window(self, metrics_service, clock):
        await metrics_service.capture("D1", {"presence_detected": True, "confidence_level": 90})
        clock.advance(hours=2)
        await metrics_service.capture("D1", {"presence_detected": False, "confidence_level": 10})

        one_hour = await metrics_service.analytics("D1", "1h")
        one_day = await metrics_service.analytics("D1", "24h")

        assert one_hour.data_points == 1
        assert one_day.data_points == 2
        assert one_day.presence_percentage == pytest.approx(50.0)
