from datetime import datetime, timedelta

import pytest

from presence_monitor.core.analytics import (
    Analytics,
    chart_data,
    compute_analytics,
    confidence_trend,
    detection_timeline,
    hourly_activity,
    samples_in_period,
)
from presence_monitor.core.models import AnalyticsPeriod, MetricSample

NOW = datetime(2024, 6, 1, 12, 0)


def make_sample(at, presence=True, confidence=60.0, device_id="D1", location="hall"):
    return MetricSample(
        id=f"metric:{device_id}:{at.isoformat()}",
        device_id=device_id,
        timestamp=at,
        rssi=-60,
        signal_strength=80,
        presence_detected=presence,
        confidence_level=confidence,
        room_location=location,
    )


class TestComputeAnalytics:
    """Period aggregation for a single device."""

    def test_empty_window_is_all_zeros(self):
        analytics = compute_analytics([], "1h", NOW)

        assert analytics.average_confidence == 0
        assert analytics.presence_percentage == 0
        assert analytics.total_detections == 0
        assert analytics.data_points == 0
        assert analytics.peak_hours == [0] * 24

    def test_samples_outside_window_are_ignored(self):
        samples = [make_sample(NOW - timedelta(hours=2))]
        assert compute_analytics(samples, "1h", NOW).data_points == 0

    def test_aggregates(self):
        samples = [
            make_sample(NOW - timedelta(minutes=10), presence=True, confidence=80),
            make_sample(NOW - timedelta(minutes=20), presence=False, confidence=20),
            make_sample(NOW - timedelta(hours=3), presence=True, confidence=50),
            make_sample(NOW - timedelta(hours=3, minutes=5), presence=True, confidence=50),
        ]
        analytics = compute_analytics(samples, "24h", NOW)

        assert analytics.data_points == 4
        assert analytics.total_detections == 3
        assert analytics.average_confidence == pytest.approx(50.0)
        assert analytics.presence_percentage == pytest.approx(75.0)
        assert analytics.peak_hours[11] == 1
        assert analytics.peak_hours[9] == 1
        assert analytics.peak_hours[8] == 1
        assert sum(analytics.peak_hours) == 3

    def test_window_bounds_are_inclusive(self):
        samples = [make_sample(NOW - timedelta(hours=1)), make_sample(NOW)]
        assert len(samples_in_period(samples, AnalyticsPeriod.ONE_HOUR, NOW)) == 2

    def test_unknown_period_falls_back_to_a_day(self):
        samples = [make_sample(NOW - timedelta(hours=23)), make_sample(NOW - timedelta(days=2))]
        assert compute_analytics(samples, "fortnight", NOW).data_points == 1

    def test_to_dict_shape(self):
        data = Analytics().to_dict()
        assert set(data) == {"total_detections", "average_confidence", "peak_hours", "presence_percentage", "data_points"}


class TestChartData:
    """Dashboard chart series."""

    def test_empty_input_gives_empty_series(self):
        assert chart_data([], NOW) == {"hourly_activity": [], "confidence_trend": [], "detection_timeline": []}

    def test_hourly_activity(self):
        samples = [
            make_sample(NOW.replace(hour=9), confidence=60),
            make_sample(NOW.replace(hour=9, minute=30), presence=False, confidence=30),
        ]
        activity = hourly_activity(samples)

        assert len(activity) == 24
        assert activity[9] == {"hour": "9:00", "detections": 1, "average_confidence": 45.0}
        assert activity[0] == {"hour": "0:00", "detections": 0, "average_confidence": 0.0}

    def test_confidence_trend_has_twelve_two_hour_buckets(self):
        samples = [
            make_sample(NOW - timedelta(minutes=30), confidence=90),
            make_sample(NOW - timedelta(hours=3), confidence=40),
            make_sample(NOW, confidence=10),
        ]
        trend = confidence_trend(samples, NOW)

        assert len(trend) == 12
        assert trend[-1] == {"time": "12:00", "confidence": 90.0, "detections": 1}
        assert trend[-2] == {"time": "10:00", "confidence": 40.0, "detections": 1}
        assert trend[0]["time"] == "14:00"
        assert trend[0]["detections"] == 0

    def test_detection_timeline_keeps_last_twenty_detections(self):
        samples = [make_sample(NOW - timedelta(minutes=i)) for i in range(30)]
        samples.append(make_sample(NOW + timedelta(minutes=1), presence=False))
        timeline = detection_timeline(samples)

        assert len(timeline) == 20
        assert timeline[-1]["time"] == "12:00:00"
        assert timeline[0]["time"] == "11:41:00"
        assert timeline[0]["location"] == "hall"
        assert timeline[0]["device_id"] == "D1"
