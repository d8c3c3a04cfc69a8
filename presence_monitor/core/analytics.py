"""
Time-series aggregation over captured samples.

``compute_analytics`` summarises the samples of one device over a look-back
period. ``chart_data`` builds the dashboard chart series: an hour-of-day
histogram, a confidence trend over twelve fixed two-hour buckets ending at
``now`` (independent of any requested period) and the most recent detections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Sequence, Union

import numpy as np

from presence_monitor.core.models import AnalyticsPeriod, MetricSample, format_timestamp

HOURS_PER_DAY = 24
TREND_BUCKETS = 12
TREND_BUCKET_WIDTH = timedelta(hours=2)
TIMELINE_LENGTH = 20


@dataclass
class Analytics:
    total_detections: int = 0
    average_confidence: float = 0.0
    presence_percentage: float = 0.0
    peak_hours: List[int] = field(default_factory=lambda: [0] * HOURS_PER_DAY)
    data_points: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_detections": self.total_detections,
            "average_confidence": self.average_confidence,
            "peak_hours": list(self.peak_hours),
            "presence_percentage": self.presence_percentage,
            "data_points": self.data_points,
        }


def _round2(value: float) -> float:
    return float(round(value, 2))


def _arrays(samples: Sequence[MetricSample]):
    """Split samples into hour, presence and confidence arrays."""
    hours = np.fromiter((s.timestamp.hour for s in samples), dtype=np.int64, count=len(samples))
    presence = np.fromiter((bool(s.presence_detected) for s in samples), dtype=bool, count=len(samples))
    confidence = np.fromiter((float(s.confidence_level) for s in samples), dtype=np.float64, count=len(samples))
    return hours, presence, confidence


def samples_in_period(
    samples: Sequence[MetricSample],
    period: Union[str, AnalyticsPeriod],
    now: datetime,
) -> List[MetricSample]:
    start = now - AnalyticsPeriod.parse(period).delta
    return [s for s in samples if start <= s.timestamp <= now]


def compute_analytics(
    samples: Sequence[MetricSample],
    period: Union[str, AnalyticsPeriod],
    now: datetime,
) -> Analytics:
    """
    Summarise the samples falling inside ``period`` before ``now``.

    An empty window yields zeros throughout rather than dividing by zero.
    """
    window = samples_in_period(samples, period, now)
    if not window:
        return Analytics()

    hours, presence, confidence = _arrays(window)
    detections = int(presence.sum())

    return Analytics(
        total_detections=detections,
        average_confidence=float(confidence.mean()),
        presence_percentage=detections / len(window) * 100.0,
        peak_hours=np.bincount(hours[presence], minlength=HOURS_PER_DAY).tolist(),
        data_points=len(window),
    )


def hourly_activity(samples: Sequence[MetricSample]) -> List[Dict[str, Any]]:
    hours, presence, confidence = _arrays(samples)
    counts = np.bincount(hours, minlength=HOURS_PER_DAY)
    detections = np.bincount(hours[presence], minlength=HOURS_PER_DAY)
    totals = np.bincount(hours, weights=confidence, minlength=HOURS_PER_DAY)

    activity = []
    for hour in range(HOURS_PER_DAY):
        average = totals[hour] / counts[hour] if counts[hour] else 0.0
        activity.append({
            "hour": f"{hour}:00",
            "detections": int(detections[hour]),
            "average_confidence": _round2(average),
        })
    return activity


def confidence_trend(samples: Sequence[MetricSample], now: datetime) -> List[Dict[str, Any]]:
    """Twelve two-hour buckets ``[end - 2h, end)``, oldest first, the last ending at ``now``."""
    trend = []
    for index in range(TREND_BUCKETS - 1, -1, -1):
        bucket_end = now - index * TREND_BUCKET_WIDTH
        bucket_start = bucket_end - TREND_BUCKET_WIDTH
        bucket = [s for s in samples if bucket_start <= s.timestamp < bucket_end]

        average = sum(s.confidence_level for s in bucket) / len(bucket) if bucket else 0.0
        trend.append({
            "time": bucket_end.strftime("%H:%M"),
            "confidence": _round2(average),
            "detections": sum(1 for s in bucket if s.presence_detected),
        })
    return trend


def detection_timeline(samples: Sequence[MetricSample]) -> List[Dict[str, Any]]:
    ordered = sorted(samples, key=lambda s: s.timestamp)
    detections = [s for s in ordered if s.presence_detected][-TIMELINE_LENGTH:]
    return [
        {
            "timestamp": format_timestamp(s.timestamp),
            "time": s.timestamp.strftime("%H:%M:%S"),
            "confidence": s.confidence_level,
            "device_id": s.device_id,
            "location": s.room_location or "unknown",
        }
        for s in detections
    ]


def chart_data(samples: Sequence[MetricSample], now: datetime) -> Dict[str, List[Dict[str, Any]]]:
    """Build the three dashboard chart series; empty input gives empty series."""
    if not samples:
        return {"hourly_activity": [], "confidence_trend": [], "detection_timeline": []}

    return {
        "hourly_activity": hourly_activity(samples),
        "confidence_trend": confidence_trend(samples, now),
        "detection_timeline": detection_timeline(samples),
    }
