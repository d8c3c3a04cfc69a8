"""
Sample capture and metrics API endpoints
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from presence_monitor.api.dependencies import (
    get_alert_service,
    get_current_user,
    get_dashboard_service,
    get_metrics_service,
)
from presence_monitor.core.models import AnalyticsPeriod, UserRecord
from presence_monitor.services.alert_service import AlertService
from presence_monitor.services.dashboard_service import DashboardService
from presence_monitor.services.metrics_service import MetricsService

logger = logging.getLogger(__name__)
router = APIRouter()


class CaptureRequest(BaseModel):
    """A raw sample sent by a sensing device."""

    device_id: str = Field(..., min_length=1, description="Device identifier")
    data: Dict[str, Any] = Field(default_factory=dict, description="Raw sample payload")


@router.post("/metrics", status_code=status.HTTP_201_CREATED)
async def capture_metrics(
    body: CaptureRequest,
    metrics_service: MetricsService = Depends(get_metrics_service),
    alert_service: AlertService = Depends(get_alert_service),
):
    """Capture a sample, then run the alert triggers for it."""
    sample = await metrics_service.capture(body.device_id, body.data)

    alerts = []
    try:
        alerts = await alert_service.check_triggers(body.device_id, sample)
    except Exception as e:
        logger.error(f"Trigger evaluation failed for device {body.device_id}: {e}", exc_info=True)

    return {
        "success": True,
        "metric_id": sample.id,
        "metric": sample.to_dict(),
        "alerts_created": len(alerts),
    }


@router.get("/metrics/{device_id}")
async def list_metrics(
    device_id: str,
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    current_user: UserRecord = Depends(get_current_user),
    metrics_service: MetricsService = Depends(get_metrics_service),
):
    """List a device's samples, newest first."""
    samples = await metrics_service.list_samples(device_id, start=start_date, end=end_date)
    return {"success": True, "metrics": [sample.to_dict() for sample in samples]}


@router.get("/metrics/{device_id}/latest")
async def latest_metric(
    device_id: str,
    current_user: UserRecord = Depends(get_current_user),
    metrics_service: MetricsService = Depends(get_metrics_service),
):
    """Get the most recently captured sample."""
    sample = await metrics_service.latest(device_id)
    return {"success": True, "metric": sample.to_dict()}


@router.get("/metrics/{device_id}/detailed")
async def detailed_metrics(
    device_id: str,
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    current_user: UserRecord = Depends(get_current_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service),
):
    """Samples plus analytics for a device the user owns."""
    result = await dashboard_service.detailed_metrics(current_user.id, device_id, start_date, end_date)
    return {"success": True, **result}


@router.get("/analytics/{device_id}")
async def device_analytics(
    device_id: str,
    period: str = Query(default=AnalyticsPeriod.ONE_DAY.value),
    current_user: UserRecord = Depends(get_current_user),
    metrics_service: MetricsService = Depends(get_metrics_service),
):
    """Aggregate statistics for a device over a period."""
    analytics = await metrics_service.analytics(device_id, period)
    return {"success": True, "analytics": analytics.to_dict()}
