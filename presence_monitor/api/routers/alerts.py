"""
Alert API endpoints
"""

import logging

from fastapi import APIRouter, Depends, Query

from presence_monitor.api.dependencies import get_alert_service, get_current_user
from presence_monitor.core.models import UserRecord
from presence_monitor.services.alert_service import DEFAULT_HISTORY_DAYS, AlertService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/alerts")
async def list_alerts(
    include_read: bool = Query(default=False),
    current_user: UserRecord = Depends(get_current_user),
    alert_service: AlertService = Depends(get_alert_service),
):
    """List the user's alerts, newest first."""
    alerts = await alert_service.list_alerts(current_user.id, include_read=include_read)
    return {"success": True, "alerts": [alert.to_dict() for alert in alerts]}


@router.get("/alerts/history")
async def alert_history(
    days: int = Query(default=DEFAULT_HISTORY_DAYS, ge=1, le=3650),
    current_user: UserRecord = Depends(get_current_user),
    alert_service: AlertService = Depends(get_alert_service),
):
    """Alerts of the last ``days`` days with per-type statistics."""
    history = await alert_service.history(current_user.id, days=days)
    return {"success": True, **history}


@router.put("/alerts/{alert_id}/read")
async def mark_alert_read(
    alert_id: str,
    current_user: UserRecord = Depends(get_current_user),
    alert_service: AlertService = Depends(get_alert_service),
):
    alert = await alert_service.mark_read(current_user.id, alert_id)
    return {"success": True, "alert": alert.to_dict()}


@router.put("/alerts/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    current_user: UserRecord = Depends(get_current_user),
    alert_service: AlertService = Depends(get_alert_service),
):
    alert = await alert_service.acknowledge(current_user.id, alert_id)
    return {"success": True, "alert": alert.to_dict()}
