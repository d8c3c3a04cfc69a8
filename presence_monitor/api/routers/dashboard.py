"""
Dashboard and device registry API endpoints
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from presence_monitor.api.dependencies import get_current_user, get_dashboard_service
from presence_monitor.core.models import AnalyticsPeriod, UserRecord
from presence_monitor.services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)
router = APIRouter()


class DeviceRegistration(BaseModel):
    """Associate a device with the current user."""

    device_id: str = Field(..., min_length=1)
    device_name: Optional[str] = Field(default=None)
    location: Optional[str] = Field(default=None)


@router.get("/dashboard")
async def get_dashboard(
    device_id: Optional[str] = Query(default=None),
    period: str = Query(default=AnalyticsPeriod.ONE_DAY.value),
    current_user: UserRecord = Depends(get_current_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service),
):
    """Compose the dashboard for the current user."""
    view = await dashboard_service.dashboard(current_user.id, device_id=device_id, period=period)
    return {"success": True, "dashboard": view}


@router.post("/devices", status_code=status.HTTP_201_CREATED)
async def register_device(
    body: DeviceRegistration,
    current_user: UserRecord = Depends(get_current_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service),
):
    device = await dashboard_service.add_user_device(
        current_user.id,
        body.device_id,
        name=body.device_name,
        location=body.location,
    )
    return {"success": True, "device": device.to_dict()}


@router.get("/devices")
async def list_devices(
    current_user: UserRecord = Depends(get_current_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service),
):
    devices = await dashboard_service.list_user_devices(current_user.id)
    return {"success": True, "devices": devices}
