"""
Health check API endpoints
"""

import logging
import time
from typing import Dict, Any, Optional
from datetime import datetime

import psutil
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from presence_monitor.api.dependencies import get_orchestrator
from presence_monitor.services.orchestrator import ServiceOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


# Response models
class ComponentHealth(BaseModel):
    """Health status for a system component."""

    name: str = Field(..., description="Component name")
    status: str = Field(..., description="Health status (healthy, degraded, unhealthy, disabled)")
    message: Optional[str] = Field(default=None, description="Status message")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Component details")


class SystemHealth(BaseModel):
    """Overall system health status."""

    success: bool = Field(default=True)
    status: str = Field(..., description="Overall system status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    uptime_seconds: float = Field(..., description="API uptime")
    components: Dict[str, ComponentHealth] = Field(..., description="Component health status")
    system_metrics: Dict[str, Any] = Field(..., description="System-level metrics")


@router.get("/health", response_model=SystemHealth)
async def health_check(request: Request, orchestrator: ServiceOrchestrator = Depends(get_orchestrator)):
    """System health check."""
    components = {}
    overall_status = "healthy"

    store_health = await orchestrator.store_health()
    components["store"] = ComponentHealth(
        name="Key-value store",
        status=store_health["status"],
        details=store_health.get("details"),
    )
    if store_health["status"] == "unhealthy":
        overall_status = "unhealthy"
    elif store_health["status"] == "degraded":
        overall_status = "degraded"

    if orchestrator.settings.mqtt_enabled and orchestrator.listener is not None:
        listener_status = await orchestrator.listener.get_status()
        components["listener"] = ComponentHealth(
            name="MQTT listener",
            status=listener_status["status"],
            message=listener_status.get("last_error"),
            details=listener_status.get("statistics"),
        )
        if listener_status["status"] != "healthy" and overall_status == "healthy":
            overall_status = "degraded"
    else:
        components["listener"] = ComponentHealth(name="MQTT listener", status="disabled")

    started_at = getattr(request.app.state, "started_at", None)
    uptime_seconds = time.monotonic() - started_at if started_at else 0.0

    return SystemHealth(
        status=overall_status,
        timestamp=datetime.now(),
        uptime_seconds=round(uptime_seconds, 3),
        components=components,
        system_metrics=get_system_metrics(),
    )


@router.get("/health/live")
async def liveness_check():
    """Simple liveness check for load balancers."""
    return {
        "success": True,
        "status": "alive",
        "timestamp": datetime.now().isoformat()
    }


@router.get("/health/version")
async def get_version_info(orchestrator: ServiceOrchestrator = Depends(get_orchestrator)):
    """Get application version information."""
    settings = orchestrator.settings
    return {
        "success": True,
        "name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
    }


def get_system_metrics() -> Dict[str, Any]:
    """Get basic system metrics."""
    try:
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage('/')
        return {
            "cpu": {
                "percent": psutil.cpu_percent(interval=None),
                "count": psutil.cpu_count(),
            },
            "memory": {
                "total_gb": round(memory.total / (1024**3), 2),
                "available_gb": round(memory.available / (1024**3), 2),
                "percent": memory.percent,
            },
            "disk": {
                "total_gb": round(disk.total / (1024**3), 2),
                "free_gb": round(disk.free / (1024**3), 2),
                "percent": round((disk.used / disk.total) * 100, 2),
            },
        }
    except (OSError, psutil.Error) as e:
        logger.error(f"Error getting system metrics: {e}")
        return {"error": str(e)}
