"""
Received state event API endpoints
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from presence_monitor.api.dependencies import get_current_user, get_event_log
from presence_monitor.core.models import UserRecord
from presence_monitor.sensing.event_log import EventLog

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/events")
async def list_events(
    limit: Optional[int] = Query(default=100, ge=1, le=10000),
    current_user: UserRecord = Depends(get_current_user),
    event_log: EventLog = Depends(get_event_log),
):
    """Most recent state events, newest first."""
    return {"success": True, "events": [event.to_dict() for event in event_log.events(limit)]}


@router.get("/events/summary")
async def events_summary(
    current_user: UserRecord = Depends(get_current_user),
    event_log: EventLog = Depends(get_event_log),
):
    return {"success": True, "summary": event_log.summary()}


@router.get("/events/export")
async def export_events(
    format: str = Query(default="json", pattern="^(json|csv)$"),
    current_user: UserRecord = Depends(get_current_user),
    event_log: EventLog = Depends(get_event_log),
):
    """Download the event log as JSON or CSV."""
    if format == "csv":
        content, media_type = event_log.to_csv(), "text/csv"
    else:
        content, media_type = event_log.to_json(), "application/json"

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="events.{format}"'},
    )


@router.delete("/events")
async def clear_events(
    current_user: UserRecord = Depends(get_current_user),
    event_log: EventLog = Depends(get_event_log),
):
    """Empty the event log."""
    cleared = len(event_log.events())
    event_log.clear()
    logger.info(f"Event log cleared by user {current_user.id} ({cleared} events)")
    return {"success": True, "cleared": cleared}
