"""
Dependency injection for the Presence Monitor API
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials

from presence_monitor.config.settings import Settings
from presence_monitor.core.exceptions import UnauthorizedError
from presence_monitor.core.models import UserRecord
from presence_monitor.logger import user_id_var
from presence_monitor.middleware.auth import security
from presence_monitor.sensing.event_log import EventLog
from presence_monitor.sensing.rule_store import RuleStore
from presence_monitor.services.alert_service import AlertService
from presence_monitor.services.dashboard_service import DashboardService
from presence_monitor.services.metrics_service import MetricsService
from presence_monitor.services.orchestrator import ServiceOrchestrator
from presence_monitor.services.user_service import UserService

logger = logging.getLogger(__name__)


def get_orchestrator(request: Request) -> ServiceOrchestrator:
    """Get the service orchestrator created at startup."""
    return request.app.state.orchestrator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# Service dependencies
def get_metrics_service(orchestrator: ServiceOrchestrator = Depends(get_orchestrator)) -> MetricsService:
    return orchestrator.metrics_service


def get_alert_service(orchestrator: ServiceOrchestrator = Depends(get_orchestrator)) -> AlertService:
    return orchestrator.alert_service


def get_dashboard_service(orchestrator: ServiceOrchestrator = Depends(get_orchestrator)) -> DashboardService:
    return orchestrator.dashboard_service


def get_user_service(orchestrator: ServiceOrchestrator = Depends(get_orchestrator)) -> UserService:
    return orchestrator.user_service


def get_rule_store(orchestrator: ServiceOrchestrator = Depends(get_orchestrator)) -> RuleStore:
    return orchestrator.rule_store


def get_event_log(orchestrator: ServiceOrchestrator = Depends(get_orchestrator)) -> EventLog:
    return orchestrator.event_log


# Authentication dependencies
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    user_service: UserService = Depends(get_user_service),
) -> UserRecord:
    """Resolve the bearer token to a user, or fail with 401."""
    if not credentials or not credentials.credentials:
        raise UnauthorizedError("Authentication required")

    user = await user_service.user_from_token(credentials.credentials)
    user_id_var.set(user.id)
    return user
