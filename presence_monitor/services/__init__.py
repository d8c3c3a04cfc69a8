"""
Services package for the Presence Monitor API
"""

from .metrics_service import MetricsService
from .alert_service import AlertService
from .dashboard_service import DashboardService
from .user_service import UserService

__all__ = ["MetricsService", "AlertService", "DashboardService", "UserService"]