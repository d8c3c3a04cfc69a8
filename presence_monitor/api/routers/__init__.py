"""
API routers
"""

from . import alerts, dashboard, events, health, metrics, rules, users

__all__ = ["alerts", "dashboard", "events", "health", "metrics", "rules", "users"]
