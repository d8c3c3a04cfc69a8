"""
Presence Monitor
================

Presence monitoring from wireless sensing devices.

This package provides:
- Sample capture with derived presence signals
- Alert triggers and a time-windowed alert rule engine
- Per-user alert lifecycle and history
- Analytics, dashboards and chart data
- An MQTT listener for device state messages

Example usage:
    >>> from presence_monitor.api import create_app
    >>> from presence_monitor.config import get_settings
    >>>
    >>> app = create_app(get_settings())
    >>> # Run with: uvicorn presence_monitor.api.main:create_app --factory

For CLI usage:
    $ presence-monitor start --host 0.0.0.0 --port 8000
    $ presence-monitor listen
    $ presence-monitor rules list
"""

__version__ = "1.0.0"
__title__ = "presence-monitor"
__description__ = "Presence monitoring API for wireless sensing devices"

# Version info tuple
__version_info__ = tuple(int(x) for x in __version__.split('.'))


def get_version() -> str:
    """Get the package version."""
    return __version__


__all__ = ['__version__', '__version_info__', 'get_version']
