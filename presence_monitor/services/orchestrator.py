"""
Service orchestrator for the Presence Monitor API
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from presence_monitor.config.settings import Settings
from presence_monitor.database.connection import StoreManager
from presence_monitor.database.kv_store import KVStore
from presence_monitor.middleware.auth import TokenManager
from presence_monitor.sensing.event_log import EventLog
from presence_monitor.sensing.mqtt_listener import MqttSampleListener, SensingPipeline
from presence_monitor.sensing.rule_store import RuleStore
from presence_monitor.services.alert_service import AlertService
from presence_monitor.services.dashboard_service import DashboardService
from presence_monitor.services.metrics_service import MetricsService
from presence_monitor.services.user_service import UserService

logger = logging.getLogger(__name__)


class ServiceOrchestrator:
    """Wires the store, services, rule config and transport listener together."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[KVStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.clock = clock or datetime.now
        self.store_manager = StoreManager(settings)
        self._injected_store = store
        self._initialized = False
        self._started = False

        self.store: Optional[KVStore] = None
        self.metrics_service: Optional[MetricsService] = None
        self.alert_service: Optional[AlertService] = None
        self.dashboard_service: Optional[DashboardService] = None
        self.user_service: Optional[UserService] = None
        self.token_manager = TokenManager(settings)
        self.rule_store = RuleStore(settings.rules_file)
        self.event_log = EventLog(settings.event_log_size)
        self.pipeline: Optional[SensingPipeline] = None
        self.listener: Optional[MqttSampleListener] = None

    async def initialize(self):
        """Initialize all services."""
        if self._initialized:
            logger.warning("Services already initialized")
            return

        logger.info("Initializing services...")

        if self._injected_store is not None:
            self.store = self._injected_store
        else:
            await self.store_manager.initialize()
            self.store = self.store_manager.store

        self.metrics_service = MetricsService(self.settings, self.store, clock=self.clock)
        self.alert_service = AlertService(self.settings, self.store, clock=self.clock)
        self.dashboard_service = DashboardService(
            self.settings,
            self.store,
            self.metrics_service,
            self.alert_service,
            clock=self.clock,
        )
        self.user_service = UserService(self.settings, self.store, self.token_manager, clock=self.clock)

        self.rule_store.load()
        self.pipeline = SensingPipeline(
            self.settings,
            self.metrics_service,
            self.alert_service,
            self.rule_store,
            self.event_log,
            clock=self.clock,
        )
        self.listener = MqttSampleListener(self.settings, self.pipeline)

        self._initialized = True
        logger.info("All services initialized successfully")

    async def start(self, with_listener: Optional[bool] = None):
        """Start background work; the MQTT listener runs when enabled."""
        if not self._initialized:
            await self.initialize()

        if self._started:
            logger.warning("Services already started")
            return

        if with_listener is None:
            with_listener = self.settings.mqtt_enabled
        if with_listener:
            self.listener.start()
            logger.info(f"MQTT listener started on {self.settings.mqtt_host}:{self.settings.mqtt_port}")

        self._started = True

    async def shutdown(self):
        """Shutdown all services and cleanup resources."""
        logger.info("Shutting down services...")

        if self.listener is not None:
            await self.listener.stop()

        if self._injected_store is None:
            await self.store_manager.close()

        self._started = False
        self._initialized = False
        logger.info("All services shut down successfully")

    async def get_service_status(self) -> Dict[str, Any]:
        """Get status of all services."""
        services = {
            "metrics": self.metrics_service,
            "alerts": self.alert_service,
            "listener": self.listener,
        }
        status = {}
        for name, service in services.items():
            if service is None:
                status[name] = {"status": "unavailable"}
                continue
            try:
                status[name] = await service.get_status()
            except Exception as e:
                status[name] = {"status": "error", "error": str(e)}
        return status

    async def store_health(self) -> Dict[str, Any]:
        if self._injected_store is not None:
            try:
                await self.store.ping()
                return {"status": "healthy", "details": {"backend": self.store.backend}}
            except Exception as e:
                return {"status": "unhealthy", "details": {"error": str(e)}}
        return await self.store_manager.health_check()

    @property
    def is_healthy(self) -> bool:
        return self._initialized

    @asynccontextmanager
    async def service_context(self, with_listener: Optional[bool] = None):
        """Context manager for service lifecycle."""
        try:
            await self.initialize()
            await self.start(with_listener=with_listener)
            yield self
        finally:
            await self.shutdown()
