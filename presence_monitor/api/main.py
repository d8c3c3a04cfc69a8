"""
FastAPI application for the Presence Monitor API
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from presence_monitor.api.routers import alerts, dashboard, events, health, metrics, rules, users
from presence_monitor.config.settings import Settings, get_settings
from presence_monitor.database.kv_store import KVStore
from presence_monitor.logger import set_request_context, setup_logging, user_id_var
from presence_monitor.middleware.error_handler import setup_error_handling
from presence_monitor.services.orchestrator import ServiceOrchestrator

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KVStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """
    Build the application.

    ``store`` and ``clock`` replace the configured key-value backend and the
    wall clock; tests use them to run against a fixed time and a private
    in-memory store.
    """
    settings = settings or get_settings()
    if not settings.is_testing:
        setup_logging(settings)

    orchestrator = ServiceOrchestrator(settings, store=store, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info(f"Starting {settings.app_name}...")
        try:
            await orchestrator.initialize()
            await orchestrator.start()
            app.state.started_at = time.monotonic()
            logger.info(f"{settings.app_name} started successfully")
            yield
        except Exception as e:
            logger.error(f"Failed to start application: {e}")
            raise
        finally:
            logger.info(f"Shutting down {settings.app_name}...")
            await orchestrator.shutdown()
            logger.info(f"{settings.app_name} shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="Presence monitoring from wireless sensing devices: sample capture, alerts and analytics",
        docs_url=settings.docs_url if not settings.is_production else None,
        redoc_url=settings.redoc_url if not settings.is_production else None,
        openapi_url=settings.openapi_url if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(CORSMiddleware, **settings.get_cors_config())

    # Add trusted host middleware for production
    if settings.is_production:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    setup_error_handling(app, settings)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests."""
        request_id = set_request_context(request.headers.get("X-Request-ID"))
        user_id_var.set(None)
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.3f}s"
        )
        response.headers["X-Process-Time"] = f"{process_time:.6f}"
        response.headers["X-Request-ID"] = request_id
        return response

    prefix = settings.api_prefix
    app.include_router(health.router, tags=["Health"])
    app.include_router(users.router, prefix=prefix, tags=["Users"])
    app.include_router(metrics.router, prefix=prefix, tags=["Metrics"])
    app.include_router(alerts.router, prefix=prefix, tags=["Alerts"])
    app.include_router(dashboard.router, prefix=prefix, tags=["Dashboard"])
    app.include_router(rules.router, prefix=prefix, tags=["Alert Rules"])
    app.include_router(events.router, prefix=prefix, tags=["Events"])

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "success": True,
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.environment,
            "docs_url": settings.docs_url,
            "api_prefix": prefix,
            "features": {
                "mqtt_listener": settings.mqtt_enabled,
                "store_backend": settings.store_backend,
            },
        }

    if settings.enable_test_endpoints and not settings.is_production:
        @app.get(f"{prefix}/dev/status")
        async def dev_status():
            """Service status (development only)."""
            return {"success": True, "services": await orchestrator.get_service_status()}

    return app
