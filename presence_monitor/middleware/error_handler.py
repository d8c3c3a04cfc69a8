"""
Global error handling for the Presence Monitor API

Every failure reaches the client as ``{"success": false, "error": "..."}``
with a matching HTTP status.
"""

import logging
import traceback
from typing import Dict, Any, Optional

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from presence_monitor.config.settings import Settings
from presence_monitor.core.exceptions import PresenceMonitorError
from presence_monitor.logger import get_request_context

logger = logging.getLogger(__name__)


class ErrorResponse:
    """Standardized error response format."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
        request_id: Optional[str] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        self.request_id = request_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        response = {
            "success": False,
            "error": self.message,
            "code": self.error_code,
        }

        if self.details:
            response["details"] = self.details

        if self.request_id:
            response["request_id"] = self.request_id

        return response

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse."""
        headers = {}
        if self.request_id:
            headers["X-Request-ID"] = self.request_id

        return JSONResponse(
            status_code=self.status_code,
            content=self.to_dict(),
            headers=headers
        )


class ErrorHandler:
    """Central error handler for the application."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.include_traceback = settings.debug and settings.is_development

    def _request_id(self) -> Optional[str]:
        return get_request_context().get("request_id")

    def handle_domain_error(self, request: Request, exc: PresenceMonitorError) -> ErrorResponse:
        """Handle errors raised by the services."""
        request_id = self._request_id()

        if exc.status_code >= 500:
            logger.error(
                f"{type(exc).__name__}: {exc.message} - "
                f"{request.method} {request.url.path} - "
                f"Request ID: {request_id}",
                exc_info=exc.__cause__ is not None,
            )
            message = "Internal server error" if self.settings.is_production else exc.message
        else:
            logger.warning(f"{exc.error_code}: {exc.message} - {request.method} {request.url.path}")
            message = exc.message

        return ErrorResponse(
            error_code=exc.error_code,
            message=message,
            status_code=exc.status_code,
            request_id=request_id
        )

    def handle_http_exception(self, request: Request, exc: StarletteHTTPException) -> ErrorResponse:
        """Handle HTTP exceptions."""
        request_id = self._request_id()
        logger.warning(
            f"HTTP {exc.status_code}: {exc.detail} - "
            f"{request.method} {request.url.path} - "
            f"Request ID: {request_id}"
        )

        return ErrorResponse(
            error_code=self._get_error_code_for_status(exc.status_code),
            message=str(exc.detail),
            status_code=exc.status_code,
            request_id=request_id
        )

    def handle_validation_error(self, request: Request, exc: RequestValidationError) -> ErrorResponse:
        """Handle request validation errors as malformed input."""
        request_id = self._request_id()
        logger.warning(f"Validation error: {exc.errors()} - {request.method} {request.url.path}")

        validation_details = []
        for error in exc.errors():
            validation_details.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            })

        first = validation_details[0] if validation_details else None
        message = f"Invalid {first['field']}: {first['message']}" if first else "Malformed request"

        return ErrorResponse(
            error_code="MALFORMED_INPUT",
            message=message,
            details={"validation_errors": validation_details},
            status_code=status.HTTP_400_BAD_REQUEST,
            request_id=request_id
        )

    def handle_generic_exception(self, request: Request, exc: Exception) -> ErrorResponse:
        """Handle generic exceptions."""
        request_id = self._request_id()
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc} - "
            f"{request.method} {request.url.path} - "
            f"Request ID: {request_id}",
            exc_info=True
        )

        details = {}
        if self.include_traceback:
            details["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)

        # Don't expose internal error details in production
        if self.settings.is_production:
            message = "An internal server error occurred"
        else:
            message = str(exc) or "An unexpected error occurred"

        return ErrorResponse(
            error_code="INTERNAL_SERVER_ERROR",
            message=message,
            details=details,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id
        )

    def _get_error_code_for_status(self, status_code: int) -> str:
        """Get error code for HTTP status code."""
        error_codes = {
            400: "BAD_REQUEST",
            401: "UNAUTHORIZED",
            403: "FORBIDDEN",
            404: "NOT_FOUND",
            405: "METHOD_NOT_ALLOWED",
            409: "CONFLICT",
            422: "UNPROCESSABLE_ENTITY",
            500: "INTERNAL_SERVER_ERROR",
            503: "SERVICE_UNAVAILABLE",
        }

        return error_codes.get(status_code, "HTTP_ERROR")


def setup_error_handling(app: FastAPI, settings: Settings):
    """Setup error handling for the application."""
    error_handler = ErrorHandler(settings)

    @app.exception_handler(PresenceMonitorError)
    async def domain_exception_handler(request: Request, exc: PresenceMonitorError):
        return error_handler.handle_domain_error(request, exc).to_response()

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return error_handler.handle_http_exception(request, exc).to_response()

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_handler.handle_http_exception(request, exc).to_response()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_handler.handle_validation_error(request, exc).to_response()

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        return error_handler.handle_generic_exception(request, exc).to_response()

    logger.info("Error handling configured")
