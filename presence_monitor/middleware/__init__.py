"""
Middleware package for the Presence Monitor API
"""

from .auth import TokenManager, hash_password, verify_password
from .error_handler import ErrorHandler, ErrorResponse, setup_error_handling

__all__ = [
    "TokenManager",
    "hash_password",
    "verify_password",
    "ErrorHandler",
    "ErrorResponse",
    "setup_error_handling",
]
