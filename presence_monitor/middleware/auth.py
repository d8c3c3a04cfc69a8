"""
Token and password handling for the Presence Monitor API
"""

import logging
from typing import Optional, Dict, Any
from datetime import datetime, timedelta, timezone

from fastapi.security import HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from presence_monitor.config.settings import Settings
from presence_monitor.core.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Bearer token extraction; missing headers are reported by get_current_user
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


class TokenManager:
    """JWT token management."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.secret_key = settings.secret_key
        self.algorithm = settings.jwt_algorithm
        self.expire_hours = settings.jwt_expire_hours

    @property
    def expires_in(self) -> int:
        return self.expire_hours * 3600

    def create_access_token(self, user_id: str, extra_claims: Optional[Dict[str, Any]] = None) -> str:
        """Create JWT access token for a user."""
        now = datetime.now(timezone.utc)
        to_encode = dict(extra_claims or {})
        to_encode.update({
            "sub": user_id,
            "iat": now,
            "exp": now + timedelta(hours=self.expire_hours),
        })
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Verify and decode JWT token."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise UnauthorizedError("Invalid or expired token")

        if not payload.get("sub"):
            raise UnauthorizedError("Invalid token payload")
        return payload

    def user_id_from_token(self, token: str) -> str:
        return self.verify_token(token)["sub"]
