"""
User accounts and settings for the Presence Monitor API
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from presence_monitor.config.settings import Settings
from presence_monitor.core.exceptions import ConflictError, MalformedInputError, NotFoundError, UnauthorizedError
from presence_monitor.core.models import UserRecord, UserSettings
from presence_monitor.database import keys
from presence_monitor.database.kv_store import KVStore
from presence_monitor.middleware.auth import TokenManager, hash_password, verify_password

logger = logging.getLogger(__name__)


class UserService:
    """Signup, login and per-user settings."""

    def __init__(
        self,
        settings: Settings,
        store: KVStore,
        token_manager: Optional[TokenManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.store = store
        self.token_manager = token_manager or TokenManager(settings)
        self.clock = clock or datetime.now
        self._signup_lock = asyncio.Lock()

    async def signup(self, email: str, password: str, name: str = "") -> UserRecord:
        """Create a user with default settings."""
        email = (email or "").strip().lower()
        if not email or not password:
            raise MalformedInputError("Email and password are required")

        async with self._signup_lock:
            if await self.store.get(keys.user_email_key(email)) is not None:
                raise ConflictError("A user with this email already exists", {"email": email})

            user = UserRecord(
                id=uuid.uuid4().hex,
                email=email,
                name=name or "",
                created_at=self.clock(),
                settings=UserSettings(),
                password_hash=hash_password(password),
            )
            await self.store.set_many({
                keys.user_key(user.id): user.to_dict(include_secret=True),
                keys.user_email_key(email): user.id,
            })

        logger.info(f"User {user.id} signed up")
        return user

    async def authenticate(self, email: str, password: str) -> UserRecord:
        """Check credentials and return the matching user."""
        user_id = await self.store.get(keys.user_email_key(email or ""))
        user = await self._load(user_id) if user_id else None

        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login attempt")
            raise UnauthorizedError("Invalid email or password")
        return user

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Authenticate and issue an access token."""
        user = await self.authenticate(email, password)
        return {
            "access_token": self.token_manager.create_access_token(user.id, {"email": user.email}),
            "token_type": "bearer",
            "expires_in": self.token_manager.expires_in,
            "user": user.to_dict(),
        }

    async def _load(self, user_id: str) -> Optional[UserRecord]:
        record = await self.store.get(keys.user_key(user_id))
        return UserRecord.from_dict(record) if record else None

    async def get_user(self, user_id: str) -> UserRecord:
        user = await self._load(user_id)
        if user is None:
            raise NotFoundError("User not found", {"user_id": user_id})
        return user

    async def user_from_token(self, token: str) -> UserRecord:
        """Resolve a bearer token to its user."""
        user_id = self.token_manager.user_id_from_token(token)
        user = await self._load(user_id)
        if user is None:
            raise UnauthorizedError("User not found")
        return user

    async def update_settings(self, user_id: str, patch: Dict[str, Any]) -> UserRecord:
        """Merge ``patch`` into the user's settings."""
        user = await self.get_user(user_id)
        user.settings = user.settings.merged(patch)
        user.updated_at = self.clock()
        await self.store.set(keys.user_key(user_id), user.to_dict(include_secret=True))

        logger.info(f"Settings updated for user {user_id}")
        return user
