"""
User account API endpoints
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from presence_monitor.api.dependencies import get_current_user, get_user_service
from presence_monitor.core.models import UserRecord
from presence_monitor.services.user_service import UserService

logger = logging.getLogger(__name__)
router = APIRouter()


# Request models
class SignupRequest(BaseModel):
    """New account details."""

    email: str = Field(..., min_length=3, description="Login email")
    password: str = Field(..., min_length=1, description="Password")
    name: str = Field(default="", description="Display name")


class LoginRequest(BaseModel):
    email: str
    password: str


class SettingsUpdate(BaseModel):
    """Partial settings update; unknown keys are stored as-is."""

    model_config = ConfigDict(extra="allow")

    notifications_enabled: Optional[bool] = Field(default=None)
    alert_threshold: Optional[float] = Field(default=None, ge=0, le=100)


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(body: SignupRequest, user_service: UserService = Depends(get_user_service)):
    """Create a user with default settings."""
    user = await user_service.signup(body.email, body.password, body.name)
    return {"success": True, "user": user.to_dict()}


@router.post("/login")
async def login(body: LoginRequest, user_service: UserService = Depends(get_user_service)):
    """Exchange credentials for a bearer token."""
    result = await user_service.login(body.email, body.password)
    return {"success": True, **result}


@router.get("/user/profile")
async def get_profile(current_user: UserRecord = Depends(get_current_user)):
    """Get the authenticated user's record."""
    return {"success": True, "user": current_user.to_dict()}


@router.put("/user/settings")
async def update_settings(
    body: SettingsUpdate,
    current_user: UserRecord = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """Merge-update the authenticated user's settings."""
    patch: Dict[str, Any] = body.model_dump(exclude_none=True)
    user = await user_service.update_settings(current_user.id, patch)
    return {"success": True, "user": user.to_dict()}
