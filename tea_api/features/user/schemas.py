"""User schemas (DTOs)."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .models import UserRole


class UserResponse(BaseModel):
    """User record as seen by administrators."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    telegram_id: int
    first_name: str
    last_name: str | None
    username: str | None
    is_admin: bool
    role: UserRole
    has_active_session: bool
    created_at: datetime
    updated_at: datetime


class CurrentUserResponse(BaseModel):
    """Identity of the caller, taken from the validated access token."""

    id: UUID
    first_name: str
    username: str
    role: UserRole
    expires_at: datetime


class MessageResponse(BaseModel):
    message: str
