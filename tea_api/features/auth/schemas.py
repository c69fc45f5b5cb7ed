"""Authentication schemas (DTOs and token claim sets)."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tea_api.features.user.models import UserRole


# Request schemas
class TelegramLoginRequest(BaseModel):
    """Payload produced by the Telegram login widget.

    Every declared field except ``hash`` takes part in the signed check string,
    so the field names must match Telegram's exactly. Optional fields default
    to the empty string and are then left out of the check string.
    """

    id: int = Field(..., gt=0, description="Telegram user id")
    first_name: str = Field(..., description="Telegram first name")
    last_name: str = Field("", description="Telegram last name (optional)")
    username: str = Field("", description="Telegram username (optional)")
    auth_date: int = Field(..., ge=0, description="Unix time of the authentication")
    photo_url: str = Field("", description="Profile photo URL (optional)")
    hash: str = Field(..., min_length=1, description="Hex HMAC-SHA256 signature of the other fields")


class MiniAppInitRequest(BaseModel):
    """Raw init data handed to a Telegram Mini App."""

    model_config = ConfigDict(populate_by_name=True)

    init_data: str = Field(..., alias="initData", min_length=1)


# Response schemas
class TokenResponse(BaseModel):
    """JWT token response. The refresh token is only ever sent as a cookie."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


# Token claims
class AccessTokenClaims(BaseModel):
    """Validated claims of an access token."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    first_name: str
    username: str
    role: UserRole
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class RefreshTokenClaims(BaseModel):
    """Validated claims of a refresh token. ``jti`` mirrors ``users.refresh_token_id``."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    jti: UUID
    expires_at: datetime


class IssuedAccessToken(BaseModel):
    signed_value: str
    claims: AccessTokenClaims


class IssuedRefreshToken(BaseModel):
    signed_value: str
    claims: RefreshTokenClaims


class UserTokens(BaseModel):
    """Access/refresh pair produced by login and by rotation."""

    access_token: IssuedAccessToken
    refresh_token: IssuedRefreshToken
