"""User router (API endpoints)."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tea_api.database.dependencies import get_db_session
from tea_api.features.auth.dependencies import get_current_claims, require_admin
from tea_api.features.auth.schemas import AccessTokenClaims

from .exceptions import UserNotFound
from .schemas import CurrentUserResponse, MessageResponse, UserResponse
from .service import UserService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_info(claims: AccessTokenClaims = Depends(get_current_claims)):
    """Get the caller's identity from their access token."""
    return CurrentUserResponse(
        id=claims.id,
        first_name=claims.first_name,
        username=claims.username,
        role=claims.role,
        expires_at=claims.expires_at,
    )


# Admin endpoints
@router.get("/{user_id}", response_model=UserResponse, dependencies=[Depends(require_admin)])
async def get_user(user_id: UUID, session: AsyncSession = Depends(get_db_session)):
    """Get user by ID (admin only)."""
    user = await UserService.get_by_id(session, user_id)

    if not user:
        raise UserNotFound()

    return UserResponse.model_validate(user)


@router.delete("/{user_id}/session", response_model=MessageResponse)
async def revoke_user_session(
    user_id: UUID,
    admin: AccessTokenClaims = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Revoke a user's session (admin only).

    Clears the stored refresh token identifier, so the user's current refresh
    token stops working. Access tokens already issued stay valid until they expire.
    """
    revoked = await UserService.clear_refresh_token_id(session, user_id)

    if not revoked:
        raise UserNotFound()

    await session.commit()
    logger.info(f"Session of user {user_id} revoked by admin {admin.id}")
    return MessageResponse(message="Session revoked")
