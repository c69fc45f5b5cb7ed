"""Authentication router (Telegram login and token refresh endpoints)."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Cookie, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tea_api.config.settings import settings
from tea_api.database.dependencies import get_db_session

from .exceptions import RefreshTokenMissingException
from .schemas import IssuedRefreshToken, MiniAppInitRequest, TelegramLoginRequest, TokenResponse, UserTokens
from .service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


def set_refresh_cookie(response: Response, refresh_token: IssuedRefreshToken) -> None:
    """Attach the refresh token as an HttpOnly cookie that expires with the token."""
    expires_at = refresh_token.claims.expires_at
    max_age = max(int((expires_at - datetime.now(UTC)).total_seconds()), 0)

    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token.signed_value,
        max_age=max_age,
        expires=expires_at,
        path=settings.refresh_cookie_path,
        secure=settings.refresh_cookie_secure,
        httponly=True,
        samesite="lax",
    )


def build_token_response(response: Response, tokens: UserTokens) -> TokenResponse:
    set_refresh_cookie(response, tokens.refresh_token)
    return TokenResponse(
        access_token=tokens.access_token.signed_value,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post("", response_model=TokenResponse)
async def login(data: TelegramLoginRequest, response: Response, session: AsyncSession = Depends(get_db_session)):
    """Login with a Telegram login widget payload.

    - **id**, **first_name**, **auth_date**, **hash**: required Telegram fields
    - **last_name**, **username**, **photo_url**: optional Telegram fields

    Returns an access token; the refresh token is set as an HttpOnly cookie.
    A user record is created on the first successful login.
    """
    tokens = await AuthService.authenticate_telegram_user(
        session, data, settings.telegram_bot_token, settings.jwt_secret_key
    )
    await session.commit()
    return build_token_response(response, tokens)


@router.post("/mini-app", response_model=TokenResponse)
async def login_mini_app(
    data: MiniAppInitRequest, response: Response, session: AsyncSession = Depends(get_db_session)
):
    """Login with Telegram Mini App init data.

    - **initData**: the raw init data string passed to the Mini App

    Same response as the widget login.
    """
    tokens = await AuthService.authenticate_mini_app_user(
        session, data.init_data, settings.telegram_bot_token, settings.jwt_secret_key
    )
    await session.commit()
    return build_token_response(response, tokens)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    response: Response,
    session: AsyncSession = Depends(get_db_session),
    refresh_cookie: str | None = Cookie(default=None, alias=settings.refresh_cookie_name),
):
    """Rotate the session using the refresh token cookie.

    The refresh token is read from the cookie only. Each refresh token can be
    exchanged once; the response carries a new access token and re-sets the cookie.
    """
    if not refresh_cookie:
        raise RefreshTokenMissingException()

    tokens = await AuthService.refresh_tokens(session, refresh_cookie, settings.jwt_secret_key)
    await session.commit()
    return build_token_response(response, tokens)
