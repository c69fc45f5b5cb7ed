"""Authentication service layer."""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tea_api.config.settings import settings
from tea_api.features.user.exceptions import UserNotFound
from tea_api.features.user.models import User
from tea_api.features.user.service import UserService

from .exceptions import (
    AuthConfigurationException,
    InvalidInitDataException,
    InvalidTokenException,
    RefreshTokenExpiredException,
    RefreshTokenRevokedException,
    TelegramVerificationException,
)
from .jwt_utils import (
    TokenError,
    TokenExpiredError,
    create_access_token,
    create_refresh_token,
    decode_token,
    validate_refresh_claims,
)
from .schemas import TelegramLoginRequest, UserTokens
from .telegram import (
    TelegramAuthError,
    TelegramConfigurationError,
    TelegramInitDataError,
    check_auth_date,
    parse_mini_app_init_data,
    verify_login_payload,
)

logger = logging.getLogger(__name__)


class AuthService:
    """Service for Telegram login and JWT session management."""

    @staticmethod
    def verify_telegram_payload(payload: TelegramLoginRequest, bot_token: str) -> None:
        """Verify signature and freshness of a Telegram login payload.

        Raises:
            AuthConfigurationException: If the bot token is not configured
            TelegramVerificationException: If the payload is forged or stale

        """
        try:
            verify_login_payload(payload, bot_token)
            check_auth_date(payload, settings.telegram_auth_max_age_seconds)
        except TelegramConfigurationError as err:
            logger.error(f"Telegram login rejected: {err}")
            raise AuthConfigurationException() from err
        except TelegramAuthError as err:
            logger.warning(f"Telegram verification failed for telegram_id={payload.id}: {err}")
            raise TelegramVerificationException() from err

    @staticmethod
    async def issue_tokens(
        session: AsyncSession, user: User, jwt_secret: str, rotate_from: UUID | None = None
    ) -> UserTokens:
        """Create an access/refresh pair and persist the new refresh jti.

        Args:
            session: Database session
            user: User the tokens are issued for
            jwt_secret: HMAC signing key
            rotate_from: jti of the refresh token being exchanged. When given,
                the stored identifier is only replaced if it still equals this
                value; otherwise it is overwritten unconditionally (login).

        Returns:
            UserTokens with both signed tokens and their claims

        Raises:
            RefreshTokenRevokedException: If a concurrent rotation already
                replaced ``rotate_from``

        """
        access_token = create_access_token(
            user,
            jwt_secret,
            timedelta(minutes=settings.access_token_expire_minutes),
            settings.jwt_algorithm,
        )
        refresh_token = create_refresh_token(
            user.id,
            jwt_secret,
            timedelta(days=settings.refresh_token_expire_days),
            settings.jwt_algorithm,
        )
        new_jti = refresh_token.claims.jti

        if rotate_from is None:
            await UserService.save_refresh_token_id(session, user.id, new_jti)
        else:
            swapped = await UserService.rotate_refresh_token_id(session, user.id, rotate_from, new_jti)
            if not swapped:
                logger.warning(f"Refresh token for user {user.id} was rotated concurrently")
                raise RefreshTokenRevokedException()

        return UserTokens(access_token=access_token, refresh_token=refresh_token)

    @staticmethod
    async def authenticate_telegram_user(
        session: AsyncSession, payload: TelegramLoginRequest, bot_token: str, jwt_secret: str
    ) -> UserTokens:
        """Log a user in with a Telegram login payload.

        Users are provisioned on their first successful login; there is no
        separate registration step.

        Args:
            session: Database session
            payload: Untrusted Telegram login payload
            bot_token: Telegram bot token (shared secret)
            jwt_secret: HMAC signing key

        Returns:
            UserTokens for the (possibly new) user

        """
        AuthService.verify_telegram_payload(payload, bot_token)

        if not await UserService.exists_by_telegram_id(session, payload.id):
            await UserService.create(
                session,
                telegram_id=payload.id,
                first_name=payload.first_name,
                last_name=payload.last_name,
                username=payload.username,
            )

        # Re-read so server-side defaults of a freshly created row are in place
        user = await UserService.get_by_telegram_id(session, payload.id)
        if user is None:
            raise RuntimeError(f"User with telegram_id={payload.id} vanished during login")

        tokens = await AuthService.issue_tokens(session, user, jwt_secret)
        logger.info(f"User logged in via Telegram: {user.id}")
        return tokens

    @staticmethod
    async def authenticate_mini_app_user(
        session: AsyncSession, init_data: str, bot_token: str, jwt_secret: str
    ) -> UserTokens:
        """Log a user in with Telegram Mini App init data."""
        try:
            payload = parse_mini_app_init_data(init_data)
        except TelegramInitDataError as err:
            logger.warning(f"Rejected Mini App init data: {err}")
            raise InvalidInitDataException() from err

        return await AuthService.authenticate_telegram_user(session, payload, bot_token, jwt_secret)

    @staticmethod
    async def refresh_tokens(session: AsyncSession, refresh_token: str, jwt_secret: str) -> UserTokens:
        """Exchange a refresh token for a new access/refresh pair.

        The presented token is single-use: its jti must equal the identifier
        stored on the user, and a successful exchange replaces that identifier.

        Raises:
            RefreshTokenExpiredException: If the token has expired
            InvalidTokenException: If the token is forged, malformed or of the wrong shape
            RefreshTokenRevokedException: If the jti is not (or no longer) the stored one
            UserNotFound: If the user no longer exists

        """
        try:
            payload = decode_token(refresh_token, jwt_secret, settings.jwt_algorithm)
            claims = validate_refresh_claims(payload)
        except TokenExpiredError as err:
            raise RefreshTokenExpiredException() from err
        except TokenError as err:
            logger.warning(f"Rejected refresh token: {err}")
            raise InvalidTokenException() from err

        if not await UserService.is_refresh_token_current(session, claims.id, claims.jti):
            logger.warning(f"Refresh token for user {claims.id} is not the current one")
            raise RefreshTokenRevokedException()

        user = await UserService.get_by_id(session, claims.id)
        if user is None:
            raise UserNotFound()

        tokens = await AuthService.issue_tokens(session, user, jwt_secret, rotate_from=claims.jti)
        logger.info(f"Tokens refreshed for user {user.id}")
        return tokens
