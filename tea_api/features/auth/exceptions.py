"""Authentication exceptions.

Client-facing details stay generic wherever a more specific message would
tell an attacker why a credential was rejected. The specific reason goes to
the server log instead.
"""

from fastapi import HTTPException, status

NOT_AUTHORIZED = "User is not authorized"


class AuthenticationException(HTTPException):
    """Base authentication exception."""

    def __init__(self, detail: str = NOT_AUTHORIZED):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InvalidTokenException(AuthenticationException):
    """Raised when a bearer or refresh token is missing, malformed or forged."""

    def __init__(self, detail: str = NOT_AUTHORIZED):
        super().__init__(detail=detail)


class TokenExpiredException(InvalidTokenException):
    """Raised when the access token has expired."""

    def __init__(self):
        super().__init__(detail="Access token is expired")


class RefreshTokenMissingException(AuthenticationException):
    """Raised when the refresh endpoint is called without the refresh cookie."""

    def __init__(self):
        super().__init__(detail="Refresh token is missing")


class RefreshTokenExpiredException(InvalidTokenException):
    """Raised when the refresh token has expired."""

    def __init__(self):
        super().__init__(detail="Refresh token is expired")


class RefreshTokenRevokedException(InvalidTokenException):
    """Raised when the refresh token's jti is no longer the stored one."""

    def __init__(self):
        super().__init__()


class TelegramVerificationException(HTTPException):
    """Raised when the Telegram login payload fails verification."""

    def __init__(self):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_AUTHORIZED)


class InvalidInitDataException(HTTPException):
    """Raised when Mini App init data cannot be unpacked."""

    def __init__(self):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid init data")


class InsufficientPermissionsException(HTTPException):
    """Raised when user lacks the required role."""

    def __init__(self, detail: str = "User does not have admin permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class AuthConfigurationException(HTTPException):
    """Raised when the server is missing auth configuration (e.g. the bot token)."""

    def __init__(self):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
