"""Authentication dependencies for FastAPI.

Two stages guard the routes:

* ``authenticate(required)`` decodes the bearer access token, validates its
  claims and stores them on the request scope.
* ``require_role(...)`` / ``require_admin`` depend on the required stage, so
  FastAPI always resolves authentication first and the role check can never
  see a request without claims.
"""

import logging

from fastapi import Depends, Request
from fastapi.security import HTTPBearer

from tea_api.config.settings import settings
from tea_api.features.user.models import UserRole

from .exceptions import InsufficientPermissionsException, InvalidTokenException, TokenExpiredException
from .jwt_utils import TokenError, TokenExpiredError, decode_token, validate_access_claims
from .schemas import AccessTokenClaims

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

# Declares the scheme in OpenAPI; the header itself is parsed below
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str, secret: str | None = None) -> AccessTokenClaims:
    """Decode a bearer token and validate it as an access token.

    Raises:
        TokenExpiredException: If the token has expired
        InvalidTokenException: For any other signature, decoding or claims failure

    """
    try:
        payload = decode_token(token, secret or settings.jwt_secret_key, settings.jwt_algorithm)
        return validate_access_claims(payload)
    except TokenExpiredError as err:
        raise TokenExpiredException() from err
    except TokenError as err:
        logger.info(f"Rejected access token: {err}")
        raise InvalidTokenException() from err


def get_request_claims(request: Request) -> AccessTokenClaims | None:
    """Claims attached by the authentication stage, or None for anonymous requests."""
    claims = getattr(request.state, "user_claims", None)
    return claims if isinstance(claims, AccessTokenClaims) else None


def authenticate(required: bool = True):
    """Dependency factory for the authentication stage.

    Usage:
        # Reject anonymous callers
        Depends(get_current_claims)

        # Let anonymous callers through with None
        Depends(get_optional_claims)

    A present but invalid ``Authorization`` header is rejected even when
    authentication is optional.
    """

    async def authenticator(
        request: Request,
        _credentials=Depends(bearer_scheme),
    ) -> AccessTokenClaims | None:
        auth_header = request.headers.get("Authorization")

        if not auth_header:
            if not required:
                return None
            raise InvalidTokenException()

        if not auth_header.startswith(BEARER_PREFIX):
            raise InvalidTokenException()

        token = auth_header[len(BEARER_PREFIX) :].strip()
        if not token:
            raise InvalidTokenException()

        claims = decode_access_token(token)
        request.state.user_claims = claims
        return claims

    return authenticator


get_current_claims = authenticate(required=True)
get_optional_claims = authenticate(required=False)


def require_role(*required_roles: UserRole):
    """Dependency factory to require specific roles.

    Usage:
        Depends(require_role(UserRole.ADMIN))
    """

    async def role_checker(claims: AccessTokenClaims = Depends(get_current_claims)) -> AccessTokenClaims:
        if claims.role not in required_roles:
            logger.warning(
                f"User {claims.id} with role {claims.role.value} denied, "
                f"requires {[r.value for r in required_roles]}"
            )
            raise InsufficientPermissionsException()
        return claims

    return role_checker


require_admin = require_role(UserRole.ADMIN)
