"""JWT utilities for authentication.

Encoding and decoding are claim-agnostic. A verified signature says nothing
about the shape of the payload, so every consumer must run the claim set
through ``validate_access_claims`` or ``validate_refresh_claims`` before it
trusts any field.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import jwt

from tea_api.features.user.models import User, UserRole

from .schemas import AccessTokenClaims, IssuedAccessToken, IssuedRefreshToken, RefreshTokenClaims

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

HMAC_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})


class TokenError(Exception):
    """Base class for token decoding and validation failures."""

    pass


class TokenExpiredError(TokenError):
    """Raised when a correctly signed token is past its expiry."""

    pass


class TokenSignatureError(TokenError):
    """Raised when the token MAC does not verify."""

    pass


class TokenMalformedError(TokenError):
    """Raised when the token cannot be decoded or uses an unexpected algorithm."""

    pass


class TokenClaimsError(TokenError):
    """Raised when a required claim is missing or has the wrong type."""

    pass


def _check_algorithm(algorithm: str) -> str:
    if algorithm not in HMAC_ALGORITHMS:
        raise ValueError(f"Unsupported token algorithm: {algorithm}")
    return algorithm


def encode_token(
    claims: dict[str, Any],
    secret: str,
    expires_delta: timedelta,
    token_type: str,
    algorithm: str = "HS256",
    now: datetime | None = None,
) -> str:
    """Sign a claim set.

    Args:
        claims: Payload data to encode in the token
        secret: HMAC signing key
        expires_delta: Lifetime of the token
        token_type: Value of the ``type`` claim ('access' or 'refresh')
        algorithm: HMAC algorithm name
        now: Issue instant (defaults to the current time)

    Returns:
        Encoded JWT token string

    """
    issued_at = now or datetime.now(UTC)

    to_encode = claims.copy()
    to_encode.update({"exp": issued_at + expires_delta, "iat": issued_at, "type": token_type})

    return jwt.encode(to_encode, secret, algorithm=_check_algorithm(algorithm))


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> dict[str, Any]:
    """Decode and verify a JWT token.

    Only the given HMAC algorithm is accepted, so tokens declaring ``none`` or
    an asymmetric algorithm are rejected before any key is used.

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If the token is past its expiry
        TokenSignatureError: If the signature does not verify
        TokenMalformedError: For any other decoding failure

    """
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[_check_algorithm(algorithm)],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError as err:
        raise TokenExpiredError("Token has expired") from err
    except jwt.InvalidSignatureError as err:
        raise TokenSignatureError("Token signature is invalid") from err
    except jwt.InvalidTokenError as err:
        raise TokenMalformedError(f"Token is invalid: {err}") from err


def _require(payload: dict[str, Any], key: str) -> Any:
    if key not in payload or payload[key] is None:
        raise TokenClaimsError(f"Invalid claims: {key} can not be null")
    return payload[key]


def _require_str(payload: dict[str, Any], key: str) -> str:
    value = _require(payload, key)
    if not isinstance(value, str):
        raise TokenClaimsError(f"Invalid claims: invalid {key}")
    return value


def _require_uuid(payload: dict[str, Any], key: str) -> UUID:
    value = _require_str(payload, key)
    try:
        return UUID(value)
    except ValueError as err:
        raise TokenClaimsError(f"Invalid claims: invalid {key}") from err


def _require_timestamp(payload: dict[str, Any], key: str) -> datetime:
    value = _require(payload, key)
    # bool is an int subclass and must not pass as a timestamp
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise TokenClaimsError(f"Invalid claims: invalid {key}")
    return datetime.fromtimestamp(value, UTC)


def _require_type(payload: dict[str, Any], expected_type: str) -> None:
    if payload.get("type") != expected_type:
        raise TokenClaimsError(f"Invalid claims: expected {expected_type} token")


def validate_access_claims(payload: dict[str, Any]) -> AccessTokenClaims:
    """Check presence and type of every access token claim.

    Raises:
        TokenClaimsError: If any required claim is absent or malformed

    """
    _require_type(payload, ACCESS_TOKEN_TYPE)

    role = _require_str(payload, "role")
    try:
        user_role = UserRole(role)
    except ValueError as err:
        raise TokenClaimsError("Invalid claims: invalid role") from err

    return AccessTokenClaims(
        id=_require_uuid(payload, "id"),
        first_name=_require_str(payload, "firstName"),
        username=_require_str(payload, "username"),
        role=user_role,
        expires_at=_require_timestamp(payload, "exp"),
    )


def validate_refresh_claims(payload: dict[str, Any]) -> RefreshTokenClaims:
    """Check presence and type of every refresh token claim.

    Raises:
        TokenClaimsError: If any required claim is absent or malformed

    """
    _require_type(payload, REFRESH_TOKEN_TYPE)

    return RefreshTokenClaims(
        id=_require_uuid(payload, "id"),
        jti=_require_uuid(payload, "jti"),
        expires_at=_require_timestamp(payload, "exp"),
    )


def create_access_token(
    user: User, secret: str, expires_delta: timedelta, algorithm: str = "HS256"
) -> IssuedAccessToken:
    """Issue an access token for a user.

    Returns:
        The signed token together with the claims it carries

    """
    now = datetime.now(UTC)
    claims = AccessTokenClaims(
        id=user.id,
        first_name=user.first_name,
        username=user.username or "",
        role=user.role,
        # JWT NumericDate has whole-second precision
        expires_at=(now + expires_delta).replace(microsecond=0),
    )
    wire_claims = {
        "id": str(claims.id),
        "firstName": claims.first_name,
        "username": claims.username,
        "role": claims.role.value,
    }
    signed = encode_token(wire_claims, secret, expires_delta, ACCESS_TOKEN_TYPE, algorithm, now=now)
    return IssuedAccessToken(signed_value=signed, claims=claims)


def create_refresh_token(
    user_id: UUID, secret: str, expires_delta: timedelta, algorithm: str = "HS256"
) -> IssuedRefreshToken:
    """Issue a refresh token with a fresh random jti.

    The caller is responsible for persisting ``claims.jti`` on the user row;
    until it does, the token cannot be exchanged.
    """
    now = datetime.now(UTC)
    claims = RefreshTokenClaims(
        id=user_id,
        jti=uuid4(),
        expires_at=(now + expires_delta).replace(microsecond=0),
    )
    wire_claims = {"id": str(claims.id), "jti": str(claims.jti)}
    signed = encode_token(wire_claims, secret, expires_delta, REFRESH_TOKEN_TYPE, algorithm, now=now)
    return IssuedRefreshToken(signed_value=signed, claims=claims)
