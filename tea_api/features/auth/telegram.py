"""Telegram login verification.

Telegram signs the login widget payload with HMAC-SHA256. The key is the
SHA-256 digest of the bot token and the message is the "data check string":
every non-empty field except ``hash`` rendered as ``key=value``, sorted and
joined with newlines. An empty optional field must be left out entirely
rather than rendered as ``key=``, or the signature will not match.
"""

import hashlib
import hmac
import json
import logging
from datetime import UTC, datetime
from urllib.parse import parse_qsl

from pydantic import ValidationError

from .schemas import TelegramLoginRequest

logger = logging.getLogger(__name__)

SIGNATURE_FIELD = "hash"

# Tolerated clock drift between Telegram and this server
AUTH_DATE_FUTURE_SKEW_SECONDS = 60


class TelegramAuthError(Exception):
    """Base class for Telegram login verification failures."""

    pass


class TelegramConfigurationError(TelegramAuthError):
    """Raised when the bot token is not configured."""

    pass


class TelegramSignatureError(TelegramAuthError):
    """Raised when the payload signature does not match."""

    pass


class TelegramAuthExpiredError(TelegramAuthError):
    """Raised when auth_date is too old or in the future."""

    pass


class TelegramInitDataError(TelegramAuthError):
    """Raised when Mini App init data cannot be unpacked."""

    pass


def build_check_string(payload: TelegramLoginRequest) -> str:
    """Build the canonical data check string for a login payload."""
    fields = payload.model_dump(exclude={SIGNATURE_FIELD})
    lines = [f"{key}={value}" for key, value in fields.items() if value is not None and value != ""]
    return "\n".join(sorted(lines))


def compute_signature(check_string: str, bot_token: str) -> str:
    """Compute the hex HMAC-SHA256 of a check string keyed by sha256(bot_token)."""
    secret_key = hashlib.sha256(bot_token.encode()).digest()
    return hmac.new(secret_key, check_string.encode(), hashlib.sha256).hexdigest()


def verify_login_payload(payload: TelegramLoginRequest, bot_token: str) -> None:
    """Verify the payload signature against the bot token.

    Raises:
        TelegramConfigurationError: If the bot token is empty
        TelegramSignatureError: If the computed and supplied signatures differ

    """
    if not bot_token:
        raise TelegramConfigurationError("Telegram bot token is not configured")

    expected = compute_signature(build_check_string(payload), bot_token)

    if not hmac.compare_digest(expected.encode(), payload.hash.encode()):
        raise TelegramSignatureError("Hashes are not equal")


def check_auth_date(payload: TelegramLoginRequest, max_age_seconds: int, now: datetime | None = None) -> None:
    """Reject payloads whose auth_date is stale or lies in the future.

    A ``max_age_seconds`` of 0 disables the check.

    Raises:
        TelegramAuthExpiredError: If the payload is outside the accepted window

    """
    if max_age_seconds <= 0:
        return

    now_ts = int((now or datetime.now(UTC)).timestamp())
    age = now_ts - payload.auth_date

    if age > max_age_seconds:
        raise TelegramAuthExpiredError(f"auth_date is {age}s old, limit is {max_age_seconds}s")
    if age < -AUTH_DATE_FUTURE_SKEW_SECONDS:
        raise TelegramAuthExpiredError("auth_date is in the future")


def parse_mini_app_init_data(init_data: str) -> TelegramLoginRequest:
    """Unpack Mini App init data into a login payload.

    Init data is a URL-encoded query string whose ``user`` parameter is a JSON
    object with the identity fields; ``auth_date`` and ``hash`` sit next to it.

    Raises:
        TelegramInitDataError: If the string, the user object or a field is malformed

    """
    try:
        fields = dict(parse_qsl(init_data, keep_blank_values=True, strict_parsing=True))
    except ValueError as err:
        raise TelegramInitDataError("Init data is not a valid query string") from err

    raw_user = fields.get("user")
    if not raw_user:
        raise TelegramInitDataError("Init data has no user")

    try:
        user = json.loads(raw_user)
    except json.JSONDecodeError as err:
        raise TelegramInitDataError("Init data user is not valid JSON") from err

    if not isinstance(user, dict):
        raise TelegramInitDataError("Init data user must be an object")

    try:
        return TelegramLoginRequest(
            id=user.get("id"),
            first_name=user.get("first_name") or "",
            last_name=user.get("last_name") or "",
            username=user.get("username") or "",
            photo_url=user.get("photo_url") or "",
            auth_date=fields.get("auth_date"),
            hash=fields.get(SIGNATURE_FIELD),
        )
    except ValidationError as err:
        raise TelegramInitDataError("Init data fields are invalid") from err
