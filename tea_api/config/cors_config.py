"""CORS configuration for the cookie-carrying auth API."""

import logging
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEVELOPMENT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
ALLOWED_HEADERS = ["accept", "authorization", "content-type", "x-csrf-token"]
EXPOSED_HEADERS = ["link"]


class CORSConfigurationError(Exception):
    """Raised when CORS configuration is invalid or insecure."""

    pass


def normalize_origin(origin: str) -> str:
    """Normalize an origin URL by stripping whitespace and trailing slashes.

    Raises:
        CORSConfigurationError: If origin is empty, a wildcard, or not a URL.

    """
    origin = origin.strip()

    if not origin:
        raise CORSConfigurationError("Origin cannot be empty")

    # Browsers refuse credentialed requests to "*", and so do we
    if origin == "*":
        raise CORSConfigurationError("Wildcard origins (*) cannot be combined with credentials")

    parsed = urlparse(origin)
    if not parsed.scheme or not parsed.netloc:
        raise CORSConfigurationError(f"Invalid origin URL: {origin}")

    return origin.rstrip("/")


def parse_comma_separated_list(value: str | list[str] | None) -> list[str]:
    """Parse comma-separated string or return as-is if already a list."""
    if value is None:
        return []

    if isinstance(value, list):
        return [v.strip() for v in value if v.strip()]

    return [v.strip() for v in value.split(",") if v.strip()]


class CORSConfiguration:
    """Validated CORS settings.

    Credentials are always allowed: the refresh token is an HttpOnly cookie and
    the browser only sends it cross-origin when the response allows credentials.
    That rules out wildcard origins in every environment.
    """

    def __init__(
        self,
        allow_origins: str | list[str] | None = None,
        max_age: int = 600,
        environment: str = "development",
    ):
        self.environment = environment.lower()
        self.max_age = max_age
        self.allow_credentials = True
        self.allow_methods = list(ALLOWED_METHODS)
        self.allow_headers = list(ALLOWED_HEADERS)
        self.expose_headers = list(EXPOSED_HEADERS)

        origins = parse_comma_separated_list(allow_origins)
        if not origins and self.environment == "development":
            origins = list(DEVELOPMENT_ORIGINS)

        self.allow_origins = [normalize_origin(o) for o in origins]

        if not self.allow_origins and self.environment == "production":
            raise CORSConfigurationError("Production environment requires explicit allowed origins")

        if not self.allow_origins:
            logger.warning(f"No CORS origins configured for {self.environment} environment")

    def get_middleware_config(self) -> dict:
        """Get configuration dict for FastAPI CORSMiddleware."""
        return {
            "allow_origins": self.allow_origins,
            "allow_credentials": self.allow_credentials,
            "allow_methods": self.allow_methods,
            "allow_headers": self.allow_headers,
            "expose_headers": self.expose_headers,
            "max_age": self.max_age,
        }

    def log_configuration(self) -> None:
        """Log effective CORS configuration at startup."""
        logger.info(
            f"CORS configuration: environment={self.environment} "
            f"origins={self.allow_origins} credentials={self.allow_credentials} "
            f"max_age={self.max_age}s"
        )
