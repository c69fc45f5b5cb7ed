"""Per-request access logging."""

import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from tea_api.features.auth.dependencies import get_request_claims


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request with status, latency and the caller's user id.

    The user id is read from the claims the authentication stage attached to
    the request scope, so tokens are never decoded twice and never logged.
    """

    def __init__(self, app, logger_name: str = "tea_api.request") -> None:
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        try:
            response: Response = await call_next(request)
        except Exception:
            self.logger.exception(
                "unhandled_exception",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            raise

        claims = get_request_claims(request)
        self.logger.info(
            "request",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                "user_id": str(claims.id) if claims else None,
            },
        )

        response.headers["X-Request-Id"] = request_id
        return response
