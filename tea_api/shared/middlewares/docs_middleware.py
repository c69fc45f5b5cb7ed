"""Middleware for protecting API documentation routes to admin users only."""

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from tea_api.features.auth.dependencies import BEARER_PREFIX, decode_access_token

PROTECTED_PATHS = {"/docs", "/redoc", "/openapi.json"}


async def admin_docs_middleware(request: Request, call_next):
    """Middleware to protect API documentation routes to admin users only.

    Protects:
    - /docs (Swagger UI)
    - /redoc (ReDoc)
    - /openapi.json (OpenAPI schema)

    The role is read from the validated access token, no database access is needed.
    Non-authenticated or non-admin users receive a 403 Forbidden response.
    """
    if request.url.path not in PROTECTED_PATHS:
        return await call_next(request)

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(BEARER_PREFIX):
        return JSONResponse(status_code=403, content={"detail": "Not authenticated."})

    try:
        claims = decode_access_token(auth_header[len(BEARER_PREFIX) :].strip())
    except HTTPException:
        return JSONResponse(status_code=403, content={"detail": "Not authenticated."})

    if not claims.is_admin:
        return JSONResponse(status_code=403, content={"detail": "Insufficient permissions."})

    return await call_next(request)
