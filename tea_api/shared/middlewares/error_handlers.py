"""Exception handlers shared by all routers."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request payloads are a plain 400 Bad Request."""
    logger.info(f"Bad request | path={request.url.path} | method={request.method}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request data", "errors": jsonable_encoder(exc.errors())},
    )


async def logged_http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Log the error with request context, then render it the FastAPI way."""
    message = (
        f"Error occurred: {exc.detail} | status={exc.status_code} "
        f"| path={request.url.path} | method={request.method}"
    )
    if exc.status_code >= 500:
        logger.error(message)
    else:
        logger.warning(message)
    return await http_exception_handler(request, exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the failure, return a generic 500."""
    logger.exception(f"Unhandled error | path={request.url.path} | method={request.method}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, logged_http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
