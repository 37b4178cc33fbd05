"""
Exception handlers.

Maps the domain exception hierarchy onto HTTP responses so routes can let
module errors propagate.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from modules.credits.exceptions import InsufficientCreditsError
from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PhotoforgeError,
    TransientStoreError,
    ValidationError,
)

from .models.errors import ErrorResponse

logger = logging.getLogger(__name__)

# Checked in order; the first matching class wins
STATUS_CODES: list[tuple[type[PhotoforgeError], int]] = [
    (InsufficientCreditsError, status.HTTP_402_PAYMENT_REQUIRED),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
    (TransientStoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(exc: PhotoforgeError) -> int:
    for error_class, status_code in STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _render(exc: PhotoforgeError, status_code: int) -> ErrorResponse:
    # Never echo upstream or storage error text to clients
    if isinstance(exc, ExternalServiceError):
        return ErrorResponse(
            error=exc.code,
            message="An upstream service failed. Please try again later.",
        )
    if isinstance(exc, AuthorizationError):
        return ErrorResponse(error="NOT_FOUND", message="Resource not found")
    if status_code >= 500:
        return ErrorResponse(error=exc.code, message="Internal error")
    return ErrorResponse(**exc.to_dict())


async def photoforge_error_handler(request: Request, exc: PhotoforgeError) -> JSONResponse:
    """
    FastAPI exception handler for PhotoforgeError.

    Usage:
        app.add_exception_handler(PhotoforgeError, photoforge_error_handler)
    """
    status_code = status_code_for(exc)

    if status_code >= 500:
        logger.error(
            f"API Error: {exc.code} - {exc.message} ({request.method} {request.url.path})"
        )
    else:
        logger.warning(
            f"API Error: {exc.code} - {exc.message} ({request.method} {request.url.path})"
        )

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content=_render(exc, status_code).model_dump(),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PhotoforgeError, photoforge_error_handler)
