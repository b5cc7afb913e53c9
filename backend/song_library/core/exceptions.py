"""
Custom Exceptions
=================
Typed failures raised by the taxonomy, credential and storage layers, and the
handlers that turn them into JSON responses at the HTTP boundary.

Every error body has the shape ``{"error": str, "details": Any}`` (``details``
omitted when empty).
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from song_library.core.logging_config import get_logger


logger = get_logger(__name__)


class SongLibraryError(Exception):
    """Base class for expected failures"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        if message:
            self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class StorageUnavailable(SongLibraryError):
    """Network failure or backend outage"""
    message = "Storage backend unavailable"


class AuthenticationFailed(SongLibraryError):
    """Backend rejected the configured account keys"""
    message = "Storage authentication failed"


class CredentialRejected(AuthenticationFailed):
    """Backend rejected a cached token (expired or revoked)"""
    message = "Storage credential rejected"


class ObjectNotFound(SongLibraryError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Object not found"


class AccessDenied(SongLibraryError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Access denied"


class InvalidRequest(SongLibraryError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class ObjectExists(SongLibraryError):
    status_code = status.HTTP_409_CONFLICT
    message = "Object already exists"


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

async def song_library_error_handler(request: Request, exc: SongLibraryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.bind(details=exc.details).error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}"
        )
        # Upstream details stay in the logs
        body = {"error": exc.message}
    else:
        logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
        body = exc.to_dict()
    return JSONResponse(status_code=exc.status_code, content=body)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": details},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Something went wrong"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SongLibraryError, song_library_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
