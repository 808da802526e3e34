# edudash/core/errors.py
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse


class ServiceError(Exception):
    """Base class for errors raised by the service layer.

    Rendered as ``{"error": message, **extra}`` with ``status_code``.
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class ServiceUnavailable(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, **exc.extra},
    )
