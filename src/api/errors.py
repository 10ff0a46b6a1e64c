"""Mapping from domain errors to HTTP responses.

Managers raise ForumError subclasses; routes turn them into HTTPException
with this module so the status codes live in one place.
"""

from typing import Dict, Optional, Type

from fastapi import HTTPException, status

from core.exceptions import (
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    ForumError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    ValidationError,
)

STATUS_BY_ERROR: Dict[Type[ForumError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    RateLimitedError: status.HTTP_429_TOO_MANY_REQUESTS,
    ExternalServiceError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: ForumError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(exc: ForumError) -> HTTPException:
    """Build the HTTPException for a domain error.

    The detail carries the machine-readable kind next to the message.
    Rate-limited errors set Retry-After; 401s advertise the Bearer scheme.

    Args:
        exc: Error raised by a manager.

    Returns:
        HTTPException ready to raise.
    """
    headers: Optional[Dict[str, str]] = None
    if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}
    elif isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(
        status_code=status_for(exc),
        detail={"kind": exc.kind.value, "message": exc.message},
        headers=headers,
    )
