"""Helper utilities shared across API route handlers."""

from fastapi import HTTPException, status

from app.domain.errors import (
    MessageNotFoundError,
    NotificationNotFoundError,
    TransientIOError,
    ValidationError,
)


def to_http_exception(exc: Exception) -> HTTPException:
    """Translate a failed command into one human readable HTTP error."""

    if isinstance(exc, (MessageNotFoundError, NotificationNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, TransientIOError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="The message service is temporarily unavailable, please try again",
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


COMMAND_ERRORS = (
    MessageNotFoundError,
    NotificationNotFoundError,
    PermissionError,
    TransientIOError,
    ValidationError,
)

__all__ = ["COMMAND_ERRORS", "to_http_exception"]
