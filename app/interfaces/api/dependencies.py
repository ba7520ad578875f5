"""FastAPI dependency utilities."""

from fastapi import Header, HTTPException, status


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Return the acting user's identifier from the ``X-User-Id`` header.

    Authentication happens upstream; the header is trusted as is.
    """

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return user_id


__all__ = ["get_current_user_id"]
