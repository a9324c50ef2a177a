"""
Token schemas — the bearer pair issued at login and on refresh.

Field names stay snake_case: OAuth2 clients expect ``access_token`` and
``token_type`` verbatim.
"""

from __future__ import annotations

from pydantic import BaseModel

from doorlock.core.security import create_access_token, create_refresh_token


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

    @classmethod
    def for_user(cls, user_id: str) -> "Token":
        """Fresh access/refresh pair whose subject is the business user id."""
        return cls(
            access_token=create_access_token(user_id),
            refresh_token=create_refresh_token(user_id),
        )


class RefreshRequest(BaseModel):
    # Optional: browsers send the HttpOnly cookie instead
    refresh_token: str | None = None


def pick_refresh_token(body: RefreshRequest | None, cookie: str | None) -> str | None:
    """Body token first, then the ``refresh_token`` cookie."""
    if body is not None and body.refresh_token:
        return body.refresh_token
    return cookie or None
