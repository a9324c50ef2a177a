"""
Auth endpoints — login (OAuth2 password flow), token refresh and
self-registration.
"""

from __future__ import annotations

import logging

from fastapi import (APIRouter, Cookie, Depends, HTTPException, Request,
                     Response, status)
from fastapi.security import OAuth2PasswordRequestForm
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from doorlock.api.v1.deps import get_current_active_user, get_db
from doorlock.core.config import settings
from doorlock.core.security import decode_refresh_token, verify_password
from doorlock.models.user import User
from doorlock.schemas.common import Envelope, LogoutResponse
from doorlock.schemas.token import RefreshRequest, Token, pick_refresh_token
from doorlock.schemas.user import RegisterRequest, UserCreate, UserRead
from doorlock.services.users import enroll_user

# Rate limiter keyed by client IP
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
async def login_for_access_token(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> Token:
    """Authenticate with email/password. Tokens are also set as HttpOnly cookies."""
    result = await db.execute(
        select(User).where(User.email == form_data.username.lower().strip())
    )
    user = result.scalar_one_or_none()

    # Badge-only accounts have no password and cannot sign in
    if (
        user is None
        or not user.hashed_password
        or not verify_password(form_data.password, user.hashed_password)
    ):
        logger.warning("Failed login attempt for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User account is {user.status}",
        )

    token = Token.for_user(user.user_id)
    _set_auth_cookies(response, token.access_token, token.refresh_token)
    logger.info("User %s signed in", user.user_id)
    return token


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_access_token_endpoint(
    response: Response,
    request: Request,
    body: RefreshRequest | None = None,
    refresh_token_cookie: str | None = Cookie(None, alias="refresh_token"),
    db: AsyncSession = Depends(get_db),
) -> Token:
    token_str = pick_refresh_token(body, refresh_token_cookie)
    if not token_str:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token missing",
        )

    payload = decode_refresh_token(token_str)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    result = await db.execute(select(User).where(User.user_id == payload.get("sub")))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    token = Token.for_user(user.user_id)
    _set_auth_cookies(response, token.access_token, token.refresh_token)
    return token


@router.post("/logout", response_model=LogoutResponse)
async def logout(response: Response) -> LogoutResponse:
    """Clear auth cookies and end the session."""
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    return LogoutResponse(message="Logged out")


@router.post("/register", response_model=Envelope[UserRead], status_code=201)
@limiter.limit("5/minute")
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserRead]:
    """Self-registration; new accounts always get the ``employee`` role."""
    user = await enroll_user(
        db,
        UserCreate(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            department=body.department,
            role="employee",
        ),
    )
    return Envelope[UserRead](
        message="User registered successfully", data=UserRead.model_validate(user)
    )


@router.get("/me", response_model=Envelope[UserRead])
async def read_current_user(
    current_user: User = Depends(get_current_active_user),
) -> Envelope[UserRead]:
    """Return profile of the currently authenticated user."""
    return Envelope[UserRead](
        message="User profile retrieved successfully",
        data=UserRead.model_validate(current_user),
    )
