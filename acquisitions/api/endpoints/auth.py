"""
Auth endpoints — sign-up, sign-in & sign-out with an HttpOnly session cookie.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status

from acquisitions.api.deps import get_account_service
from acquisitions.core.config import settings
from acquisitions.schemas.user import (
    AuthResponse,
    AuthUser,
    MessageResponse,
    SignInRequest,
    SignUpRequest,
)
from acquisitions.services.account import AccountService

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

COOKIE_MAX_AGE = 15 * 60 * 60  # 15 hours


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": "strict",
    }


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        max_age=COOKIE_MAX_AGE,
        **_cookie_options(),
    )


@router.post("/sign-up", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(
    body: SignUpRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """Register a new account and start its session."""
    user = await accounts.create_account(body.name, body.email, body.password, body.role)
    _set_session_cookie(response, accounts.issue_token(user))

    logger.info("User registered successfully: %s", user.email)
    return AuthResponse(
        message="User registered successfully",
        user=AuthUser.model_validate(user),
    )


@router.post("/sign-in", response_model=AuthResponse)
async def sign_in(
    body: SignInRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """Authenticate with email/password. Returns 200 OK with an HttpOnly cookie."""
    user = await accounts.authenticate(body.email, body.password)
    _set_session_cookie(response, accounts.issue_token(user))

    logger.info("User signed in successfully: %s", user.email)
    return AuthResponse(
        message="User signed in successfully",
        user=AuthUser.model_validate(user),
    )


@router.post("/sign-out", response_model=MessageResponse)
async def sign_out(response: Response) -> MessageResponse:
    """Clear the session cookie."""
    response.delete_cookie(settings.COOKIE_NAME, **_cookie_options())
    logger.info("User signed out successfully")
    return MessageResponse(message="User signed out successfully")
