"""
FastAPI dependencies — database session, collaborators, auth and admission.

Every collaborator is handed out by a dependency so tests can swap it
through ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from acquisitions.core.config import settings
from acquisitions.core.exceptions import MalformedAuthHeader, MissingToken, Unauthenticated
from acquisitions.core.security import (
    JWTTokenService,
    PasslibPasswordHasher,
    build_token_service,
)
from acquisitions.db.session import async_session_factory
from acquisitions.schemas.token import Identity
from acquisitions.services.access import AccessController
from acquisitions.services.account import AccountService
from acquisitions.services.admission import AbuseGuard, GuardRequest, RequestAdmission
from acquisitions.services.store import SQLAlchemyUserStore
from acquisitions.services.users import UserService

logger = logging.getLogger(__name__)

# auto_error=False so a missing header can fall back to the session cookie
bearer_scheme = HTTPBearer(auto_error=False)

_password_hasher = PasslibPasswordHasher()
_token_service = build_token_service()
_access_controller = AccessController()


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Collaborators ───────────────────────────────────────────────────
def get_password_hasher() -> PasslibPasswordHasher:
    return _password_hasher


def get_token_service() -> JWTTokenService:
    return _token_service


def get_access_controller() -> AccessController:
    return _access_controller


async def get_user_store(db: AsyncSession = Depends(get_db)) -> SQLAlchemyUserStore:
    return SQLAlchemyUserStore(db)


def get_account_service(
    store: SQLAlchemyUserStore = Depends(get_user_store),
    hasher: PasslibPasswordHasher = Depends(get_password_hasher),
    tokens: JWTTokenService = Depends(get_token_service),
) -> AccountService:
    return AccountService(store, hasher, tokens)


def get_user_service(
    store: SQLAlchemyUserStore = Depends(get_user_store),
    hasher: PasslibPasswordHasher = Depends(get_password_hasher),
) -> UserService:
    return UserService(store, hasher)


def get_abuse_guard(request: Request) -> AbuseGuard:
    return request.app.state.abuse_guard


def get_request_admission(guard: AbuseGuard = Depends(get_abuse_guard)) -> RequestAdmission:
    return RequestAdmission(guard, settings.ADMISSION_FAILURE_MODE)


# ── Auth dependencies ───────────────────────────────────────────────
def _raw_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    cookie_token: Optional[str],
) -> str | None:
    # Priority: Header > Cookie
    if credentials and credentials.credentials:
        return credentials.credentials
    # A header that is there but not "Bearer <token>" is refused, not skipped
    if request.headers.get("authorization", "").strip():
        raise MalformedAuthHeader()
    return cookie_token or None


async def get_optional_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    cookie_token: Optional[str] = Cookie(default=None, alias=settings.COOKIE_NAME),
    tokens: JWTTokenService = Depends(get_token_service),
) -> Identity | None:
    """Identity if a valid token came along, ``None`` for guests."""
    try:
        token = _raw_token(request, credentials, cookie_token)
        return None if token is None else tokens.verify(token)
    except Unauthenticated:
        return None


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    cookie_token: Optional[str] = Cookie(default=None, alias=settings.COOKIE_NAME),
    tokens: JWTTokenService = Depends(get_token_service),
) -> Identity:
    """Decode JWT from Header OR Cookie; 401 if missing, malformed or expired."""
    try:
        token = _raw_token(request, credentials, cookie_token)
        if token is None:
            raise MissingToken()
        identity = tokens.verify(token)
    except Unauthenticated as exc:
        logger.warning("Token rejected: %s", exc.message)
        raise
    logger.debug("User authenticated: %s", identity.id)
    return identity


# ── Admission ───────────────────────────────────────────────────────
async def admit_request(
    request: Request,
    identity: Identity | None = Depends(get_optional_identity),
    admission: RequestAdmission = Depends(get_request_admission),
) -> None:
    """Run the abuse guard for the caller's tier; raises when the request is refused."""
    await admission.evaluate(
        GuardRequest(
            client=get_remote_address(request),
            method=request.method,
            path=request.url.path,
            query=request.url.query,
            user_agent=request.headers.get("user-agent"),
        ),
        identity,
    )
