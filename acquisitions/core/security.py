"""
Password hashing (passlib) and JWT session tokens (python-jose).

Both are wrapped in small classes so the services receive them as
explicit collaborators instead of importing module globals.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import PasswordSizeError
from pydantic import ValidationError

from acquisitions.core.config import settings
from acquisitions.core.exceptions import TokenExpired, TokenInvalid
from acquisitions.schemas.token import Identity


# ── Passwords ───────────────────────────────────────────────────────
class PasslibPasswordHasher:
    """Hashes with pbkdf2_sha256; still verifies legacy bcrypt hashes."""

    def __init__(self, context: CryptContext | None = None) -> None:
        self._context = context or CryptContext(
            schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto"
        )

    # Hashing is CPU bound, keep it off the event loop.
    async def hash(self, plain: str) -> str:
        return await asyncio.to_thread(self._context.hash, plain)

    async def verify(self, plain: str, hashed: str) -> bool:
        try:
            return await asyncio.to_thread(self._context.verify, plain, hashed)
        except PasswordSizeError:
            # Same answer as any other mismatch
            return False

    async def dummy_verify(self) -> None:
        """Spend the time of a real verification against no account."""
        await asyncio.to_thread(self._context.dummy_verify)


# ── JWT tokens ──────────────────────────────────────────────────────
class JWTTokenService:
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_minutes: int = 15 * 60,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._expires = timedelta(minutes=expires_minutes)

    def issue(self, identity: Identity, expires_delta: timedelta | None = None) -> str:
        expire = datetime.now(timezone.utc) + (expires_delta or self._expires)
        return jwt.encode(
            {
                "exp": expire,
                "sub": str(identity.id),
                "email": identity.email,
                "role": identity.role.value,
                "type": "access",
            },
            self._secret,
            algorithm=self._algorithm,
        )

    def verify(self, token: str) -> Identity:
        """Return the identity carried by *token*; raise ``Unauthenticated`` otherwise."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise TokenInvalid() from exc

        if payload.get("type") != "access":
            raise TokenInvalid()
        try:
            return Identity(
                id=payload.get("sub"),
                email=payload.get("email"),
                role=payload.get("role"),
            )
        except ValidationError as exc:
            raise TokenInvalid() from exc


def build_token_service() -> JWTTokenService:
    return JWTTokenService(
        secret=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        expires_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )
