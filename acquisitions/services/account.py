"""
Account lifecycle: sign-up and sign-in.

The service never tells the caller *why* a sign-in failed.  An unknown
email and a wrong password both raise the same ``InvalidCredentials``
after the same amount of hashing work.
"""

from __future__ import annotations

import logging
from typing import Protocol

from acquisitions.core.exceptions import (
    DuplicateEmail,
    InvalidCredentials,
    collaborator_errors,
)
from acquisitions.models.user import User, UserRole
from acquisitions.schemas.token import Identity
from acquisitions.schemas.user import normalise_email
from acquisitions.services.store import UserStore

logger = logging.getLogger(__name__)


class PasswordHasher(Protocol):
    async def hash(self, plain: str) -> str: ...

    async def verify(self, plain: str, hashed: str) -> bool: ...

    async def dummy_verify(self) -> None: ...


class TokenService(Protocol):
    def issue(self, identity: Identity) -> str: ...

    def verify(self, token: str) -> Identity: ...


class AccountService:
    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens

    async def create_account(
        self,
        name: str,
        email: str,
        password: str,
        role: UserRole | str = UserRole.USER,
    ) -> User:
        """Register a new account; raise ``DuplicateEmail`` if the address is taken."""
        email = normalise_email(email)
        role = UserRole(role)

        with collaborator_errors(logger, "creating user %s", email):
            if await self._store.get_by_email(email) is not None:
                logger.warning("Sign-up attempt with existing email: %s", email)
                raise DuplicateEmail()

            user = await self._store.create(
                name=name,
                email=email,
                password=await self._hasher.hash(password),
                role=role.value,
            )

        logger.info("User created with email: %s (ID: %s)", user.email, user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        email = normalise_email(email)

        with collaborator_errors(logger, "authenticating user %s", email):
            user = await self._store.get_by_email(email)
            if user is None:
                await self._hasher.dummy_verify()
                matched = False
            else:
                matched = await self._hasher.verify(password, user.password)

        if not matched:
            logger.warning("Failed sign-in attempt for email: %s", email)
            raise InvalidCredentials()

        logger.info("User authenticated with email: %s", email)
        return user  # type: ignore[return-value]

    def issue_token(self, user: User) -> str:
        return self._tokens.issue(
            Identity(id=user.id, email=user.email, role=UserRole(user.role))
        )
