"""
User persistence behind a small async interface.

``UserStore`` is what the services depend on; ``SQLAlchemyUserStore`` is
the production implementation over one request-scoped ``AsyncSession``.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from acquisitions.core.exceptions import DuplicateEmail
from acquisitions.models.user import User

logger = logging.getLogger(__name__)


class UserStore(Protocol):
    async def get_by_email(self, email: str) -> User | None: ...

    async def get_by_id(self, user_id: int) -> User | None: ...

    async def list_all(self) -> list[User]: ...

    async def create(self, *, name: str, email: str, password: str, role: str) -> User: ...

    async def update(self, user_id: int, changes: dict[str, Any]) -> User | None: ...

    async def delete(self, user_id: int) -> bool: ...


class SQLAlchemyUserStore:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_by_email(self, email: str) -> User | None:
        result = await self._db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> User | None:
        return await self._db.get(User, user_id)

    async def list_all(self) -> list[User]:
        result = await self._db.execute(select(User).order_by(User.id))
        return list(result.scalars().all())

    async def create(self, *, name: str, email: str, password: str, role: str) -> User:
        user = User(name=name, email=email, password=password, role=role)
        self._db.add(user)
        await self._commit_unique_email(email)
        await self._db.refresh(user)
        return user

    async def update(self, user_id: int, changes: dict[str, Any]) -> User | None:
        user = await self._db.get(User, user_id)
        if user is None:
            return None
        for field, value in changes.items():
            setattr(user, field, value)
        await self._commit_unique_email(changes.get("email"))
        await self._db.refresh(user)
        return user

    async def delete(self, user_id: int) -> bool:
        result = await self._db.execute(delete(User).where(User.id == user_id))
        await self._db.commit()
        return result.rowcount > 0

    async def _commit_unique_email(self, email: str | None) -> None:
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            if email is None:
                raise
            # Lost the race against a concurrent insert of the same address.
            logger.warning("Unique email constraint hit for %s", email)
            raise DuplicateEmail() from exc
