"""
Read / update / delete of user records.

Authorization is not checked here; callers run ``AccessController``
first.  A row that is gone by the time the mutation runs raises
``NotFound``.
"""

from __future__ import annotations

import logging
from typing import Any

from acquisitions.core.exceptions import DuplicateEmail, NotFound, collaborator_errors
from acquisitions.models.user import User
from acquisitions.services.account import PasswordHasher
from acquisitions.services.store import UserStore

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, store: UserStore, hasher: PasswordHasher) -> None:
        self._store = store
        self._hasher = hasher

    async def list_users(self) -> list[User]:
        with collaborator_errors(logger, "listing users"):
            return await self._store.list_all()

    async def get_user(self, user_id: int) -> User:
        with collaborator_errors(logger, "fetching user %s", user_id):
            user = await self._store.get_by_id(user_id)
        if user is None:
            logger.warning("User not found: %s", user_id)
            raise NotFound()
        return user

    async def update_user(self, user_id: int, changes: dict[str, Any]) -> User:
        changes = dict(changes)
        with collaborator_errors(logger, "updating user %s", user_id):
            email = changes.get("email")
            if email is not None:
                owner = await self._store.get_by_email(email)
                if owner is not None and owner.id != user_id:
                    logger.warning("Update of user %s to taken email %s", user_id, email)
                    raise DuplicateEmail()
            if "password" in changes:
                changes["password"] = await self._hasher.hash(changes["password"])

            user = await self._store.update(user_id, changes)

        if user is None:
            logger.warning("User not found during update: %s", user_id)
            raise NotFound()
        logger.info("Updated user %s (fields: %s)", user_id, sorted(changes))
        return user

    async def delete_user(self, user_id: int) -> None:
        with collaborator_errors(logger, "deleting user %s", user_id):
            deleted = await self._store.delete(user_id)
        if not deleted:
            logger.warning("User not found during delete: %s", user_id)
            raise NotFound()
        logger.info("Deleted user %s", user_id)
