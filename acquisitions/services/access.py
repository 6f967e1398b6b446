"""
Who may change which user record.

Decisions use only the caller's identity and the numeric target id.
Whether the target row exists is irrelevant here; ``NotFound`` only
surfaces once the mutation itself runs.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from acquisitions.core.exceptions import Forbidden
from acquisitions.models.user import UserRole
from acquisitions.schemas.token import Identity

logger = logging.getLogger(__name__)


class AccessController:
    @staticmethod
    def can_mutate(requester_id: int, requester_role: UserRole | str, target_id: int) -> bool:
        return UserRole(requester_role) == UserRole.ADMIN or requester_id == target_id

    @staticmethod
    def can_change_role(requester_role: UserRole | str) -> bool:
        return UserRole(requester_role) == UserRole.ADMIN

    def authorize_update(
        self, requester: Identity, target_id: int, changes: Mapping[str, Any]
    ) -> None:
        """Raise ``Forbidden`` unless *requester* may apply all of *changes*."""
        if not self.can_mutate(requester.id, requester.role, target_id):
            logger.warning(
                "Forbidden user update attempt: requester=%s role=%s target=%s",
                requester.id,
                requester.role.value,
                target_id,
            )
            raise Forbidden("You can only update your own account")

        if "role" in changes and not self.can_change_role(requester.role):
            logger.warning(
                "Non-admin attempted to change role: requester=%s target=%s",
                requester.id,
                target_id,
            )
            raise Forbidden("Only admins can change user roles")

    def authorize_delete(self, requester: Identity, target_id: int) -> None:
        if not self.can_mutate(requester.id, requester.role, target_id):
            logger.warning(
                "Forbidden user delete attempt: requester=%s role=%s target=%s",
                requester.id,
                requester.role.value,
                target_id,
            )
            raise Forbidden("You can only delete your own account")
