"""
User endpoints — list / read / update / delete.

- Every route requires a valid session token.
- Users may update or delete only their own account; admins any account.
- Only admins may change a role.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path

from acquisitions.api.deps import (
    get_access_controller,
    get_current_identity,
    get_user_service,
)
from acquisitions.schemas.token import Identity
from acquisitions.schemas.user import (
    MessageResponse,
    UserListResponse,
    UserRead,
    UserResponse,
    UserUpdate,
)
from acquisitions.services.access import AccessController
from acquisitions.services.users import UserService

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)

UserId = Annotated[int, Path(gt=0, description="Positive integer user id")]


@router.get("", response_model=UserListResponse)
async def list_users(
    _identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
) -> UserListResponse:
    logger.info("Fetching all users from database")
    records = await users.list_users()
    return UserListResponse(
        message="Users retrieved successfully",
        users=[UserRead.model_validate(u) for u in records],
        count=len(records),
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UserId,
    _identity: Identity = Depends(get_current_identity),
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    user = await users.get_user(user_id)
    return UserResponse(
        message="User retrieved successfully",
        user=UserRead.model_validate(user),
    )


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UserId,
    body: UserUpdate,
    identity: Identity = Depends(get_current_identity),
    access: AccessController = Depends(get_access_controller),
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    """Partial update; the whole request is refused if any field is not allowed."""
    changes = body.changes()
    access.authorize_update(identity, user_id, changes)

    logger.info(
        "Updating user %s (requester=%s role=%s)", user_id, identity.id, identity.role.value
    )
    user = await users.update_user(user_id, changes)
    return UserResponse(
        message="User updated successfully",
        user=UserRead.model_validate(user),
    )


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UserId,
    identity: Identity = Depends(get_current_identity),
    access: AccessController = Depends(get_access_controller),
    users: UserService = Depends(get_user_service),
) -> MessageResponse:
    access.authorize_delete(identity, user_id)

    logger.info(
        "Deleting user %s (requester=%s role=%s)", user_id, identity.id, identity.role.value
    )
    await users.delete_user(user_id)
    return MessageResponse(message="User deleted successfully")
