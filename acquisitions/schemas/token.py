"""Pydantic schemas for JWT session tokens."""

from __future__ import annotations

from pydantic import BaseModel, Field

from acquisitions.models.user import UserRole


class Identity(BaseModel):
    """Caller identity decoded from a verified token; lives for one request."""

    id: int = Field(gt=0)
    email: str
    role: UserRole

    model_config = {"frozen": True}

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
