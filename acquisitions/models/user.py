"""
User model — accounts & role-based access control.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from acquisitions.db.base import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(255), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    password: str = Column(String(255), nullable=False)  # type: ignore[assignment]  # hash only
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=UserRole.USER.value,
        server_default=UserRole.USER.value,
    )  # admin | user
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
