"""Pydantic schemas for sign-up / sign-in and User CRUD."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from acquisitions.models.user import UserRole

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

NAME_MIN_LEN = 2
NAME_MAX_LEN = 255
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128


def normalise_email(v: str) -> str:
    return v.strip().lower()


def _check_email(v: str) -> str:
    v = normalise_email(v)
    if len(v) > EMAIL_MAX_LEN:
        raise ValueError(f"Email must be at most {EMAIL_MAX_LEN} characters")
    if not _EMAIL_RE.match(v):
        raise ValueError("Invalid email address")
    return v


def _check_name(v: str) -> str:
    v = v.strip()
    if not NAME_MIN_LEN <= len(v) <= NAME_MAX_LEN:
        raise ValueError(
            f"Name must be between {NAME_MIN_LEN} and {NAME_MAX_LEN} characters"
        )
    return v


# ── Requests ────────────────────────────────────────────────────────
class SignUpRequest(BaseModel):
    name: str
    email: str
    password: str = Field(min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    role: UserRole = UserRole.USER

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        return _check_email(v)


class SignInRequest(BaseModel):
    email: str
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        return _check_email(v)


class UserUpdate(BaseModel):
    """Partial update; explicit ``null`` counts as not provided."""

    name: str | None = None
    email: str | None = None
    password: str | None = Field(
        default=None, min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN
    )
    role: UserRole | None = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str | None) -> str | None:
        return None if v is None else _check_name(v)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str | None) -> str | None:
        return None if v is None else _check_email(v)

    @model_validator(mode="after")
    def _require_one_field(self) -> "UserUpdate":
        if not self.changes():
            raise ValueError(
                "At least one field (name, email, password, role) must be provided"
            )
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)


# ── Responses ───────────────────────────────────────────────────────
class AuthUser(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole

    model_config = {"from_attributes": True}


class UserRead(AuthUser):
    created_at: datetime | None
    updated_at: datetime | None


class AuthResponse(BaseModel):
    message: str
    user: AuthUser


class UserResponse(BaseModel):
    message: str
    user: UserRead


class UserListResponse(BaseModel):
    message: str
    users: list[UserRead]
    count: int


class MessageResponse(BaseModel):
    message: str
