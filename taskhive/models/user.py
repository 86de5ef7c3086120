"""User model: may belong to a tenant once provisioning has run."""

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import EmailStr
from sqlmodel import JSON, Column, Field, SQLModel

from taskhive.models.base import TimestampMixin, new_uuid


class UserRole(StrEnum):
    ADMIN = "admin"
    USER = "user"


def default_roles() -> list[str]:
    return [UserRole.USER.value]


class User(TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    email: str = Field(max_length=320, unique=True, nullable=False, index=True)
    password_hash: str = Field(nullable=False)
    name: str = Field(default="", max_length=255)
    roles: list[str] = Field(default_factory=default_roles, sa_column=Column(JSON, nullable=False))
    tenant_id: uuid.UUID | None = Field(
        default=None, foreign_key="tenants.id", nullable=True, index=True,
    )
    is_active: bool = Field(default=True)

    # Login lockout bookkeeping
    login_attempts: int = Field(default=0)
    lock_until: datetime | None = Field(default=None)


# ── Pydantic schemas ─────────────────────────────────────────

class UserCreate(SQLModel):
    email: EmailStr = Field(max_length=320)
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(default="", max_length=255)
    # Honoured only when an admin creates the account
    roles: list[UserRole] | None = None
    tenant_id: uuid.UUID | None = None


class UserUpdate(SQLModel):
    email: EmailStr | None = Field(default=None, max_length=320)
    password: str | None = Field(default=None, min_length=8, max_length=128)
    name: str | None = Field(default=None, max_length=255)
    roles: list[UserRole] | None = None
    tenant_id: uuid.UUID | None = None
    is_active: bool | None = None


class UserRead(SQLModel):
    id: uuid.UUID
    email: str
    name: str
    roles: list[str]
    tenant_id: uuid.UUID | None
    is_active: bool
    created_at: datetime
    updated_at: datetime
