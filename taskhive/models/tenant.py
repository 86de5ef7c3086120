"""Tenant model: the workspace every todo belongs to."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from taskhive.models.base import TimestampMixin, new_uuid


class Tenant(TimestampMixin, SQLModel, table=True):
    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    name: str = Field(max_length=255, nullable=False)
    slug: str = Field(max_length=100, unique=True, nullable=False, index=True)
    # No FK constraint: the owner row is written first and linked back afterwards.
    owner_id: uuid.UUID = Field(nullable=False, index=True)
    is_active: bool = Field(default=True)


# ── Pydantic schemas ─────────────────────────────────────────

class TenantUpdate(SQLModel):
    name: str | None = Field(default=None, max_length=255)
    owner_id: uuid.UUID | None = None
    is_active: bool | None = None


class TenantRead(SQLModel):
    id: uuid.UUID
    name: str
    slug: str
    owner_id: uuid.UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime
