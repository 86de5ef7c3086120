"""Todo model: a kanban card scoped to a tenant."""

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import field_validator
from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from taskhive.models.base import TimestampMixin, new_uuid, to_naive_utc


class TodoStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class TodoPriority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Todo(TimestampMixin, SQLModel, table=True):
    __tablename__ = "todos"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    created_by_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    assigned_to_id: uuid.UUID | None = Field(
        default=None, foreign_key="users.id", nullable=True, index=True,
    )
    category_id: uuid.UUID | None = Field(
        default=None, foreign_key="categories.id", nullable=True, index=True,
    )

    title: str = Field(max_length=255, nullable=False)
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    status: TodoStatus = Field(default=TodoStatus.TODO)
    priority: TodoPriority = Field(default=TodoPriority.MEDIUM)
    due_date: datetime | None = Field(default=None)


# ── Pydantic schemas ─────────────────────────────────────────

class TodoCreate(SQLModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: TodoStatus = TodoStatus.TODO
    priority: TodoPriority = TodoPriority.MEDIUM
    due_date: datetime | None = None
    assigned_to_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None
    # Server-stamped; only admins may pick the tenant explicitly
    tenant_id: uuid.UUID | None = None

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)


class TodoUpdate(SQLModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: TodoStatus | None = None
    priority: TodoPriority | None = None
    due_date: datetime | None = None
    assigned_to_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None
    tenant_id: uuid.UUID | None = None

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)


class TodoRead(SQLModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    created_by_id: uuid.UUID
    assigned_to_id: uuid.UUID | None
    category_id: uuid.UUID | None
    title: str
    description: str | None
    status: TodoStatus
    priority: TodoPriority
    due_date: datetime | None
    created_at: datetime
    updated_at: datetime
