"""initial schema: tenants, users, todos, site_settings

Revision ID: 4f1c2a9e7b10
Revises:
Create Date: 2026-10-18 21:55:12.104233

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '4f1c2a9e7b10'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)
    op.create_index("ix_tenants_owner_id", "tenants", ["owner_id"])

    op.create_table(
        "users",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("login_attempts", sa.Integer(), nullable=False),
        sa.Column("lock_until", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])

    op.create_table(
        "todos",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_to_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Enum("TODO", "IN_PROGRESS", "DONE", name="todostatus"), nullable=False),
        sa.Column("priority", sa.Enum("HIGH", "MEDIUM", "LOW", name="todopriority"), nullable=False),
        sa.Column("due_date", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_todos_tenant_id", "todos", ["tenant_id"])
    op.create_index("ix_todos_created_by_id", "todos", ["created_by_id"])
    op.create_index("ix_todos_assigned_to_id", "todos", ["assigned_to_id"])

    op.create_table(
        "site_settings",
        *_timestamps(),
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("welcome_message", sa.String(500), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("site_settings")
    op.drop_index("ix_todos_assigned_to_id", table_name="todos")
    op.drop_index("ix_todos_created_by_id", table_name="todos")
    op.drop_index("ix_todos_tenant_id", table_name="todos")
    op.drop_table("todos")
    sa.Enum(name="todopriority").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="todostatus").drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_users_tenant_id", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_tenants_owner_id", table_name="tenants")
    op.drop_index("ix_tenants_slug", table_name="tenants")
    op.drop_table("tenants")
