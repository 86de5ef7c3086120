"""categories: per-tenant categories, todos.category_id, default_categories

Revision ID: 9b3e5d1c8a42
Revises: 4f1c2a9e7b10
Create Date: 2026-10-25 10:12:40.518907

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '9b3e5d1c8a42'
down_revision: str | Sequence[str] | None = '4f1c2a9e7b10'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.UniqueConstraint("tenant_id", "name", name="uq_categories_tenant_name"),
    )
    op.create_index("ix_categories_tenant_id", "categories", ["tenant_id"])

    op.add_column("todos", sa.Column("category_id", sa.Uuid(), nullable=True))
    op.create_foreign_key(
        "fk_todos_category_id", "todos", "categories", ["category_id"], ["id"],
    )
    op.create_index("ix_todos_category_id", "todos", ["category_id"])

    op.add_column(
        "site_settings",
        sa.Column("default_categories", sa.JSON(), nullable=False, server_default="[]"),
    )


def downgrade() -> None:
    op.drop_column("site_settings", "default_categories")
    op.drop_index("ix_todos_category_id", table_name="todos")
    op.drop_constraint("fk_todos_category_id", "todos", type_="foreignkey")
    op.drop_column("todos", "category_id")
    op.drop_index("ix_categories_tenant_id", table_name="categories")
    op.drop_table("categories")
