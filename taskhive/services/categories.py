"""Category store: per-tenant labels, scoped the same way as todos."""

import logging
import uuid

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskhive.models.base import apply_patch
from taskhive.models.category import Category, CategoryCreate, CategoryUpdate
from taskhive.models.tenant import Tenant
from taskhive.models.todo import Todo
from taskhive.services.access_policy import Caller, Decision
from taskhive.services.todos import NoTenant, TaskRejected, scoped

logger = logging.getLogger(__name__)


class CategoryTaken(Exception):
    """The tenant already has a category with this name."""


async def list_categories(session: AsyncSession, decision: Decision) -> list[Category]:
    stmt = scoped(select(Category), decision, Category)
    stmt = stmt.order_by(Category.name.asc())  # type: ignore[union-attr]
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_category(
    session: AsyncSession,
    decision: Decision,
    category_id: uuid.UUID,
) -> Category | None:
    stmt = scoped(select(Category).where(Category.id == category_id), decision, Category)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _commit_named(session: AsyncSession, category: Category) -> Category:
    session.add(category)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise CategoryTaken(category.name) from exc
    await session.refresh(category)
    return category


async def create_category(session: AsyncSession, caller: Caller, body: CategoryCreate) -> Category:
    if caller.is_admin and body.tenant_id is not None:
        tenant_id = body.tenant_id
        if await session.get(Tenant, tenant_id) is None:
            raise TaskRejected("Tenant not found")
    else:
        tenant_id = caller.tenant_id
    if tenant_id is None:
        raise NoTenant("You need a workspace before creating categories")

    category = await _commit_named(session, Category(tenant_id=tenant_id, name=body.name))
    logger.info("Category %s created in tenant %s by %s", category.id, tenant_id, caller.id)
    return category


async def rename_category(
    session: AsyncSession,
    category: Category,
    body: CategoryUpdate,
) -> Category:
    if body.name is None:
        return category
    apply_patch(category, {"name": body.name})
    return await _commit_named(session, category)


async def delete_category(session: AsyncSession, category: Category) -> None:
    """Delete ``category`` and unfile the todos that used it."""
    category_id = category.id
    await session.execute(
        update(Todo)
        .where(Todo.category_id == category_id)
        .values(category_id=None)
        .execution_options(synchronize_session=False)
    )
    await session.delete(category)
    await session.commit()
    logger.info("Category %s deleted", category_id)
