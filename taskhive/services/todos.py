"""Todo repository: every query is narrowed by an access-policy decision.

Callers pass the :class:`Decision` they got from the policy evaluator; its
filter is ANDed with whatever the client asked for. ``tenant_id`` and
``created_by_id`` are always stamped here, never taken from a non-admin.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskhive.models.base import apply_patch
from taskhive.models.category import Category
from taskhive.models.tenant import Tenant
from taskhive.models.todo import Todo, TodoCreate, TodoPriority, TodoStatus, TodoUpdate
from taskhive.models.user import User
from taskhive.services.access_policy import Caller, Decision

logger = logging.getLogger(__name__)

# Columns a PATCH may change but never clear
REQUIRED_FIELDS = ("title", "status", "priority")


class TaskRejected(Exception):
    """The write is well-formed but cannot be stored as requested."""


class NoTenant(TaskRejected):
    """The caller has no workspace to create the todo in."""


@dataclass
class TodoQuery:
    status: TodoStatus | None = None
    priority: TodoPriority | None = None
    assigned_to_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None
    search: str | None = None


def like_pattern(term: str) -> str:
    """Substring pattern for ILIKE with the LIKE wildcards in ``term`` escaped."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def scoped(stmt, decision: Decision, model: type = Todo):
    if decision.filter is not None:
        stmt = stmt.where(decision.filter.to_clause(model))
    return stmt


async def list_todos(
    session: AsyncSession,
    decision: Decision,
    query: TodoQuery | None = None,
) -> list[Todo]:
    query = query or TodoQuery()
    stmt = scoped(select(Todo), decision)

    if query.status is not None:
        stmt = stmt.where(Todo.status == query.status)
    if query.priority is not None:
        stmt = stmt.where(Todo.priority == query.priority)
    if query.assigned_to_id is not None:
        stmt = stmt.where(Todo.assigned_to_id == query.assigned_to_id)
    if query.category_id is not None:
        stmt = stmt.where(Todo.category_id == query.category_id)
    if query.search and query.search.strip():
        pattern = like_pattern(query.search.strip())
        stmt = stmt.where(
            or_(
                Todo.title.ilike(pattern, escape="\\"),  # type: ignore[union-attr]
                Todo.description.ilike(pattern, escape="\\"),  # type: ignore[union-attr]
            )
        )

    stmt = stmt.order_by(Todo.created_at.desc())  # type: ignore[union-attr]
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_todo(
    session: AsyncSession,
    decision: Decision,
    todo_id: uuid.UUID,
) -> Todo | None:
    stmt = scoped(select(Todo).where(Todo.id == todo_id), decision)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _owning_tenant(
    session: AsyncSession,
    model: type[User] | type[Category],
    record_id: uuid.UUID,
) -> tuple[bool, uuid.UUID | None]:
    """Return (exists, tenant_id) for a referenced user or category."""
    result = await session.execute(select(model.tenant_id).where(model.id == record_id))
    row = result.first()
    if row is None:
        return False, None
    return True, row[0]


async def _resolve_assignee(
    session: AsyncSession,
    caller: Caller,
    requested: uuid.UUID | None,
    tenant_id: uuid.UUID,
    fallback: uuid.UUID | None,
) -> uuid.UUID | None:
    """Pick the assignee to store.

    Non-admins asking for someone outside the tenant get ``fallback``
    instead; admins get a TaskRejected for unknown users only.
    """
    if requested is None:
        return fallback
    exists, assignee_tenant = await _owning_tenant(session, User, requested)
    if caller.is_admin:
        if not exists:
            raise TaskRejected("Assigned user not found")
        return requested
    if not exists or assignee_tenant != tenant_id:
        logger.debug(
            "Overriding out-of-tenant assignee %s for caller %s", requested, caller.id
        )
        return fallback
    return requested


async def _resolve_category(
    session: AsyncSession,
    caller: Caller,
    requested: uuid.UUID | None,
    tenant_id: uuid.UUID,
    fallback: uuid.UUID | None,
) -> uuid.UUID | None:
    """Pick the category to store; it must belong to the todo's tenant.

    Non-admins get ``fallback`` for a foreign or unknown category, admins a
    TaskRejected.
    """
    if requested is None:
        return fallback
    exists, category_tenant = await _owning_tenant(session, Category, requested)
    if exists and category_tenant == tenant_id:
        return requested
    if caller.is_admin:
        raise TaskRejected("Category not found in this tenant")
    logger.debug(
        "Overriding out-of-tenant category %s for caller %s", requested, caller.id
    )
    return fallback


async def _require_tenant(session: AsyncSession, tenant_id: uuid.UUID) -> None:
    if await session.get(Tenant, tenant_id) is None:
        raise TaskRejected("Tenant not found")


async def create_todo(session: AsyncSession, caller: Caller, body: TodoCreate) -> Todo:
    if caller.is_admin and body.tenant_id is not None:
        tenant_id = body.tenant_id
        await _require_tenant(session, tenant_id)
    else:
        tenant_id = caller.tenant_id
    if tenant_id is None:
        raise NoTenant("You need a workspace before creating todos")

    assigned_to_id = await _resolve_assignee(
        session, caller, body.assigned_to_id, tenant_id, fallback=caller.id
    )
    category_id = await _resolve_category(
        session, caller, body.category_id, tenant_id, fallback=None
    )

    todo = Todo(
        tenant_id=tenant_id,
        created_by_id=caller.id,
        assigned_to_id=assigned_to_id,
        category_id=category_id,
        title=body.title,
        description=body.description,
        status=body.status,
        priority=body.priority,
        due_date=body.due_date,
    )
    session.add(todo)
    await session.commit()
    await session.refresh(todo)
    logger.info("Todo %s created in tenant %s by %s", todo.id, tenant_id, caller.id)
    return todo


async def update_todo(
    session: AsyncSession,
    caller: Caller,
    todo: Todo,
    body: TodoUpdate,
) -> Todo:
    patch = body.model_dump(exclude_unset=True)
    for required in REQUIRED_FIELDS:
        if required in patch and patch[required] is None:
            del patch[required]

    if "tenant_id" in patch:
        new_tenant = patch.pop("tenant_id")
        if caller.is_admin and new_tenant is not None and new_tenant != todo.tenant_id:
            await _require_tenant(session, new_tenant)
            patch["tenant_id"] = new_tenant

    target_tenant = patch.get("tenant_id", todo.tenant_id)
    moved = target_tenant != todo.tenant_id

    if patch.get("assigned_to_id") is not None:
        patch["assigned_to_id"] = await _resolve_assignee(
            session, caller, patch["assigned_to_id"], target_tenant,
            fallback=todo.assigned_to_id,
        )
    elif moved and "assigned_to_id" not in patch and todo.assigned_to_id is not None:
        _, assignee_tenant = await _owning_tenant(session, User, todo.assigned_to_id)
        if assignee_tenant != target_tenant:
            patch["assigned_to_id"] = None

    if patch.get("category_id") is not None:
        patch["category_id"] = await _resolve_category(
            session, caller, patch["category_id"], target_tenant,
            fallback=todo.category_id,
        )
    elif moved and "category_id" not in patch:
        # Categories never cross tenants
        patch["category_id"] = None

    apply_patch(todo, patch)
    session.add(todo)
    await session.commit()
    await session.refresh(todo)
    if moved:
        logger.info("Todo %s moved to tenant %s by %s", todo.id, target_tenant, caller.id)
    return todo


async def delete_todo(session: AsyncSession, todo: Todo) -> None:
    todo_id = todo.id
    await session.delete(todo)
    await session.commit()
    logger.info("Todo %s deleted", todo_id)
