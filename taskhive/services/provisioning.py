"""Tenant provisioning: give every user a workspace of their own.

``provision_tenant`` is called explicitly after a user row is committed
(registration, login, and the ``create-tenant`` endpoint). It is idempotent:
a user who is already linked to an existing tenant gets that tenant back and
nothing is written.

The user is linked with a single conditional UPDATE that only matches while
the user's ``tenant_id`` still holds the value we read. Two concurrent calls
for the same user may both insert a tenant, but only one link lands; the
loser deactivates its own tenant and returns the winner's.
"""

import logging
import random
import re
import unicodedata
import uuid
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskhive.core.config import get_settings
from taskhive.models.base import utcnow
from taskhive.models.category import Category
from taskhive.models.site_settings import SITE_SETTINGS_ID, SiteSettings
from taskhive.models.tenant import Tenant
from taskhive.models.user import User, default_roles

logger = logging.getLogger(__name__)

FALLBACK_SLUG = "workspace"
SLUG_MAX_LENGTH = 96  # leaves room for the "-NNN" suffix within the column limit


class ProvisioningError(Exception):
    """Raised when a tenant could not be created or linked."""


@dataclass
class ProvisionResult:
    tenant: Tenant
    user: User
    created: bool


def tenant_name_for(name: str | None, email: str) -> str:
    """Display name for a new workspace: the user's name, else their email local part."""
    name = (name or "").strip()
    return name or email.split("@", 1)[0]


def slugify(value: str) -> str:
    """Lower-case ``value`` and reduce it to ``[a-z0-9-]``."""
    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii").lower()
    value = re.sub(r"[^a-z0-9]+", "-", value).strip("-")
    return value[:SLUG_MAX_LENGTH].rstrip("-")


def derive_slug(name: str | None, email: str) -> str:
    return slugify(tenant_name_for(name, email)) or FALLBACK_SLUG


def with_suffix(slug: str) -> str:
    return f"{slug}-{random.randint(0, 999)}"


async def _slug_taken(session: AsyncSession, slug: str) -> bool:
    result = await session.execute(select(Tenant.id).where(Tenant.slug == slug))
    return result.first() is not None


async def _existing_tenant(session: AsyncSession, user: User) -> Tenant | None:
    if user.tenant_id is None:
        return None
    tenant = await session.get(Tenant, user.tenant_id)
    if tenant is None:
        logger.warning(
            "User %s points at missing tenant %s; provisioning a new one",
            user.id, user.tenant_id,
        )
    return tenant


async def _insert_tenant(
    session: AsyncSession,
    user_id: uuid.UUID,
    tenant_name: str,
    base_slug: str,
    max_attempts: int,
) -> Tenant:
    """Insert the tenant row, retrying with a fresh suffix on slug collisions."""
    slug = base_slug
    if await _slug_taken(session, slug):
        slug = with_suffix(base_slug)

    for attempt in range(1, max_attempts + 1):
        tenant = Tenant(name=tenant_name, slug=slug, owner_id=user_id, is_active=True)
        session.add(tenant)
        try:
            await session.flush()
            return tenant
        except IntegrityError as exc:
            await session.rollback()
            logger.warning(
                "Slug %r collided for user %s (attempt %d/%d)",
                slug, user_id, attempt, max_attempts,
            )
            if attempt == max_attempts:
                raise ProvisioningError(
                    f"Could not reserve a unique slug for '{base_slug}'"
                ) from exc
            slug = with_suffix(base_slug)

    raise ProvisioningError(f"Could not reserve a unique slug for '{base_slug}'")


async def _seed_categories(session: AsyncSession, tenant_id: uuid.UUID) -> int:
    """Add the site-wide default categories to a fresh tenant."""
    settings_row = await session.get(SiteSettings, SITE_SETTINGS_ID)
    names = settings_row.default_categories if settings_row is not None else []
    for name in names:
        session.add(Category(tenant_id=tenant_id, name=name))
    return len(names)


async def provision_tenant(
    session: AsyncSession,
    user: User,
    *,
    max_attempts: int | None = None,
) -> ProvisionResult:
    """Create a tenant for ``user`` and link it, unless one is already linked.

    Raises ProvisioningError on slug exhaustion or storage failure. The user
    row itself is never rolled back by a failure here.
    """
    if max_attempts is None:
        max_attempts = get_settings().provisioning_max_attempts

    try:
        await session.refresh(user)
        existing = await _existing_tenant(session, user)
        if existing is not None:
            return ProvisionResult(tenant=existing, user=user, created=False)

        user_id = user.id
        expected_tenant_id = user.tenant_id
        needs_roles = not user.roles
        tenant_name = tenant_name_for(user.name, user.email)
        base_slug = derive_slug(user.name, user.email)

        tenant = await _insert_tenant(session, user_id, tenant_name, base_slug, max_attempts)

        values: dict = {"tenant_id": tenant.id, "updated_at": utcnow()}
        if needs_roles:
            values["roles"] = default_roles()
        if expected_tenant_id is None:
            guard = User.tenant_id.is_(None)  # type: ignore[union-attr]
        else:
            guard = User.tenant_id == expected_tenant_id
        stmt = (
            update(User)
            .where(User.id == user_id, guard)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)

        if result.rowcount == 0:
            # Another call linked a tenant first; retire ours.
            tenant.is_active = False
            tenant.updated_at = utcnow()
            session.add(tenant)
            await session.commit()
            user = await session.get(User, user_id, populate_existing=True)
            winner = None
            if user is not None and user.tenant_id is not None:
                winner = await session.get(Tenant, user.tenant_id)
            if user is None or winner is None:
                raise ProvisioningError(f"User {user_id} vanished during provisioning")
            logger.warning(
                "Provisioning race for user %s: keeping tenant %s, deactivated %s",
                user_id, winner.id, tenant.id,
            )
            return ProvisionResult(tenant=winner, user=user, created=False)

        seeded = await _seed_categories(session, tenant.id)
        await session.commit()
        await session.refresh(tenant)
        user = await session.get(User, user_id, populate_existing=True)
    except SQLAlchemyError as exc:
        await session.rollback()
        raise ProvisioningError(f"Storage error while provisioning: {exc}") from exc

    logger.info(
        "Created tenant %s (%s) for user %s with %d categories",
        tenant.id, tenant.slug, user_id, seeded,
    )
    return ProvisionResult(tenant=tenant, user=user, created=True)


async def provision_quietly(session: AsyncSession, user: User) -> Tenant | None:
    """Run provisioning from a flow that must not fail because of it."""
    user_id = user.id
    try:
        result = await provision_tenant(session, user)
    except ProvisioningError:
        logger.exception("Tenant provisioning failed for user %s", user_id)
        return None
    return result.tenant
