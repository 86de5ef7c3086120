"""User store helpers: registration and password login with lockout."""

import logging
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskhive.core.config import get_settings
from taskhive.core.security import hash_password, verify_password
from taskhive.models.base import utcnow
from taskhive.models.user import User, UserCreate, default_roles
from taskhive.services.access_policy import Caller, Collection, strip_protected_fields

logger = logging.getLogger(__name__)


class EmailTaken(Exception):
    pass


class InvalidCredentials(Exception):
    pass


class AccountLocked(Exception):
    pass


class AccountDisabled(Exception):
    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


def default_name(email: str) -> str:
    return email.split("@", 1)[0]


async def find_by_email(session: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(func.lower(User.email) == normalize_email(email))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def register_user(
    session: AsyncSession,
    body: UserCreate,
    caller: Caller | None,
) -> User:
    """Create and commit a user. Admin-only fields from anyone else are ignored."""
    email = normalize_email(body.email)
    if await find_by_email(session, email) is not None:
        raise EmailTaken(email)

    data = strip_protected_fields(
        caller, Collection.USERS, body.model_dump(exclude_unset=True, exclude={"email", "password", "name"})
    )
    roles = [str(r) for r in data.get("roles") or []] or default_roles()

    user = User(
        email=email,
        password_hash=hash_password(body.password),
        name=body.name.strip() or default_name(email),
        roles=roles,
        tenant_id=data.get("tenant_id"),
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        # Same address committed concurrently
        if await find_by_email(session, email) is not None:
            raise EmailTaken(email) from exc
        raise
    await session.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


async def authenticate(session: AsyncSession, email: str, password: str) -> User:
    """Check credentials, enforcing the failed-attempt lockout.

    Raises InvalidCredentials, AccountLocked or AccountDisabled.
    """
    settings = get_settings()
    user = await find_by_email(session, email)
    if user is None:
        raise InvalidCredentials

    now = utcnow()
    if user.lock_until is not None and user.lock_until > now:
        raise AccountLocked

    if not verify_password(password, user.password_hash):
        user.login_attempts += 1
        if user.login_attempts >= settings.max_login_attempts:
            user.lock_until = now + timedelta(seconds=settings.lock_time_seconds)
            user.login_attempts = 0
            logger.warning("Locked user %s after repeated login failures", user.id)
        session.add(user)
        await session.commit()
        raise InvalidCredentials

    if not user.is_active:
        raise AccountDisabled

    if user.login_attempts or user.lock_until is not None:
        user.login_attempts = 0
        user.lock_until = None
        session.add(user)
        await session.commit()
    return user
