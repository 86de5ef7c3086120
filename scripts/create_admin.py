"""
create_admin.py
---------------
Create an admin account, or promote an existing user to admin.
Registration over HTTP can never grant the admin role, so the first admin
has to come from here.

Usage:
    python scripts/create_admin.py admin@example.com 'a-long-password' [--name "Ada"]
"""

import argparse
import asyncio
import logging
import uuid

from taskhive.core.database import async_session_factory, init_db
from taskhive.core.logging import configure_logging
from taskhive.models.user import UserCreate, UserRole
from taskhive.services.access_policy import Caller
from taskhive.services.provisioning import provision_quietly
from taskhive.services.users import find_by_email, register_user

logger = logging.getLogger("taskhive.scripts.create_admin")

# Admin-only fields are honoured only for admin callers.
_SYSTEM = Caller(id=uuid.UUID(int=0), roles=frozenset({UserRole.ADMIN.value}))


async def create_admin(email: str, password: str, name: str) -> None:
    await init_db()
    async with async_session_factory() as session:
        user = await find_by_email(session, email)
        if user is None:
            body = UserCreate(email=email, password=password, name=name, roles=[UserRole.ADMIN])
            user = await register_user(session, body, _SYSTEM)
            logger.info("Created admin %s", user.email)
        elif UserRole.ADMIN.value not in user.roles:
            user.roles = [*user.roles, UserRole.ADMIN.value]
            session.add(user)
            await session.commit()
            logger.info("Promoted %s to admin", user.email)
        else:
            logger.info("%s is already an admin", user.email)

        if user.tenant_id is None:
            await provision_quietly(session, user)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--name", default="")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(create_admin(args.email, args.password, args.name))


if __name__ == "__main__":
    main()
