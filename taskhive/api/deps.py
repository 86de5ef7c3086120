"""FastAPI dependencies for authentication and policy checks."""

import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.core.config import get_settings
from taskhive.core.database import get_session
from taskhive.core.security import decode_jwt
from taskhive.models.tenant import Tenant
from taskhive.models.user import User
from taskhive.services.access_policy import (
    Caller,
    Collection,
    Decision,
    Operation,
    evaluate,
)

bearer_scheme = HTTPBearer(auto_error=False)


def _raw_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    """Bearer header first, then the session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().auth_cookie_name) or None


async def _resolve_jwt(token: str, session: AsyncSession) -> User:
    try:
        payload = decode_jwt(token)
        user_id = uuid.UUID(payload["sub"])
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc
    except (KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed token payload",
        ) from exc

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account not found or disabled",
        )
    return user


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> User:
    raw = _raw_token(request, credentials)
    if raw is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _resolve_jwt(raw, session)


async def get_optional_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> User | None:
    """Resolve the caller if a valid token was sent.

    A missing, expired or otherwise bad token counts as anonymous here.
    """
    raw = _raw_token(request, credentials)
    if raw is None:
        return None
    try:
        return await _resolve_jwt(raw, session)
    except HTTPException:
        return None


async def caller_of(session: AsyncSession, user: User | None) -> Caller | None:
    """Build the policy identity for ``user``, checking its workspace is live."""
    if user is None:
        return None
    tenant_active = True
    if user.tenant_id is not None:
        tenant = await session.get(Tenant, user.tenant_id)
        tenant_active = tenant is not None and tenant.is_active
    return Caller.from_user(user, tenant_active=tenant_active)


def authorize(
    caller: Caller | None,
    collection: Collection,
    operation: Operation,
) -> Decision:
    """Evaluate the policy and turn a denial into the matching HTTP error."""
    decision = evaluate(caller, collection, operation)
    if not decision.allowed:
        if caller is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to perform this action",
        )
    return decision


# Typed shorthand for use in route signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
Session = Annotated[AsyncSession, Depends(get_session)]
