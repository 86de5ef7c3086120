"""Users: registration, session auth, tenant bootstrap and self-service CRUD."""

import logging
import uuid

from fastapi import APIRouter, HTTPException, Response, status
from pydantic import BaseModel, EmailStr
from sqlmodel import select

from taskhive.api.deps import CurrentUser, OptionalUser, Session, authorize, caller_of
from taskhive.core.config import get_settings
from taskhive.core.security import create_jwt, hash_password
from taskhive.models.base import apply_patch
from taskhive.models.tenant import Tenant, TenantRead
from taskhive.models.user import User, UserCreate, UserRead, UserUpdate
from taskhive.services.access_policy import Collection, Decision, Operation, strip_protected_fields
from taskhive.services.provisioning import ProvisioningError, provision_quietly, provision_tenant
from taskhive.services.users import (
    AccountDisabled,
    AccountLocked,
    EmailTaken,
    InvalidCredentials,
    authenticate,
    find_by_email,
    normalize_email,
    register_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


# ── Schemas ──────────────────────────────────────────────────

class RegisterResponse(BaseModel):
    user: UserRead
    tenant: TenantRead | None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    exp: int
    user: UserRead
    tenant: TenantRead | None


class MeResponse(BaseModel):
    user: UserRead
    tenant: TenantRead | None


class MessageResponse(BaseModel):
    message: str


class EnsureTenantResponse(BaseModel):
    success: bool = True
    created: bool
    tenant: TenantRead
    user: UserRead
    message: str | None = None


# ── Helpers ──────────────────────────────────────────────────

async def _tenant_of(user: User, session) -> TenantRead | None:
    if user.tenant_id is None:
        return None
    tenant = await session.get(Tenant, user.tenant_id)
    return TenantRead.model_validate(tenant) if tenant is not None else None


# ── Registration & session ──────────────────────────────────

@router.post("", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: UserCreate,
    current: OptionalUser,
    session: Session,
) -> RegisterResponse:
    """Open registration. A workspace is provisioned right after the user is stored."""
    caller = await caller_of(session, current)
    authorize(caller, Collection.USERS, Operation.CREATE)

    try:
        user = await register_user(session, body, caller)
    except EmailTaken as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email already exists",
        ) from exc

    if user.tenant_id is None:
        await provision_quietly(session, user)
    await session.refresh(user)

    return RegisterResponse(
        user=UserRead.model_validate(user),
        tenant=await _tenant_of(user, session),
    )


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, response: Response, session: Session) -> LoginResponse:
    """Authenticate with email + password, receive a JWT and session cookie."""
    try:
        user = await authenticate(session, body.email, body.password)
    except InvalidCredentials as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        ) from exc
    except AccountLocked as exc:
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail="Too many failed attempts; account temporarily locked",
        ) from exc
    except AccountDisabled as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        ) from exc

    if user.tenant_id is None:
        await provision_quietly(session, user)
        await session.refresh(user)

    settings = get_settings()
    max_age = settings.jwt_expire_minutes * 60
    token = create_jwt(subject=str(user.id))
    response.set_cookie(
        settings.auth_cookie_name,
        token,
        max_age=max_age,
        httponly=True,
        samesite="lax",
        secure=settings.auth_cookie_secure,
    )

    return LoginResponse(
        access_token=token,
        exp=max_age,
        user=UserRead.model_validate(user),
        tenant=await _tenant_of(user, session),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    response.delete_cookie(get_settings().auth_cookie_name)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=MeResponse)
async def get_me(current: CurrentUser, session: Session) -> MeResponse:
    """Return the current authenticated user and their tenant, if any."""
    return MeResponse(
        user=UserRead.model_validate(current),
        tenant=await _tenant_of(current, session),
    )


@router.post("/create-tenant", response_model=EnsureTenantResponse)
async def create_tenant(current: CurrentUser, session: Session) -> EnsureTenantResponse:
    """Make sure the caller has a workspace; create one if not."""
    try:
        result = await provision_tenant(session, current)
    except ProvisioningError as exc:
        logger.exception("create-tenant failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Error creating tenant", "details": str(exc)},
        ) from exc

    return EnsureTenantResponse(
        created=result.created,
        tenant=TenantRead.model_validate(result.tenant),
        user=UserRead.model_validate(result.user),
        message=None if result.created else "Tenant already exists",
    )


# ── CRUD ─────────────────────────────────────────────────────

@router.get("", response_model=list[UserRead])
async def list_users(current: CurrentUser, session: Session) -> list[UserRead]:
    decision = authorize(await caller_of(session, current), Collection.USERS, Operation.READ)
    stmt = select(User)
    if decision.filter is not None:
        stmt = stmt.where(decision.filter.to_clause(User))
    stmt = stmt.order_by(User.email.asc())  # type: ignore[union-attr]
    result = await session.execute(stmt)
    return [UserRead.model_validate(u) for u in result.scalars().all()]


@router.get("/{user_id}", response_model=UserRead)
async def get_user(user_id: uuid.UUID, current: CurrentUser, session: Session) -> UserRead:
    decision = authorize(await caller_of(session, current), Collection.USERS, Operation.READ)
    user = await _get_or_404(user_id, decision, session)
    return UserRead.model_validate(user)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    current: CurrentUser,
    session: Session,
) -> UserRead:
    caller = await caller_of(session, current)
    decision = authorize(caller, Collection.USERS, Operation.UPDATE)
    user = await _get_or_404(user_id, decision, session)

    update_data = strip_protected_fields(caller, Collection.USERS, body.model_dump(exclude_unset=True))

    if update_data.get("password"):
        user.password_hash = hash_password(update_data.pop("password"))
    update_data.pop("password", None)

    if update_data.get("email"):
        email = normalize_email(update_data["email"])
        other = await find_by_email(session, email)
        if other is not None and other.id != user.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A user with this email already exists",
            )
        update_data["email"] = email
    elif "email" in update_data:
        del update_data["email"]

    if update_data.get("tenant_id") is not None:
        if await session.get(Tenant, update_data["tenant_id"]) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    if "roles" in update_data:
        update_data["roles"] = [str(r) for r in update_data["roles"] or []]
    if update_data.get("is_active") is None:
        update_data.pop("is_active", None)
    if update_data.get("name") is None:
        update_data.pop("name", None)

    apply_patch(user, update_data)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return UserRead.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_user(user_id: uuid.UUID, current: CurrentUser, session: Session) -> None:
    decision = authorize(await caller_of(session, current), Collection.USERS, Operation.DELETE)
    user = await _get_or_404(user_id, decision, session)
    apply_patch(user, {"is_active": False})
    session.add(user)
    await session.commit()


# ── Internal helper ───────────────────────────────────────────

async def _get_or_404(user_id: uuid.UUID, decision: Decision, session) -> User:
    stmt = select(User).where(User.id == user_id)
    if decision.filter is not None:
        stmt = stmt.where(decision.filter.to_clause(User))
    result = await session.execute(stmt)
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
