"""Tenant reads for members, management for admins."""

import uuid

from fastapi import APIRouter, HTTPException, status
from sqlmodel import select

from taskhive.api.deps import CurrentUser, Session, authorize, caller_of
from taskhive.models.base import apply_patch
from taskhive.models.tenant import Tenant, TenantRead, TenantUpdate
from taskhive.models.user import User
from taskhive.services.access_policy import Collection, Decision, Operation

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.get("", response_model=list[TenantRead])
async def list_tenants(current: CurrentUser, session: Session) -> list[TenantRead]:
    decision = authorize(await caller_of(session, current), Collection.TENANTS, Operation.READ)
    stmt = select(Tenant)
    if decision.filter is not None:
        stmt = stmt.where(decision.filter.to_clause(Tenant))
    stmt = stmt.order_by(Tenant.slug.asc())  # type: ignore[union-attr]
    result = await session.execute(stmt)
    return [TenantRead.model_validate(t) for t in result.scalars().all()]


@router.get("/{tenant_id}", response_model=TenantRead)
async def get_tenant(tenant_id: uuid.UUID, current: CurrentUser, session: Session) -> TenantRead:
    decision = authorize(await caller_of(session, current), Collection.TENANTS, Operation.READ)
    tenant = await _get_or_404(tenant_id, decision, session)
    return TenantRead.model_validate(tenant)


@router.patch("/{tenant_id}", response_model=TenantRead)
async def update_tenant(
    tenant_id: uuid.UUID,
    body: TenantUpdate,
    current: CurrentUser,
    session: Session,
) -> TenantRead:
    """Rename, (de)activate, or hand the tenant to another owner. Admin only."""
    decision = authorize(await caller_of(session, current), Collection.TENANTS, Operation.UPDATE)
    tenant = await _get_or_404(tenant_id, decision, session)

    update_data = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if "owner_id" in update_data and await session.get(User, update_data["owner_id"]) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Owner not found")

    apply_patch(tenant, update_data)
    session.add(tenant)
    await session.commit()
    await session.refresh(tenant)
    return TenantRead.model_validate(tenant)


# ── Internal helper ───────────────────────────────────────────

async def _get_or_404(tenant_id: uuid.UUID, decision: Decision, session) -> Tenant:
    stmt = select(Tenant).where(Tenant.id == tenant_id)
    if decision.filter is not None:
        stmt = stmt.where(decision.filter.to_clause(Tenant))
    result = await session.execute(stmt)
    tenant = result.scalar_one_or_none()
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    return tenant
