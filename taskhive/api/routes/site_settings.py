"""Site settings global: one row, readable by all, editable by admins."""

from fastapi import APIRouter

from taskhive.api.deps import CurrentUser, Session, authorize, caller_of
from taskhive.models.base import apply_patch
from taskhive.models.site_settings import (
    SITE_SETTINGS_ID,
    SiteSettings,
    SiteSettingsRead,
    SiteSettingsUpdate,
)
from taskhive.services.access_policy import Collection, Operation

router = APIRouter(prefix="/globals", tags=["globals"])


async def _load(session) -> SiteSettings:
    """Fetch the settings row, creating it with defaults on first access."""
    row = await session.get(SiteSettings, SITE_SETTINGS_ID)
    if row is None:
        row = SiteSettings(id=SITE_SETTINGS_ID)
        session.add(row)
        await session.commit()
        await session.refresh(row)
    return row


@router.get("/settings", response_model=SiteSettingsRead)
async def get_site_settings(current: CurrentUser, session: Session) -> SiteSettingsRead:
    authorize(await caller_of(session, current), Collection.SETTINGS, Operation.READ)
    return SiteSettingsRead.model_validate(await _load(session))


@router.patch("/settings", response_model=SiteSettingsRead)
async def update_site_settings(
    body: SiteSettingsUpdate,
    current: CurrentUser,
    session: Session,
) -> SiteSettingsRead:
    authorize(await caller_of(session, current), Collection.SETTINGS, Operation.UPDATE)
    row = await _load(session)
    update_data = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    apply_patch(row, update_data)
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return SiteSettingsRead.model_validate(row)
