"""Site-wide settings: a single row shared by every tenant."""

from datetime import datetime

from pydantic import field_validator
from sqlmodel import JSON, Column, Field, SQLModel

from taskhive.models.base import TimestampMixin

SITE_SETTINGS_ID = 1


class SiteSettings(TimestampMixin, SQLModel, table=True):
    __tablename__ = "site_settings"

    id: int = Field(default=SITE_SETTINGS_ID, primary_key=True)
    welcome_message: str = Field(default="Get stuff done!", max_length=500)
    # Category names seeded into every newly provisioned workspace
    default_categories: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False),
    )


class SiteSettingsUpdate(SQLModel):
    welcome_message: str | None = Field(default=None, max_length=500)
    default_categories: list[str] | None = None

    @field_validator("default_categories")
    @classmethod
    def clean_categories(cls, v: list[str] | None) -> list[str] | None:
        """Strip names, drop blanks and repeats, keep the given order."""
        if v is None:
            return v
        seen: list[str] = []
        for name in v:
            name = name.strip()[:100]
            if name and name not in seen:
                seen.append(name)
        return seen


class SiteSettingsRead(SQLModel):
    welcome_message: str
    default_categories: list[str]
    updated_at: datetime
