"""Import all models so SQLModel.metadata picks them up."""

from taskhive.models.category import Category, CategoryCreate, CategoryRead, CategoryUpdate
from taskhive.models.site_settings import SiteSettings, SiteSettingsRead, SiteSettingsUpdate
from taskhive.models.tenant import Tenant, TenantRead, TenantUpdate
from taskhive.models.todo import (
    Todo,
    TodoCreate,
    TodoPriority,
    TodoRead,
    TodoStatus,
    TodoUpdate,
)
from taskhive.models.user import User, UserCreate, UserRead, UserRole, UserUpdate

__all__ = [
    "Category",
    "CategoryCreate",
    "CategoryRead",
    "CategoryUpdate",
    "SiteSettings",
    "SiteSettingsRead",
    "SiteSettingsUpdate",
    "Tenant",
    "TenantRead",
    "TenantUpdate",
    "Todo",
    "TodoCreate",
    "TodoPriority",
    "TodoRead",
    "TodoStatus",
    "TodoUpdate",
    "User",
    "UserCreate",
    "UserRead",
    "UserRole",
    "UserUpdate",
]
