"""API router aggregation."""

from fastapi import APIRouter

from taskhive.api.routes.categories import router as categories_router
from taskhive.api.routes.site_settings import router as site_settings_router
from taskhive.api.routes.tenants import router as tenants_router
from taskhive.api.routes.todos import router as todos_router
from taskhive.api.routes.users import router as users_router

api_router = APIRouter(prefix="/api")
api_router.include_router(users_router)
api_router.include_router(todos_router)
api_router.include_router(categories_router)
api_router.include_router(tenants_router)
api_router.include_router(site_settings_router)
