"""FastAPI application entrypoint."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskhive.api.redirects import AuthRedirectMiddleware
from taskhive.api.routes import api_router
from taskhive.core.config import get_settings
from taskhive.core.database import init_db
from taskhive.core.logging import configure_logging


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup: ensure tables exist (use Alembic in production)
    configure_logging()
    await init_db()
    yield


app = FastAPI(
    title="TaskHive",
    version="0.1.0",
    description="Multi-tenant task board API",
    lifespan=lifespan,
)

# ── Middleware ───────────────────────────────────────────────
_settings = get_settings()
app.add_middleware(AuthRedirectMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── API routes ───────────────────────────────────────────────
app.include_router(api_router)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    return {"status": "ok"}
