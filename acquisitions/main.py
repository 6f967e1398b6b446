"""
Acquisitions API — application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `services/` package; `api/` only translates HTTP.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from acquisitions.api.api import api_router
from acquisitions.api.deps import get_password_hasher, get_token_service
from acquisitions.api.endpoints.meta import health_router
from acquisitions.core.config import settings
from acquisitions.core.exceptions import register_exception_handlers
from acquisitions.db.base import Base
from acquisitions.db.session import async_session_factory, engine
from acquisitions.models.user import UserRole
from acquisitions.services.account import AccountService
from acquisitions.services.guard import LocalAbuseGuard
from acquisitions.services.store import SQLAlchemyUserStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def _seed_first_admin() -> None:
    """Create the configured admin account on first run."""
    if not settings.FIRST_ADMIN_EMAIL:
        return
    async with async_session_factory() as session:
        store = SQLAlchemyUserStore(session)
        if await store.get_by_email(settings.FIRST_ADMIN_EMAIL.strip().lower()) is not None:
            return
        accounts = AccountService(store, get_password_hasher(), get_token_service())
        await accounts.create_account(
            settings.FIRST_ADMIN_NAME,
            settings.FIRST_ADMIN_EMAIL,
            settings.FIRST_ADMIN_PASSWORD,
            UserRole.ADMIN,
        )
        logger.info(
            "Default admin created: %s (password: <redacted>)",
            settings.FIRST_ADMIN_EMAIL,
        )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await _seed_first_admin()

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="User registration, authentication and management API",
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Per-process abuse guard (shield, bots, sliding-window rate limits)
    application.state.abuse_guard = LocalAbuseGuard(
        bot_detection=settings.BOT_DETECTION_ENABLED,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Liveness probe stays outside request admission
    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
