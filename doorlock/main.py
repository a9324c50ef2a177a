"""
Door Lock Access & Attendance — application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/` and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select

from doorlock.api.v1.api import api_router
from doorlock.api.v1.endpoints.auth import limiter
from doorlock.core.config import settings
from doorlock.core.exceptions import register_exception_handlers
from doorlock.db.base import Base
from doorlock.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from doorlock.models.access_log import AccessLog  # noqa: F401
from doorlock.models.attendance import Attendance, Holiday  # noqa: F401
from doorlock.models.credential import (FingerprintCredential,  # noqa: F401
                                        RfidTag, TemporaryAccessCode)
from doorlock.models.user import ACCESS_METHODS, User
from doorlock.schemas.user import UserCreate
from doorlock.services.users import enroll_user

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    # Seed default admin user on first run
    async with async_session_factory() as session:
        result = await session.execute(
            select(User).where(User.email == settings.FIRST_ADMIN_EMAIL)
        )
        if result.scalar_one_or_none() is None:
            admin = await enroll_user(
                session,
                UserCreate(
                    email=settings.FIRST_ADMIN_EMAIL,
                    password=settings.FIRST_ADMIN_PASSWORD,
                    first_name="System",
                    last_name="Administrator",
                    role="admin",
                    access_level=10,
                    allowed_access_methods=list(ACCESS_METHODS),
                ),
            )
            logger.info(
                "Default admin created: %s <%s> (password: <redacted>)",
                admin.user_id,
                settings.FIRST_ADMIN_EMAIL,
            )

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="RFID, fingerprint and keypad door access with derived attendance",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting on the auth routes
    application.state.limiter = limiter

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
