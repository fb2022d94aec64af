"""
EMS reservations — application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ems.api.v1.api import api_router
from ems.api.v1.endpoints.auth import limiter
from ems.core.config import settings
from ems.core.exceptions import register_exception_handlers
from ems.db.base import Base
from ems.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from ems.models.account import Account  # noqa: F401
from ems.models.reservation import Reservation  # noqa: F401
from ems.services.account_store import AccountStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_root_master(session_factory=async_session_factory) -> Account:
    """Make sure the single master account exists (idempotent)."""
    async with session_factory() as session:
        return await AccountStore(session).ensure_root_master(
            settings.ROOT_MASTER_ID,
            settings.ROOT_MASTER_USERNAME,
            settings.ROOT_MASTER_PASSWORD,
        )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await seed_root_master()
    logger.info(
        "Access policy: master manages reservations=%s, admins parented to root master=%s",
        settings.MASTER_CAN_MANAGE_RESERVATIONS,
        settings.ADMIN_CREATION_RESTRICTED_TO_ROOT_MASTER,
    )

    logger.info("EMS v%s started", settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Ambulance / shuttle reservation service",
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
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    # Rate limiting (login / refresh); 429s are rendered by register_exception_handlers
    application.state.limiter = limiter

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @application.get("/", include_in_schema=False)
    async def root() -> dict:
        return {"message": "EMS server is running"}

    return application


app = create_app()
