"""
Devcore application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select

from devcore.api.v1.api import api_router
from devcore.api.v1.endpoints.auth import limiter
from devcore.core.config import settings
from devcore.core.exceptions import register_exception_handlers
from devcore.core.permissions import Role, default_permissions
from devcore.core.security import get_password_hash
from devcore.db.base import utcnow
from devcore.db.session import Database

# Ensure all models are imported so metadata.create_all can see them
from devcore.models.activity_log import ActivityLog  # noqa: F401
from devcore.models.contact_message import ContactMessage  # noqa: F401
from devcore.models.invite_code import InviteCode  # noqa: F401
from devcore.models.notification import Notification  # noqa: F401
from devcore.models.password_reset import PasswordReset  # noqa: F401
from devcore.models.project import Project, ProjectMember  # noqa: F401
from devcore.models.task import Comment, Task, TimeLog  # noqa: F401
from devcore.models.user import User

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_super_admin(database: Database) -> None:
    """Create the first super admin on an empty install."""
    async with database.session() as session:
        result = await session.execute(
            select(User).where(User.email == settings.FIRST_SUPER_ADMIN_EMAIL)
        )
        if result.scalar_one_or_none() is not None:
            return
        admin = User(
            email=settings.FIRST_SUPER_ADMIN_EMAIL,
            hashed_password=get_password_hash(settings.FIRST_SUPER_ADMIN_PASSWORD),
            first_name="Super",
            last_name="Admin",
            role=Role.SUPER_ADMIN.value,
            is_active=True,
            is_approved=True,
            approved_at=utcnow(),
            **default_permissions(Role.SUPER_ADMIN),
        )
        session.add(admin)
        await session.commit()
        logger.info(
            "Default super admin created: %s (password: <redacted>)",
            settings.FIRST_SUPER_ADMIN_EMAIL,
        )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    database: Database = app.state.database
    database.connect()
    await database.create_all()
    logger.info("Database tables initialised")

    await seed_super_admin(database)

    logger.info("Devcore v%s started", settings.VERSION)
    yield
    await database.disconnect()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app(database: Database | None = None) -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Multi-role project management API",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.database = database or Database(settings.DATABASE_URL)
    application.state.limiter = limiter

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

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
