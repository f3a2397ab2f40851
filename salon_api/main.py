"""
Salon Staff API: application entry point.

This is the **only** file that assembles the app.  Business logic lives
in ``services/``; ``api/`` only translates HTTP to service calls.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.api.v1.api import api_router
from salon_api.api.v1.deps import get_db
from salon_api.api.v1.endpoints.auth import limiter
from salon_api.core.config import settings
from salon_api.core.exceptions import register_exception_handlers
from salon_api.core.security import get_password_hash
from salon_api.db.session import async_session_factory, create_tables, engine

# Ensure all models are imported so metadata.create_all can see them
from salon_api.models.employee import Attendance, AttendanceRollup, Employee, SalaryRecord  # noqa: F401
from salon_api.models.enums import Role
from salon_api.models.previous_staff import PreviousStaff  # noqa: F401
from salon_api.models.task import Task  # noqa: F401
from salon_api.models.user import User
from salon_api.services.notifier import ConnectionManager, Notifier

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    db: bool
    redis: bool
    version: str


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()

    # Seed the owner account on first run
    async with async_session_factory() as session:
        result = await session.execute(
            select(User).where(User.email == settings.FIRST_SUPER_ADMIN_EMAIL)
        )
        if result.scalar_one_or_none() is None:
            session.add(
                User(
                    email=settings.FIRST_SUPER_ADMIN_EMAIL,
                    hashed_password=get_password_hash(settings.FIRST_SUPER_ADMIN_PASSWORD),
                    name="Salon Owner",
                    role=Role.SUPER_ADMIN.value,
                )
            )
            await session.commit()
            logger.info(
                "Default super admin created: %s (password: <redacted>)",
                settings.FIRST_SUPER_ADMIN_EMAIL,
            )

    logger.info("🚀 %s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await app.state.connections.drain()
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Salon staff, attendance, tasks and payroll",
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

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)
    application.state.limiter = limiter

    # Real-time fan-out
    connections = ConnectionManager()
    application.state.connections = connections
    application.state.notifier = Notifier(connections)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @application.get("/health", response_model=HealthResponse, tags=["health"])
    async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
        """Public health check of database and Redis connectivity."""
        db_ok = redis_ok = False
        try:
            await db.execute(select(1))
            db_ok = True
        except Exception as e:
            logger.error("Health check DB failure: %s", e)

        try:
            async with aioredis.from_url(settings.REDIS_URL, socket_connect_timeout=2) as client:
                await client.ping()
            redis_ok = True
        except Exception as e:
            logger.error("Health check Redis failure: %s", e)

        return HealthResponse(
            status="OK" if db_ok and redis_ok else "DEGRADED",
            db=db_ok,
            redis=redis_ok,
            version=settings.VERSION,
        )

    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run(
        "salon_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
