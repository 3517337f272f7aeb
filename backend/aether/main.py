"""Aether Advisor API application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aether.api import chats, files, health, messages
from aether.config import settings
from aether.core.logging import get_logger, setup_logging
from aether.db.base import close_db, init_db

# Initialize logging first
setup_logging(
    log_level=settings.log_level,
    log_format=settings.log_format,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("application_starting", app_name=settings.app_name)

    # In development, auto-create tables. In production, use migrations.
    try:
        await init_db(create_tables=(settings.environment == "development"))
        logger.info("database_ready")
    except Exception as e:
        logger.error("database_init_failed", error=str(e))
        if settings.environment == "production":
            raise

    if not settings.google_api_key:
        logger.warning(
            "google_api_key_missing",
            detail="Replies fall back to an apology and images get no summary.",
        )

    if not settings.auth_enabled:
        logger.warning(
            "auth_disabled_warning",
            detail="Authentication is disabled. All endpoints are publicly accessible.",
        )

    yield

    logger.info("application_shutting_down")
    try:
        await close_db()
    except Exception as e:
        logger.error("database_close_failed", error=str(e))
    logger.info("application_stopped")


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(messages.router, prefix=settings.api_prefix, tags=["messages"])
app.include_router(chats.router, prefix=settings.api_prefix, tags=["chats"])
app.include_router(files.router, prefix=settings.api_prefix, tags=["files"])
