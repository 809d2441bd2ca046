"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from folies.catalog.router import router as catalog_router
from folies.checkout.router import router as checkout_router
from folies.config import get_settings
from folies.database import close_db, init_db, session_scope
from folies.gamification.router import router as gamification_router
from folies.gamification.seed import seed_badges
from folies.health.router import router as health_router
from folies.middleware import setup_middleware
from folies.notifications.router import router as notifications_router
from folies.payments.router import router as payments_router
from folies.polls.router import router as polls_router
from folies.redis_client import close_redis, init_redis
from folies.users.router import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Badge catalog (idempotent)
    if settings.seed_badges_on_startup:
        try:
            async with session_scope() as db:
                await seed_badges(db)
        except SQLAlchemyError:
            logger.warning("Badge seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Folies Fridge API",
        description="Backend API for Folies Fridge: smart fridge unlocks, checkout, loyalty and gamification",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(catalog_router)
    app.include_router(checkout_router)
    app.include_router(gamification_router)
    app.include_router(polls_router)
    app.include_router(notifications_router)
    app.include_router(payments_router)

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn (``folies-api`` console script)."""
    settings = get_settings()
    uvicorn.run(
        "folies.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        log_level=settings.log_level.lower(),
        proxy_headers=True,
    )
