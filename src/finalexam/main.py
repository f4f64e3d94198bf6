"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from finalexam.api.router import router as game_router
from finalexam.auth.rate_limit import build_rate_limiter
from finalexam.config import get_settings
from finalexam.database import close_db, create_tables, init_db
from finalexam.health.router import router as health_router
from finalexam.middleware import setup_middleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.auto_create_tables:
        await create_tables()
    app.state.rate_limiter = build_rate_limiter(settings)
    logger.info("startup_complete", environment=settings.environment, version=settings.app_version)

    yield

    await app.state.rate_limiter.aclose()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Final Exam Game API",
        description="Backend API for the Final Exam trivia game: accounts, scores, teams and challenges",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(game_router)

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn (the ``finalexam-api`` console script)."""
    settings = get_settings()
    uvicorn.run(
        "finalexam.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
    )
