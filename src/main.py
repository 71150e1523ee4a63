"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because it is
easier to test with different configurations.

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 1 -k uvicorn.workers.UvicornWorker

A single worker: pending imports are kept in process memory.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import club, health, roster, sessions, students
from .config.settings import get_settings

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs on startup and shutdown. FastAPI calls this automatically when the
    application starts/stops.
    """
    settings = get_settings()

    logger.info(
        "Dojo Progress API starting",
        extra={
            "version": settings.api_version,
            "club": settings.club_name,
            "belt_system": settings.belt_system,
            "mock_mode": {
                "anthropic": settings.anthropic_mock_mode,
                "roster": settings.roster_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
        # For development, we log the error but continue

    yield

    logger.info("Dojo Progress API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        Student progression and roster management for martial-arts clubs.

        ## Authentication

        All endpoints except health checks require an API key provided in
        the `X-API-Key` header.

        ## Workflow

        1. **Import the roster**: `POST /api/v1/roster/imports` or `/imports/upload`
           - Review the preview, fix flagged rows, then commit
        2. **Score a class**: `POST /api/v1/sessions/commit`
           - Optionally draft parent messages first with `/sessions/feedback`
        3. **Grade**: `POST /api/v1/students/{id}/readiness`, then `/promote`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        club.router,
        prefix="/api/v1/club",
        tags=["Club"],
    )

    app.include_router(
        students.router,
        prefix="/api/v1/students",
        tags=["Students"],
    )

    app.include_router(
        sessions.router,
        prefix="/api/v1/sessions",
        tags=["Sessions"],
    )

    app.include_router(
        roster.router,
        prefix="/api/v1/roster",
        tags=["Roster"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Dojo Progress API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        We log the full error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": __version__,
        }
    )

    return app


# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
