"""
Context Engine FastAPI Application.

Thin HTTP surface over the session service.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from context_engine import __version__
from context_engine.api.routes import projects, sessions
from context_engine.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Configures logging and reports database reachability on startup.
    """
    # Initialize logging first
    setup_logging(context="api")

    from context_engine.db.connection import check_connection

    if check_connection():
        logger.info("✓ Database connection OK")
    else:
        logger.warning("Database is not reachable; requests will fail until it is")

    logger.info("Application startup complete")

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="Context Engine API",
    description="API for saving, versioning and resuming coding sessions",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API health check."""
    return {
        "status": "ok",
        "message": "Context Engine API is running",
        "version": __version__,
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    from context_engine.db.connection import check_connection

    db_status = "healthy" if check_connection() else "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
    }


app.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
app.include_router(projects.router, prefix="/projects", tags=["projects"])
