"""
Loopbrain Backend - FastAPI Application
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from loopbrain.core.config import settings
from loopbrain.core.logging import setup_logging, get_logger
from loopbrain.core.database import async_session_maker, engine, init_db
from loopbrain.api import loopbrain
from loopbrain.services.container import build_services

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    logger.info("Starting Loopbrain Backend", version="1.0.0")
    await init_db()
    logger.info("Database initialized")

    app.state.services = build_services(async_session_maker)

    yield

    # Shutdown
    logger.info("Shutting down Loopbrain Backend")
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Loopbrain API",
        description="Contextual assistant for workspaces, projects and org structure",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(loopbrain.router, prefix="/api/loopbrain", tags=["loopbrain"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "loopbrain-backend"}

    return app


app = create_app()
