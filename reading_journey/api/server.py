"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from reading_journey.api.metrics_routes import router as metrics_router
from reading_journey.api.middleware import setup_cors, setup_rate_limiting
from reading_journey.api.routes import router
from reading_journey.config import LOG_LEVEL, validate_config
from reading_journey.db import GamificationStore, create_store
from reading_journey.exceptions import (
    DatabaseError,
    NotAuthenticatedError,
    ReadingJourneyError,
    RecordNotFoundError,
    ValidationError,
)
from reading_journey.services.gamification_service import GamificationService

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)

# First match wins; RecordNotFoundError is a DatabaseError
ERROR_STATUS_CODES = (
    (NotAuthenticatedError, 401),
    (ValidationError, 422),
    (RecordNotFoundError, 404),
    (DatabaseError, 503),
)


def status_code_for(error: ReadingJourneyError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info("Starting API server...")
    validate_config()
    store: GamificationStore = app.state.store
    await store.open()
    app.state.service = GamificationService(store)
    logger.info(f"Gamification store ready: {type(store).__name__}")

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    await store.close()
    logger.info("Gamification store closed")


def create_api_application(store: Optional[GamificationStore] = None) -> FastAPI:
    """
    Create and configure FastAPI application

    Args:
        store: Storage backend; defaults to the one selected by STORE_BACKEND
    """
    app = FastAPI(
        title="Reading Journey Gamification API",
        description="XP, levels, streaks, quests and achievements for readers",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.store = store if store is not None else create_store()

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)

    # Include routes
    app.include_router(router)
    app.include_router(metrics_router)

    @app.exception_handler(ReadingJourneyError)
    async def reading_journey_error_handler(request: Request, exc: ReadingJourneyError):
        return JSONResponse(status_code=status_code_for(exc), content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )

    logger.info("FastAPI application created")

    return app


app = create_api_application()
