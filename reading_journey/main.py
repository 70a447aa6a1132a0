"""Main entry point for the gamification API server"""
import logging

import uvicorn

from reading_journey.config import LOG_LEVEL, settings, validate_config

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Validate configuration and serve reading_journey.api.server:app"""
    logger.info("Validating configuration...")
    validate_config()

    logger.info(
        f"Starting API on {settings.api_host}:{settings.api_port} "
        f"(store backend: {settings.store_backend})"
    )
    uvicorn.run(
        "reading_journey.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
