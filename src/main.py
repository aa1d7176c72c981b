"""
Momentum Rider - Main application entry point.

Serves momentum scores for a fixed ETF universe over HTTP, backed by a
Redis cache with an in-process fallback.
"""

import uvicorn
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from momentum_rider.config.logging import get_logger, setup_logging
from momentum_rider.config.settings import get_settings


def initialize_application() -> None:
    """Initialize configuration and logging."""
    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        format_type=settings.log_format,
        file_enabled=settings.log_file_enabled,
        file_path=settings.log_file_path,
        max_file_size=settings.log_max_file_size,
        backup_count=settings.log_backup_count,
    )

    logger = get_logger(__name__)
    logger.info(
        "Application initialized successfully",
        environment=settings.environment,
        redis_configured=settings.is_redis_configured(),
        log_level=settings.log_level,
    )


def main() -> None:
    """Main application entry point."""
    initialize_application()

    logger = get_logger(__name__)
    settings = get_settings()

    logger.info(
        "Starting API server",
        host=settings.endpoint_host,
        port=settings.endpoint_port,
    )

    try:
        uvicorn.run(
            "momentum_rider.webapi.app:create_app",
            factory=True,
            host=settings.endpoint_host,
            port=settings.endpoint_port,
            reload=settings.api_reload,
            log_level=settings.api_log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")


if __name__ == "__main__":
    main()
