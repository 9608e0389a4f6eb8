import os
import sys

from loguru import logger

from .config import Settings


def configure_logging(settings: Settings) -> None:
    """
    Route loguru output to stderr and, when LOG_FILE is set, to a rotating file.
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL.upper())

    if settings.LOG_FILE:
        log_path = os.path.abspath(settings.LOG_FILE)
        os.makedirs(os.path.dirname(log_path), exist_ok=True)
        logger.add(
            log_path,
            level=settings.LOG_LEVEL.upper(),
            rotation="10 MB",
            retention="10 days",
        )
