import logging
import sys

from task_api.config import get_settings

LOGGER_NAME = "task_api"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure application logging"""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(log_level)
    return app_logger


logger = setup_logging(get_settings().log_level)
