# storefront/core/logging_config.py
import logging
import sys

import structlog

from storefront.core.settings import get_settings


def setup_logging() -> None:
    """
    Configure structlog + standard logging.
    Logs go to stdout as JSON.
    """
    level = getattr(logging, get_settings().log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# Global logger, importable everywhere
logger = structlog.get_logger("storefront")
