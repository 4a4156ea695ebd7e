"""Logging configuration for the service."""

import logging
import sys

from donorflow.core.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> None:
    """Configure process-wide logging to stdout.

    Level comes from settings.log_level, forced to DEBUG when settings.debug
    is True. Noisy HTTP client loggers are capped at WARNING.
    """
    settings = get_settings()
    log_level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for noisy in ("httpx", "httpcore", "google.auth"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

