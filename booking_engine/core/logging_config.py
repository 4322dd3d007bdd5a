"""Process-wide logging setup for applications embedding the engine."""

import logging
from typing import Optional

from .config import get_settings
from .request_context import attach_request_id_filter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Every record gets a ``request_id`` attribute so the format string never
    fails for log calls made outside a request scope.
    """
    resolved = (level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=LOG_FORMAT)
    attach_request_id_filter()

    # Quiet chatty libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
