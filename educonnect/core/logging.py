"""Process-wide logging setup."""

import logging
from typing import Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once per process (worker, CLI or app entrypoint)."""
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)
    # SQL statements are only interesting when explicitly asked for
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.sql_echo else logging.WARNING
    )
