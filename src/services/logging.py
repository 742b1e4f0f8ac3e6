"""Logging configuration for the billing services.

Provides dual output (stdout + file). Level and file come from Settings
(LOG_LEVEL / LOG_FILE env vars or .env). Ledger modules log through
``logging.getLogger(__name__)`` so records carry the ``src.services.*`` name.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from src.services.config import Settings, get_settings

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_log_level(level_name: Optional[str]) -> int:
    """Map a level name such as "warning" to its logging constant.

    Unknown or empty names fall back to INFO.
    """
    level = logging.getLevelName((level_name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_server_logging(log_file: Optional[str] = None, settings: Optional[Settings] = None) -> None:
    """
    Configure root logger for the billing services.

    Args:
        log_file: Path to log file (default: settings.log_file)
        settings: Settings to read the level from (default: environment settings)

    Behavior:
        - Replaces root handlers with stdout + file handlers
        - ISO format timestamps
    """
    settings = settings or get_settings()
    log_path = Path(log_file or settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    log_level = parse_log_level(settings.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove any existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    for handler in (logging.StreamHandler(sys.stdout), logging.FileHandler(log_path)):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)


__all__ = ["parse_log_level", "setup_server_logging"]
