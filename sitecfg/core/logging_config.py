"""
Centralized logging configuration for sitecfg.

Import this module EARLY to ensure all loggers use the same format.
All other modules should use: `logger = logging.getLogger(...)` only.
Do NOT call logging.basicConfig() in any other file.
"""

import logging
import sys

from sitecfg.core.config import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def setup_logging():
    """Configure root logger once. Idempotent, safe to call multiple times."""
    root = logging.getLogger()

    # Only configure if no handlers exist (prevent duplicate setup)
    if root.handlers:
        return

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    # Silence noisy libraries
    for lib in ["httpx", "httpcore", "aiosqlite", "sqlalchemy.engine", "apscheduler"]:
        logging.getLogger(lib).setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.INFO)


# Auto-setup on import
setup_logging()
