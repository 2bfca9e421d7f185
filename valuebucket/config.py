"""
config.py

Environment-driven defaults for valuebucket.

VALUEBUCKET_OWNED       copy borrowed text/bytes at capture (default false)
VALUEBUCKET_MAX_DEPTH   nesting bound for capture (default unset: unbounded)
VALUEBUCKET_LOG_LEVEL   level used by configure_logging() (default WARNING)
"""

import logging
import os
from typing import Optional


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


OWNED = _env_flag("VALUEBUCKET_OWNED", "false")
MAX_DEPTH = _env_int("VALUEBUCKET_MAX_DEPTH")
LOG_LEVEL = os.getenv("VALUEBUCKET_LOG_LEVEL", "WARNING").upper()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    The library itself installs no handlers; applications call this when
    they want capture / replay diagnostics on stderr.
    """
    logger = logging.getLogger("valuebucket")
    logger.setLevel(level or LOG_LEVEL)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
