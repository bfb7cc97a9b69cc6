"""Wolo POS: point of sale, inventory and reporting for a small pharmacy.

Importing the package configures the shared ``log`` used by every module.
Records go to a rotating file under ``.logs/`` and to stderr. The directory
and threshold can be moved with ``WOLO_POS_LOG_DIR`` and
``WOLO_POS_LOG_LEVEL``.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "0.1.0"

PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = Path(os.environ.get("WOLO_POS_LOG_DIR", PROJECT_ROOT / ".logs"))
LOG_FILE = LOG_DIR / "wolo_pos.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _resolve_level(name: str | None) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _configure_logging() -> logging.Logger:
    """Attach the file and console handlers once per process."""

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    level = _resolve_level(os.environ.get("WOLO_POS_LOG_LEVEL"))
    logger.setLevel(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(LOG_FILE, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    except OSError as exc:
        # Read-only installs still get console logging.
        print(f"Warning: cannot open log file '{LOG_FILE}': {exc}", file=sys.stderr)
    else:
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(max(level, logging.INFO))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    return logger


log = _configure_logging()
log.debug("Logging configured for '%s' at %s", __name__, logging.getLevelName(log.level))
