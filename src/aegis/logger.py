"""Unified logging setup for the aegis release gate.

Console output is always on; a rotating log file is added only when a log
directory is configured (``AEGIS_LOG_DIR``).
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from .config import Config


def setup_logger(
    name: str = "aegis",
    log_file: str = "aegis.log",
    level: str = "INFO",
    log_dir: Optional[str] = None,
) -> logging.Logger:
    """Configure a logger with console and (optionally) file handlers.

    Args:
        name: Logger name (usually ``__name__``)
        log_file: Log file name inside ``log_dir``
        level: Log level (DEBUG/INFO/WARNING/ERROR)
        log_dir: Directory for the rotating log file; no file handler if None

    Returns:
        The configured Logger

    Example:
        >>> from aegis.logger import setup_logger
        >>> logger = setup_logger(__name__, log_dir="logs")
        >>> logger.info("Evaluating policy %s", "aegis.policy.v1")
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # avoid stacking handlers on repeated setup
    if logger.handlers:
        return logger

    detailed_formatter = logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    simple_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S"
    )

    if log_dir:
        log_path = Path(log_dir) / log_file
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=100 * 1024 * 1024,  # 100MB
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(simple_formatter)
    logger.addHandler(console_handler)

    return logger


def get_logger(name: str = "aegis") -> logging.Logger:
    """Return a configured logger, setting it up lazily from the environment.

    Example:
        >>> from aegis.logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Plan created")
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(
            name,
            log_file=Config.logging.LOG_FILE,
            level=Config.logging.LEVEL,
            log_dir=Config.logging.LOG_DIR or None,
        )

    return logger
