"""Loguru setup for the relay.

Every module logs through get_logger(__name__). Production adds a
rotating relay log and a separate error log next to stderr. What callers
say is private, so transcript text goes through preview_text and only
at DEBUG.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> "
    "<level>{level: <7}</level> "
    "<cyan>{extra[name]}</cyan>:<cyan>{line}</cyan> "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} {level: <7} {extra[name]}:{line} {message}"


def setup_logging(
    level: str = "INFO",
    log_dir: str = "logs",
    enable_file: bool = True,
) -> None:
    """Replace Loguru's default sink with the relay's sinks.

    Args:
        level: Minimum level for stderr and the relay log
        log_dir: Where file sinks write (created if missing)
        enable_file: Add the rotating file sinks (production)
    """
    logger.remove()
    logger.configure(extra={"name": "relay"})

    # Variable values in tracebacks only on the console
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True, diagnose=True)

    if enable_file:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)

        logger.add(
            directory / "relay.log",
            format=FILE_FORMAT,
            level=level,
            rotation="00:00",
            retention="14 days",
            compression="gz",
            enqueue=True,
            diagnose=False,
        )
        logger.add(
            directory / "relay-errors.log",
            format=FILE_FORMAT + "\n{exception}",
            level="ERROR",
            rotation="20 MB",
            retention="60 days",
            enqueue=True,
            diagnose=False,
        )

    logger.info(f"Logging at {level} (file sinks: {'on' if enable_file else 'off'})")


def get_logger(name: str) -> "logger":
    """Logger tagged with the calling module's name."""
    return logger.bind(name=name)


def preview_text(text: str | None, limit: int = 40) -> str:
    """Collapse whitespace and cut transcript text for DEBUG logs."""
    if not text:
        return ""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return f"{text[:limit]}…"
