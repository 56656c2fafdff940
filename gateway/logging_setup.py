"""Loguru configuration for the gateway.

A coloured stderr sink at the configured level, plus rotating files when a
log directory is configured.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from contracts.manifest import LoggingConfig

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(config: LoggingConfig) -> None:
    """Replace loguru's default handler with the gateway's sinks."""
    logger.remove()

    logger.add(
        sys.stderr,
        format=_CONSOLE_FORMAT,
        level=config.level,
        colorize=True,
        backtrace=False,
        diagnose=False,
    )

    if not config.directory:
        return

    logs_dir = Path(config.directory)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        logs_dir / "edgegate.log",
        format=_FILE_FORMAT,
        level="DEBUG",
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        encoding="utf-8",
    )

    # Errors only
    logger.add(
        logs_dir / "errors.log",
        format=_FILE_FORMAT,
        level="ERROR",
        rotation="5 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )


def log_request(method: str, path: str, status_code: int, verdict: str, duration: float) -> None:
    logger.info(
        "REQUEST {} {} -> {} [{}] ({:.4f}s)",
        method,
        path,
        status_code,
        verdict,
        duration,
    )
