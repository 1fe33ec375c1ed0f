"""Logging setup shared by the CLI and library entry points."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from borgy.config.models import LoggingSettings

_HANDLER_MARKER = "_borgy_handler"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    settings: LoggingSettings,
    *,
    level_override: str | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Attach Borgy's handlers to the ``borgy`` logger.

    Console output goes through Rich on stderr. When ``settings.file`` is set,
    records are also written to a size-rotated log file. Calling this twice
    replaces the handlers installed by the previous call.

    Args:
        settings: Logging section of the configuration.
        level_override: Level name taking precedence over ``settings.level``.
        console: Rich console to render to; defaults to a stderr console.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger("borgy")
    level_name = (level_override or settings.level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    setattr(rich_handler, _HANDLER_MARKER, True)
    logger.addHandler(rich_handler)

    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=settings.max_size_mb * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging"]
