"""Tests for logging configuration."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

from borgy.config.models import LoggingSettings
from borgy.logs import configure_logging


def test_configure_logging_installs_rich_handler_once() -> None:
    logger = configure_logging(LoggingSettings(level="info"))
    configure_logging(LoggingSettings(level="info"))

    rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
    assert len(rich_handlers) == 1
    assert logger.level == logging.INFO


def test_level_override_and_unknown_levels() -> None:
    assert configure_logging(LoggingSettings(), level_override="DEBUG").level == logging.DEBUG
    assert configure_logging(LoggingSettings(level="chatty")).level == logging.WARNING


def test_file_handler_writes_records(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "borgy.log"
    logger = configure_logging(LoggingSettings(level="INFO", file=str(log_file)))

    logging.getLogger("borgy.organization").info("moved %s", "a.pdf")
    for handler in logger.handlers:
        handler.flush()

    assert "moved a.pdf" in log_file.read_text(encoding="utf-8")
    configure_logging(LoggingSettings())
