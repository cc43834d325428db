"""
Logging setup for a served bot.

Modules log to "chipchat.<area>" loggers (chipchat.bot, chipchat.router,
chipchat.middleware, ...). configure_logging() hangs handlers off the
"chipchat" parent at Config.log_level. Applications that embed the bot in
their own process can skip it and configure logging themselves.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Config

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)-20s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_MARK = "_chipchat_handler"


class LevelColorFormatter(logging.Formatter):
    """Colours the level name on a terminal. The record itself is left untouched."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self.COLORS.get(record.levelno)
        if color is None:
            return line
        return line.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)


def _level(name: str) -> int:
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(config: "Config") -> Path | None:
    """
    Route "chipchat.*" records to stderr, plus config.log_file when set.
    Safe to call again: handlers from an earlier call are replaced.
    Returns the log file path, or None when logging to stderr only.
    """
    level = _level(config.log_level)
    logger = logging.getLogger("chipchat")
    for handler in [h for h in logger.handlers if getattr(h, _HANDLER_MARK, False)]:
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console_formatter = LevelColorFormatter if config.dev_mode else logging.Formatter
    console.setFormatter(console_formatter(LOG_FORMAT, DATE_FORMAT))
    handlers: list[logging.Handler] = [console]

    log_file = config.log_file
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        setattr(handler, _HANDLER_MARK, True)
        handler.setLevel(level)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return log_file
