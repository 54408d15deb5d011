"""Logging bootstrap: the ``messages_tui`` logger writes to a rotating file.

The terminal belongs to Textual while the app runs, so nothing is logged to
stderr.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import CONFIG_DIR

LOG_LEVEL_ENV = "MESSAGES_TUI_LOG_LEVEL"
LOG_FILE_ENV = "MESSAGES_TUI_LOG_FILE"


@dataclass(frozen=True)
class LoggingRuntime:
    level_name: str
    level: int
    file_path: str


_RUNTIME: LoggingRuntime | None = None


def _parse_level(raw: str | None) -> tuple[str, int]:
    normalized = str(raw or "INFO").strip().upper()
    level = getattr(logging, normalized, logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO
    return logging.getLevelName(level), level


def _make_file_handler(level: int, file_path: str) -> logging.Handler:
    handler = RotatingFileHandler(
        file_path,
        maxBytes=20 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    return handler


def configure(file_path: str | None = None) -> LoggingRuntime:
    """Attach the file handler to the package logger.

    Idempotent: later calls return the runtime from the first one.
    """
    global _RUNTIME
    if _RUNTIME is not None:
        return _RUNTIME

    level_name, level = _parse_level(os.environ.get(LOG_LEVEL_ENV))
    path = file_path or os.environ.get(LOG_FILE_ENV) or str(CONFIG_DIR / "messages-tui.log")
    Path(path).parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("messages_tui")
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers.clear()
    logger.addHandler(_make_file_handler(level, path))

    logging.captureWarnings(True)

    _RUNTIME = LoggingRuntime(level_name=level_name, level=level, file_path=path)
    logger.info("Logging to %s at %s", path, level_name)
    return _RUNTIME


def get_runtime() -> LoggingRuntime | None:
    return _RUNTIME


def reset() -> None:
    """Drop the package handlers; used by tests."""
    global _RUNTIME
    logger = logging.getLogger("messages_tui")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    _RUNTIME = None
