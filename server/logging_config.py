"""Logging setup for newtab.

Everything goes to a rotating log file at DEBUG; the Rich console shows
the configured level and up. The caller passes in the `[logging]` settings
from config.ini, so this module has no dependency on `server.config`.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


LOG_FORMAT = "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# Every favicon lookup would otherwise log two request lines
_QUIET_LOGGERS = ("httpx", "httpcore")

_installed_handlers: List[logging.Handler] = []


def _file_handler(log_file: Path) -> RotatingFileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _console_handler(level: int) -> RichHandler:
    console = Console(theme=Theme({"logging.level.info": "bold cyan"}))
    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    access_log: bool = False,
) -> None:
    """Attach the file and console handlers to the root logger.

    Safe to call more than once; only the first call installs handlers.
    With *log_file* None only the console handler is installed.
    `uvicorn.access` is kept at WARNING unless *access_log* is set.
    """
    if _installed_handlers:
        return

    console_level = logging.getLevelName(level.upper())
    if not isinstance(console_level, int):
        console_level = logging.INFO

    handlers: List[logging.Handler] = [_console_handler(console_level)]
    if log_file is not None:
        handlers.append(_file_handler(log_file))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in handlers:
        root_logger.addHandler(handler)
    _installed_handlers.extend(handlers)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(
        logging.INFO if access_log else logging.WARNING
    )

    # Alembic output goes through the root handlers
    alembic_logger = logging.getLogger("alembic")
    alembic_logger.handlers = []
    alembic_logger.propagate = True


def teardown_logging() -> None:
    """Detach and close the handlers installed by setup_logging()."""
    root_logger = logging.getLogger()
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root_logger.removeHandler(handler)
        handler.close()


def get_logger(name: str) -> logging.Logger:
    """Return the logger for *name* (usually ``__name__``)."""
    return logging.getLogger(name)
